"""The Entity: one configured worker composed of runner, gate, fanout and clients."""

import logging
from typing import List, Optional, Sequence

from ..errors import UnknownOperationError
from ..integrations.git import GitClient
from ..integrations.github import GitHubClient, filter_relevant
from ..notifications import NotificationFanout
from ..utils.rich_logging import EntityLogger, setup_entity_logging
from .approvals import ApprovalGate
from .config import EntityConfig, FrameworkSettings
from .models import ApprovalRequest, CommitResult, EntityStatus, TaskResult, TrackedIssue
from .prompts import fix_issue_prompt
from .runner import TaskRunner

logger = logging.getLogger(__name__)

IN_PROGRESS_LABEL = "in-progress"
BUG_LABEL = "bug"


class Entity:
    """
    An autonomous worker defined entirely by its EntityConfig.

    Specialized behaviour lives in config.operations (see perform()); every
    collaborator can be injected for tests, otherwise it is built from the
    config and the shared FrameworkSettings.
    """

    def __init__(
        self,
        config: EntityConfig,
        settings: Optional[FrameworkSettings] = None,
        *,
        runner: Optional[TaskRunner] = None,
        approvals: Optional[ApprovalGate] = None,
        notifier: Optional[NotificationFanout] = None,
        git: Optional[GitClient] = None,
        github: Optional[GitHubClient] = None,
        entity_logger: Optional[EntityLogger] = None,
        use_console: bool = True,
    ):
        self.config = config
        self.settings = settings or FrameworkSettings()
        self._setup_directories()

        self.logger = entity_logger or setup_entity_logging(
            config.name,
            config.resolved_log_path,
            log_level=self.settings.log_level,
            use_console=use_console,
        )
        self.notifier = notifier or NotificationFanout.from_config(
            config.name,
            config.notifications,
            config.notification_file_path,
            logger_instance=self.logger,
        )
        self.runner = runner or TaskRunner(
            project_root=config.project_root,
            executable=self.settings.engine_executable,
            engine_args=self.settings.engine_args,
            allowed_tools=config.allowed_tools,
            allowed_bash_patterns=config.allowed_bash_patterns,
            pass_allowed_tools=self.settings.pass_allowed_tools,
            default_timeout_ms=self.settings.default_timeout_ms,
            max_output_bytes=self.settings.max_output_bytes,
            history_limit=self.settings.history_limit,
            notifier=self.notifier,
        )
        self.approvals = approvals or ApprovalGate(
            config.output_dir,
            notifier=self.notifier,
            reload_pending=self.settings.reload_pending_approvals,
        )
        self.git = git or GitClient(
            config.project_root,
            timeout=self.settings.git_timeout,
            commit_email=self.settings.commit_email,
        )
        self.github = github or GitHubClient(
            config.github,
            executable=self.settings.gh_executable,
            timeout=self.settings.gh_timeout,
            cwd=config.project_root,
        )
        logger.debug(f"Initialized entity {config.name} in {config.project_root}")

    def _setup_directories(self) -> None:
        for directory in (self.config.output_dir, self.config.output_dir / "logs"):
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def role(self) -> str:
        return self.config.role

    async def work(self, task: str) -> TaskResult:
        """Run a free-form task with this entity's system prompt."""
        await self.notifier.notify(f"Starting: {task[:50]}...")
        return await self.run_task(task)

    async def run_task(self, prompt: str, timeout_ms: Optional[int] = None) -> TaskResult:
        self.logger.info(f"Starting task: {prompt[:50]}...")
        result = await self.runner.run(self.config.system_prompt, prompt, timeout_ms)
        if result.success:
            self.logger.success("Task completed successfully")
        else:
            self.logger.error(f"Task failed: {result.output[:100]}")
        return result

    async def request_approval(
        self,
        description: str,
        details: str,
        options: Optional[Sequence[str]] = None,
    ) -> ApprovalRequest:
        return await self.approvals.request(description, details, options)

    def commit_changes(self, message: str, issue_number: Optional[int] = None) -> CommitResult:
        """
        Stage everything and commit with entity attribution.

        The message gets a "Fixes #N" trailer when issue_number is given and
        always ends with a Co-Authored-By trailer naming this entity.
        Returns CommitResult(hash=None, files=[]) when nothing changed.
        """
        changed = self.git.diff_names()
        if not changed:
            return CommitResult(hash=None, files=[])

        full_message = message
        if issue_number:
            full_message += f"\n\nFixes #{issue_number}"
        full_message += f"\n\nCo-Authored-By: {self.config.name} <{self.settings.commit_email}>"

        staged = self.git.add(".")
        if not staged:
            return CommitResult(hash=None, files=changed, message=full_message, error=staged.error)

        result = self.git.commit(full_message, files=changed)
        if result.committed:
            self.logger.success(f"Committed {result.hash[:12]}: {message}")
        elif result.error:
            self.logger.warning(f"Commit failed: {result.error}")
        return result

    async def perform(self, operation: str, **params) -> TaskResult:
        """
        Run one of the entity's named operations.

        Raises:
            UnknownOperationError: If the entity has no such operation
            ValueError: If a required parameter is missing
        """
        template = self.config.operations.get(operation)
        if template is None:
            raise UnknownOperationError(self.name, operation, self.config.operations.keys())

        resolved = template.resolve_params(params)
        prompt = template.template.format(**resolved)

        announce = template.render(template.announce, resolved)
        if announce:
            await self.notifier.notify(announce)

        if template.is_sensitive(resolved, self.settings.sensitive_values):
            description = template.render(template.sensitive_approval, resolved) or (
                f"{operation}: {template.sensitive_param}={resolved[template.sensitive_param]}"
            )
            await self.request_approval(
                description,
                template.render(template.sensitive_details, resolved),
                template.sensitive_options,
            )

        result = await self.run_task(prompt)

        if result.success and template.approval_after:
            description = template.render(template.approval_after, resolved)
            await self.request_approval(
                description,
                template.render(template.approval_after_details, resolved),
            )
            result.needs_approval = True
            result.approval_prompt = description
        return result

    def find_relevant_issues(self) -> List[TrackedIssue]:
        """Open bugs that carry one of this entity's labels or mention its keywords."""
        issues = self.github.list_issues([BUG_LABEL], "open")
        return filter_relevant(issues, self.config.github_labels, self.config.relevance_keywords)

    async def fix_issue(self, issue_number: int) -> TaskResult:
        """Fix a tracked issue: label it, run the fix, commit, and report back."""
        issue = self.github.get_issue(issue_number)
        if issue is None:
            return TaskResult(success=False, output=f"Issue #{issue_number} not found")

        await self.notifier.notify(f"Working on: {issue.title}")
        self.github.add_label(issue_number, IN_PROGRESS_LABEL)

        prompt = fix_issue_prompt(issue.number, issue.title, issue.body, self.role)
        result = await self.run_task(prompt)
        if not result.success:
            self.github.remove_label(issue_number, IN_PROGRESS_LABEL)
            return result

        commit = self.commit_changes(f"fix: {issue.title[:50]}", issue_number)
        result.commit_hash = commit.hash
        result.files_changed = commit.files

        self.github.add_comment(
            issue_number,
            f"## Fix Applied\n\n{self.name} has implemented a fix.\n\n"
            f"**Commit:** {commit.hash or 'See git log'}",
        )
        return result

    def get_status(self) -> EntityStatus:
        return EntityStatus(
            name=self.name,
            role=self.role,
            tasks_completed=self.runner.tasks_completed,
            tasks_succeeded=self.runner.tasks_succeeded,
            owned_paths=list(self.config.owned_paths),
            is_running=False,
            pending_approvals=len(self.approvals.pending),
        )

    def close(self) -> None:
        """Release the log file handle."""
        self.logger.close()
