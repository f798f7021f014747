"""GitHub issue and PR operations through the gh CLI."""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ...core.config import GitHubConfig
from ...core.models import CommandResult, TrackedIssue
from ...utils.subprocess_utils import SubprocessError, run_gh_command
from ...utils.validators import validate_owner_repo

logger = logging.getLogger(__name__)

ISSUE_FIELDS = "number,title,body,labels,state,assignees"


class GitHubClient:
    """Issue tracker client scoped to config.owner/config.repo when both are set.

    Failures (auth, network, not-found, malformed JSON) come back as an
    empty list, None or a falsy CommandResult with a warning logged; the
    caller treats absence as "did not happen".
    """

    def __init__(
        self,
        config: Optional[GitHubConfig] = None,
        executable: str = "gh",
        timeout: Optional[float] = 60,
        cwd: Optional[Path] = None,
    ):
        self.config = config or GitHubConfig()
        self.executable = executable
        self.timeout = timeout
        self.cwd = cwd

    @property
    def repo_args(self) -> List[str]:
        if self.config.is_scoped:
            return ["-R", validate_owner_repo(self.config.owner, self.config.repo)]
        return []

    def _run(self, args: List[str], action: str) -> CommandResult[str]:
        try:
            result = run_gh_command(
                args + self.repo_args,
                cwd=self.cwd,
                timeout=self.timeout,
                executable=self.executable,
            )
        except SubprocessError as e:
            logger.warning(f"Failed to {action}: {e.detail}")
            return CommandResult.failure(e.detail)
        except ValueError as e:
            # Malformed owner/repo in config
            logger.warning(f"Failed to {action}: {e}")
            return CommandResult.failure(str(e))
        return CommandResult.success(result.stdout.strip())

    def list_issues(self, labels: Optional[Iterable[str]] = None, state: str = "open") -> List[TrackedIssue]:
        """Issues in the given state carrying every label in labels."""
        args = ["issue", "list", "--state", state, "--json", ISSUE_FIELDS]
        labels = list(labels or [])
        if labels:
            args += ["--label", ",".join(labels)]

        result = self._run(args, "list issues")
        if not result:
            return []
        try:
            payload = json.loads(result.value or "[]")
            return [TrackedIssue.from_gh(item) for item in payload]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to parse issue list: {e}")
            return []

    def get_issue(self, number: int) -> Optional[TrackedIssue]:
        result = self._run(["issue", "view", str(int(number)), "--json", ISSUE_FIELDS], f"get issue #{number}")
        if not result:
            return None
        try:
            return TrackedIssue.from_gh(json.loads(result.value or "{}"))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to parse issue #{number}: {e}")
            return None

    def add_label(self, number: int, label: str) -> CommandResult[str]:
        return self._run(["issue", "edit", str(int(number)), "--add-label", label], f"add label '{label}' to #{number}")

    def remove_label(self, number: int, label: str) -> CommandResult[str]:
        return self._run(
            ["issue", "edit", str(int(number)), "--remove-label", label],
            f"remove label '{label}' from #{number}",
        )

    def add_comment(self, number: int, body: str) -> CommandResult[str]:
        # body travels as one argv element; no quoting or escaping needed
        return self._run(["issue", "comment", str(int(number)), "--body", body], f"comment on #{number}")

    def create_pull_request(self, title: str, body: str, base: str = "main") -> Optional[str]:
        """Open a PR from the current branch. Returns its URL, or None on failure."""
        result = self._run(
            ["pr", "create", "--title", title, "--body", body, "--base", base],
            "create pull request",
        )
        if not result:
            return None
        return result.value or None


def filter_relevant(
    issues: Iterable[TrackedIssue],
    labels: Iterable[str] = (),
    keywords: Iterable[str] = (),
) -> List[TrackedIssue]:
    """Keep issues that carry one of labels or whose body mentions one of keywords.

    Both comparisons are case-insensitive. With no labels and no keywords
    every issue is kept.
    """
    wanted_labels = {label.lower() for label in labels}
    wanted_keywords = [kw.lower() for kw in keywords]
    if not wanted_labels and not wanted_keywords:
        return list(issues)

    relevant = []
    for issue in issues:
        has_label = any(label.lower() in wanted_labels for label in issue.labels)
        body = issue.body.lower()
        mentions = any(kw in body for kw in wanted_keywords)
        if has_label or mentions:
            relevant.append(issue)
    return relevant

