"""Thin synchronous git wrapper scoped to one working directory.

Every operation converts subprocess failures into a falsy CommandResult (or
an empty/None-hash value) plus a warning log. Nothing here raises.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ...core.models import CommandResult, CommitResult
from ...utils.subprocess_utils import SubprocessError, run_git_command
from ...utils.validators import validate_branch_name

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_EMAIL = "noreply@entity.com"


def parse_porcelain(output: str) -> List[str]:
    """Changed paths from `git status --porcelain -z` output, in git's order.

    Entries are NUL-terminated and paths are never quoted. A rename or copy
    entry carries the new path and is followed by a field holding the source.
    """
    files: List[str] = []
    fields = output.split("\0")
    i = 0
    while i < len(fields):
        entry = fields[i]
        i += 1
        if len(entry) < 4:
            continue
        if "R" in entry[:2] or "C" in entry[:2]:
            # Skip the source path
            i += 1
        path = entry[3:]
        if path not in files:
            files.append(path)
    return files


class GitClient:
    """Version-control operations against `project_root`."""

    def __init__(
        self,
        project_root: Path,
        timeout: Optional[float] = 30,
        commit_email: str = DEFAULT_COMMIT_EMAIL,
    ):
        self.project_root = Path(project_root)
        self.timeout = timeout
        self.commit_email = commit_email

    def _run(self, args: List[str], strip: bool = True) -> CommandResult[str]:
        try:
            result = run_git_command(args, cwd=self.project_root, timeout=self.timeout)
        except SubprocessError as e:
            logger.warning(f"git {args[0]} failed in {self.project_root}: {e.detail}")
            return CommandResult.failure(e.detail)
        output = result.stdout.strip() if strip else result.stdout.rstrip("\n")
        return CommandResult.success(output)

    def status(self) -> CommandResult[str]:
        """Porcelain status text (empty string when clean)."""
        return self._run(["status", "--porcelain"], strip=False)

    def diff_names(self) -> List[str]:
        """Every changed path: staged, unstaged and untracked. Empty when clean."""
        result = self._run(["status", "--porcelain", "-z", "--untracked-files=all"], strip=False)
        if not result:
            return []
        return parse_porcelain(result.value or "")

    def add(self, path: str = ".") -> CommandResult[str]:
        # "--" keeps a path starting with "-" from being read as an option
        return self._run(["add", "--", path])

    def commit(
        self,
        message: str,
        author: Optional[str] = None,
        files: Optional[List[str]] = None,
    ) -> CommitResult:
        """
        Commit what is staged.

        Returns CommitResult(hash=None, files=[]) without running `git commit`
        when the working tree has no changes; callers must check hash before
        assuming a commit happened. Pass files when the caller already ran
        diff_names().
        """
        if files is None:
            files = self.diff_names()
        if not files:
            return CommitResult(hash=None, files=[])

        args = ["commit", "-m", message]
        if author:
            args.append(f"--author={author} <{self.commit_email}>")

        committed = self._run(args)
        if not committed:
            return CommitResult(hash=None, files=files, message=message, error=committed.error)

        head = self._run(["rev-parse", "HEAD"])
        if not head or not head.value:
            return CommitResult(
                hash=None, files=files, message=message,
                error=head.error or "could not resolve HEAD after commit",
            )

        logger.info(f"Committed {head.value[:12]} ({len(files)} files)")
        return CommitResult(hash=head.value, files=files, message=message)

    def push(self, branch: Optional[str] = None) -> CommandResult[str]:
        args = ["push", "origin"]
        if branch:
            try:
                args.append(validate_branch_name(branch))
            except ValueError as e:
                logger.warning(f"Push refused: {e}")
                return CommandResult.failure(str(e))
        return self._run(args)

    def create_branch(self, name: str) -> CommandResult[str]:
        try:
            validate_branch_name(name)
        except ValueError as e:
            logger.warning(f"Branch creation refused: {e}")
            return CommandResult.failure(str(e))
        return self._run(["checkout", "-b", name])

    def checkout(self, branch: str) -> CommandResult[str]:
        try:
            validate_branch_name(branch)
        except ValueError as e:
            logger.warning(f"Checkout refused: {e}")
            return CommandResult.failure(str(e))
        return self._run(["checkout", branch])

    def current_branch(self) -> CommandResult[str]:
        return self._run(["branch", "--show-current"])
