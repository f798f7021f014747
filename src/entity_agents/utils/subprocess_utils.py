"""Standardized subprocess utilities for git/gh command execution."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


class SubprocessError(Exception):
    """Exception raised when a subprocess command fails or times out."""

    def __init__(
        self,
        cmd: str,
        returncode: Optional[int],
        stderr: str,
        stdout: str = "",
        cwd: Optional[Path] = None,
        timed_out: bool = False,
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        self.cwd = cwd
        self.timed_out = timed_out

        if timed_out:
            message = f"Command timed out: {cmd}"
        else:
            message = f"Command failed with exit code {returncode}: {cmd}"
        if cwd is not None:
            message += f" (cwd: {cwd})"
        if stderr:
            message += f"\nstderr: {stderr}"
        super().__init__(message)

    @property
    def detail(self) -> str:
        """Most useful single-line failure text for logs and typed results."""
        text = (self.stderr or "").strip() or (self.stdout or "").strip()
        if self.timed_out:
            return f"timed out: {self.cmd}"
        return text or f"exit code {self.returncode}: {self.cmd}"


def _cmd_str(cmd: Union[str, List[str]]) -> str:
    return cmd if isinstance(cmd, str) else " ".join(cmd)


def run_command(
    cmd: Union[str, List[str]],
    *,
    cwd: Optional[Path] = None,
    capture_output: bool = True,
    check: bool = True,
    timeout: Optional[float] = None,
    env: Optional[dict] = None,
) -> subprocess.CompletedProcess:
    """
    Run a command with standardized error handling.

    Commands are always executed as argument vectors, never through a shell.

    Args:
        cmd: Command to run (list, or a single executable name)
        cwd: Working directory
        capture_output: Capture stdout/stderr
        check: Raise exception on non-zero exit
        timeout: Timeout in seconds (None = no timeout)
        env: Environment variables

    Returns:
        CompletedProcess with stdout, stderr, returncode

    Raises:
        SubprocessError: If check=True and command fails, or on timeout
            or when the executable cannot be started
    """
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture_output,
            text=True,
            timeout=timeout,
            env=env,
            check=False,  # We handle check ourselves for better error messages
        )
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout}s: {_cmd_str(cmd)}")
        raise SubprocessError(
            cmd=_cmd_str(cmd),
            returncode=None,
            stderr=_decode(e.stderr),
            stdout=_decode(e.stdout),
            cwd=cwd,
            timed_out=True,
        ) from e
    except OSError as e:
        # Missing executable, bad cwd, permission denied
        raise SubprocessError(
            cmd=_cmd_str(cmd),
            returncode=None,
            stderr=str(e),
            cwd=cwd,
        ) from e

    if check and result.returncode != 0:
        raise SubprocessError(
            cmd=_cmd_str(cmd),
            returncode=result.returncode,
            stderr=result.stderr,
            stdout=result.stdout,
            cwd=cwd,
        )

    return result


def _decode(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value


def run_git_command(
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = 30,
) -> subprocess.CompletedProcess:
    """
    Run a git command with standardized error handling.

    Args:
        args: Git command arguments (without 'git' prefix)
        cwd: Working directory (git repo)
        check: Raise exception on non-zero exit
        timeout: Timeout in seconds (default: 30, None = no timeout)

    Raises:
        SubprocessError: If check=True and command fails
    """
    try:
        return run_command(["git"] + args, cwd=cwd, check=check, timeout=timeout)
    except SubprocessError:
        logger.debug(f"Git command failed in {cwd}: {' '.join(args)}")
        raise


def run_gh_command(
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = 60,
    executable: str = "gh",
) -> subprocess.CompletedProcess:
    """Run a GitHub CLI command; same contract as run_git_command."""
    try:
        return run_command([executable] + args, cwd=cwd, check=check, timeout=timeout)
    except SubprocessError:
        logger.debug(f"gh command failed: {' '.join(args)}")
        raise


def check_command_exists(command: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(command) is not None

