"""Engine subprocess runner.

Spawns the task-execution engine (the `claude` CLI by default) with an
argument vector built from a template, enforces a wall-clock timeout and an
output cap, and turns every outcome into a TaskResult.
"""

import asyncio
import logging
import time
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional, Sequence

from ..notifications import NotificationFanout
from ..utils.process_utils import kill_process_tree
from .config import DEFAULT_ENGINE_ARGS, DEFAULT_MAX_OUTPUT_BYTES, DEFAULT_TIMEOUT_MS
from .models import TaskResult

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


def format_allowed_tools(tools: Sequence[str], bash_patterns: Sequence[str]) -> List[str]:
    """Tool names for --allowedTools; bash patterns like "git *" become Bash(git:*)."""
    allowed = list(tools)
    for pattern in bash_patterns:
        command, _, rest = pattern.partition(" ")
        spec = f"{command}:{rest}" if rest else command
        allowed.append(f"Bash({spec})")
    return allowed


class TaskRunner:
    """
    Runs one engine invocation per call and keeps a bounded history.

    Placeholders in engine_args are whole arguments: "{preamble}" and
    "{prompt}" are replaced by the instruction preamble and the prompt,
    "{allowed_tools}" expands to ["--allowedTools", "a,b,c"] or to nothing.
    """

    def __init__(
        self,
        project_root: Path,
        executable: str = "claude",
        engine_args: Optional[Sequence[str]] = None,
        allowed_tools: Sequence[str] = (),
        allowed_bash_patterns: Sequence[str] = (),
        pass_allowed_tools: bool = True,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        history_limit: int = 1000,
        notifier: Optional[NotificationFanout] = None,
    ):
        self.project_root = Path(project_root)
        self.executable = executable
        self.engine_args = list(engine_args if engine_args is not None else DEFAULT_ENGINE_ARGS)
        self.allowed_tools = list(allowed_tools)
        self.allowed_bash_patterns = list(allowed_bash_patterns)
        self.pass_allowed_tools = pass_allowed_tools
        self.default_timeout_ms = default_timeout_ms
        self.max_output_bytes = max_output_bytes
        self.notifier = notifier

        self._history: Deque[TaskResult] = deque(maxlen=history_limit)
        self._history_lock = asyncio.Lock()
        self._completed = 0
        self._succeeded = 0

    @property
    def history(self) -> List[TaskResult]:
        """Most recent results, oldest first. Older entries are evicted."""
        return list(self._history)

    @property
    def tasks_completed(self) -> int:
        return self._completed

    @property
    def tasks_succeeded(self) -> int:
        return self._succeeded

    def build_command(self, instruction_preamble: str, prompt: str) -> List[str]:
        cmd = [self.executable]
        for arg in self.engine_args:
            if arg == "{prompt}":
                cmd.append(prompt)
            elif arg == "{preamble}":
                cmd.append(instruction_preamble)
            elif arg == "{allowed_tools}":
                tools = format_allowed_tools(self.allowed_tools, self.allowed_bash_patterns)
                if self.pass_allowed_tools and tools:
                    cmd.extend(["--allowedTools", ",".join(tools)])
            else:
                cmd.append(arg)
        return cmd

    async def _notify(self, message: str, level: str = "info") -> None:
        if self.notifier:
            await self.notifier.notify(message, level)

    async def run(
        self,
        instruction_preamble: str,
        prompt: str,
        timeout_ms: Optional[int] = None,
    ) -> TaskResult:
        """
        Run the engine once and record the result.

        Engine failures (non-zero exit, timeout, oversized output, missing
        executable) come back as TaskResult(success=False); they are not
        raised.

        Raises:
            ValueError: If timeout_ms is not a positive integer
        """
        if timeout_ms is None:
            timeout_ms = self.default_timeout_ms
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be a positive integer, got {timeout_ms!r}")

        logger.debug(f"Running {self.executable} in {self.project_root}")
        await self._notify("Starting task...")

        start_time = time.monotonic()
        result = await self._execute(self.build_command(instruction_preamble, prompt), timeout_ms, start_time)

        async with self._history_lock:
            self._history.append(result)
            self._completed += 1
            if result.success:
                self._succeeded += 1

        if result.success:
            logger.debug(f"Task completed in {result.duration_ms}ms")
            await self._notify("Task completed successfully")
        else:
            logger.debug(f"Task failed after {result.duration_ms}ms")
            await self._notify(f"Task failed: {result.output[:50]}", "error")
        return result

    async def _execute(self, cmd: List[str], timeout_ms: int, start_time: float) -> TaskResult:
        def elapsed_ms() -> int:
            return int((time.monotonic() - start_time) * 1000)

        try:
            # New session: the engine and its children form one killable group
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.project_root),
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to start {cmd[0]}: {e}")
            return TaskResult(
                success=False,
                output=f"Failed to start {cmd[0]}: {e}",
                duration_ms=elapsed_ms(),
            )

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        overflowed: List[str] = []

        async def read_capped(stream, buf: bytearray, label: str) -> None:
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    return
                if len(buf) + len(chunk) > self.max_output_bytes:
                    overflowed.append(label)
                    kill_process_tree(process.pid)
                    return
                buf.extend(chunk)

        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    read_capped(process.stdout, stdout_buf, "stdout"),
                    read_capped(process.stderr, stderr_buf, "stderr"),
                    process.wait(),
                ),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"{cmd[0]} timed out after {timeout_ms}ms, killing process group")
            kill_process_tree(process.pid)
            await process.wait()
        except asyncio.CancelledError:
            kill_process_tree(process.pid)
            await process.wait()
            raise

        duration_ms = elapsed_ms()

        if timed_out:
            return TaskResult(
                success=False,
                output=f"Task timed out after {timeout_ms}ms",
                duration_ms=duration_ms,
                timed_out=True,
            )

        if overflowed:
            return TaskResult(
                success=False,
                output=(
                    f"Engine {overflowed[0]} exceeded {self.max_output_bytes} bytes; "
                    "process killed"
                ),
                duration_ms=duration_ms,
            )

        stdout_text = stdout_buf.decode(errors="replace").strip()
        stderr_text = stderr_buf.decode(errors="replace").strip()

        if process.returncode != 0:
            return TaskResult(
                success=False,
                output=stderr_text or f"{cmd[0]} exited with code {process.returncode}",
                duration_ms=duration_ms,
            )

        if stderr_text:
            logger.debug(f"Engine stderr: {stderr_text[:500]}")
        return TaskResult(success=True, output=stdout_text, duration_ms=duration_ms)
