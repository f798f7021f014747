"""Notification channels: an append-only file, desktop popups, and SMS via Messages."""

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from ..utils.process_utils import kill_process_tree
from ..utils.rich_logging import format_line

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """A channel's delivery command failed. Caught by the fanout, never by callers."""


class NotificationChannel(ABC):
    """One independently-toggled delivery target."""

    name: str = "channel"

    @abstractmethod
    async def send(self, entity_name: str, message: str, level: str, created: float) -> None:
        """Deliver one message; raise on failure."""


class FileChannel(NotificationChannel):
    """Appends `[timestamp] [LEVEL] entity: message` lines to a file."""

    name = "file"

    def __init__(self, path: Path):
        self.path = Path(path)
        # Appends are serialized so lines land in notify() call order
        self._lock = asyncio.Lock()

    async def send(self, entity_name: str, message: str, level: str, created: float) -> None:
        line = format_line(entity_name, level, message, created) + "\n"
        async with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)


def applescript_string(text: str) -> str:
    """Quote text as an AppleScript string literal."""
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class CommandChannel(NotificationChannel):
    """A channel that delivers by running an external command."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    @abstractmethod
    def build_command(self, entity_name: str, message: str, level: str) -> List[str]:
        """Argument vector for one delivery."""

    async def send(self, entity_name: str, message: str, level: str, created: float) -> None:
        cmd = self.build_command(entity_name, message, level)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise ChannelError(f"{self.name}: cannot run {cmd[0]}: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            kill_process_tree(process.pid)
            await process.wait()
            raise ChannelError(f"{self.name}: {cmd[0]} timed out after {self.timeout}s")

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() if stderr else ""
            raise ChannelError(
                f"{self.name}: {cmd[0]} exited with {process.returncode}"
                + (f": {detail}" if detail else "")
            )


class DesktopChannel(CommandChannel):
    """Desktop popup: osascript on macOS, notify-send elsewhere."""

    name = "desktop"

    def __init__(self, timeout: float = 10.0, platform: Optional[str] = None):
        super().__init__(timeout)
        self.platform = platform or sys.platform

    def build_command(self, entity_name: str, message: str, level: str) -> List[str]:
        if self.platform == "darwin":
            script = (
                f"display notification {applescript_string(message)} "
                f"with title {applescript_string(entity_name)}"
            )
            return ["osascript", "-e", script]
        urgency = "critical" if level in ("error", "approval") else "normal"
        return ["notify-send", "--urgency", urgency, "--", entity_name, message]


class SmsChannel(CommandChannel):
    """SMS/iMessage through the macOS Messages app."""

    name = "sms"

    def __init__(self, phone: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.phone = phone

    def build_command(self, entity_name: str, message: str, level: str) -> List[str]:
        text = f"{entity_name}: {message}"
        script = "\n".join([
            'tell application "Messages"',
            "    set targetService to 1st account whose service type = iMessage",
            f"    set targetBuddy to participant {applescript_string(self.phone)} of targetService",
            f"    send {applescript_string(text)} to targetBuddy",
            "end tell",
        ])
        return ["osascript", "-e", script]
