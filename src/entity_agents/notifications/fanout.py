"""Best-effort fan-out of status messages to every enabled channel."""

import asyncio
import logging
import time
from pathlib import Path
from typing import List, Optional, Sequence

from ..core.config import NotificationConfig
from ..utils.error_handling import log_and_ignore
from .channels import DesktopChannel, FileChannel, NotificationChannel, SmsChannel

logger = logging.getLogger(__name__)


class NotificationFanout:
    """Delivers one message to all channels concurrently and never raises.

    Each notify() waits for every channel to settle; a failing channel is
    logged at WARNING and does not affect the others or the caller.
    """

    def __init__(
        self,
        entity_name: str,
        channels: Sequence[NotificationChannel],
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.entity_name = entity_name
        self.channels: List[NotificationChannel] = list(channels)
        self._log = logger_instance or logger

    @classmethod
    def from_config(
        cls,
        entity_name: str,
        config: NotificationConfig,
        file_path: Path,
        logger_instance: Optional[logging.Logger] = None,
    ) -> "NotificationFanout":
        channels: List[NotificationChannel] = []
        if config.file_enabled:
            channels.append(FileChannel(file_path))
        if config.desktop_enabled:
            channels.append(DesktopChannel(timeout=config.command_timeout))
        if config.sms_enabled and config.sms_phone:
            channels.append(SmsChannel(config.sms_phone, timeout=config.command_timeout))
        return cls(entity_name, channels, logger_instance)

    async def notify(self, message: str, level: str = "info") -> None:
        if not self.channels:
            return

        created = time.time()
        results = await asyncio.gather(
            *(channel.send(self.entity_name, message, level, created) for channel in self.channels),
            return_exceptions=True,
        )
        for channel, result in zip(self.channels, results):
            if isinstance(result, BaseException):
                log_and_ignore(
                    result,
                    f"{channel.name} notification failed",
                    logger_instance=self._log,
                )
