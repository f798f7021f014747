"""Best-effort status notifications."""

from .channels import (
    ChannelError,
    CommandChannel,
    DesktopChannel,
    FileChannel,
    NotificationChannel,
    SmsChannel,
)
from .fanout import NotificationFanout

__all__ = [
    "ChannelError",
    "CommandChannel",
    "DesktopChannel",
    "FileChannel",
    "NotificationChannel",
    "NotificationFanout",
    "SmsChannel",
]
