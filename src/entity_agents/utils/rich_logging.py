"""Per-entity leveled logging to an append-only file and stdout."""

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Between INFO and WARNING so "task completed" lines survive an INFO threshold
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


def iso_timestamp(created: Optional[float] = None) -> str:
    """UTC ISO-8601 timestamp with millisecond precision and a Z suffix."""
    moment = (
        datetime.fromtimestamp(created, tz=timezone.utc)
        if created is not None
        else datetime.now(timezone.utc)
    )
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_line(entity_name: str, level: str, message: str, created: Optional[float] = None) -> str:
    """The shared `[timestamp] [LEVEL] name: message` line format."""
    return f"[{iso_timestamp(created)}] [{level.upper()}] {entity_name}: {message}"


class EntityLogFormatter(logging.Formatter):
    """Formats records as `[ISO-8601] [LEVEL] <entity>: <message>`."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[34m",       # Blue
        "SUCCESS": "\033[32m",    # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }

    def __init__(self, entity_name: str, use_colors: bool = False):
        super().__init__()
        self.entity_name = entity_name
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        line = format_line(self.entity_name, record.levelname, record.getMessage(), record.created)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        if self.use_colors:
            color = self.LEVEL_COLORS.get(record.levelname, "")
            if color:
                return f"{color}{line}\033[0m"
        return line


class EntityLogger(logging.LoggerAdapter):
    """Logger adapter bound to one entity, adding a success level."""

    def __init__(self, logger: logging.Logger, entity_name: str, log_path: Optional[Path] = None):
        super().__init__(logger, {"entity": entity_name})
        self.entity_name = entity_name
        self.log_path = log_path

    def success(self, msg, *args, **kwargs):
        """Log a completed milestone at the SUCCESS level."""
        self.log(SUCCESS, msg, *args, **kwargs)

    def close(self) -> None:
        """Close and detach the underlying handlers."""
        for handler in self.logger.handlers[:]:
            handler.close()
            self.logger.removeHandler(handler)


def _resolve_level(log_level: Optional[str]) -> int:
    if log_level:
        level = logging.getLevelName(log_level.upper())
        if isinstance(level, int):
            return level
        raise ValueError(f"Unknown log level: {log_level}")
    # DEBUG env var turns on debug output without touching config
    return logging.DEBUG if os.environ.get("DEBUG") else logging.INFO


def setup_entity_logging(
    entity_name: str,
    log_path: Optional[Path],
    log_level: Optional[str] = None,
    use_console: bool = True,
) -> EntityLogger:
    """
    Build the logger for one entity.

    Args:
        entity_name: Display name used in every line
        log_path: Append-only log file; parent directories are created.
            None disables the file handler.
        log_level: Level name (DEBUG, INFO, ...); defaults to INFO, or DEBUG
            when the DEBUG environment variable is set
        use_console: Also write to stdout

    Returns:
        EntityLogger instance
    """
    # PID keeps loggers of separate processes sharing a name from colliding
    logger = logging.getLogger(f"entity_agents.entity.{entity_name}-{os.getpid()}")
    level = _resolve_level(log_level)
    logger.setLevel(level)

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    if use_console:
        use_colors = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(EntityLogFormatter(entity_name, use_colors=use_colors))
        logger.addHandler(console_handler)

    if log_path is not None:
        log_path = Path(log_path).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(EntityLogFormatter(entity_name, use_colors=False))
        logger.addHandler(file_handler)

    return EntityLogger(logger, entity_name, log_path)
