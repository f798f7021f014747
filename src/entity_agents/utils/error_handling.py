"""Helpers for the swallow-and-log error policy of integration code."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def log_and_ignore(
    error: BaseException,
    message: str,
    *,
    logger_instance: Optional[logging.Logger] = None,
    level: int = logging.WARNING,
) -> None:
    """
    Log an error and ignore it (don't re-raise).

    Use for non-critical errors that must not interrupt the caller, such as
    a notification channel failing.
    """
    log = logger_instance or logger
    log.log(level, f"{message}: {error}")

