"""Core models and configuration."""

from .config import EntityConfig, FrameworkSettings, load_entities, load_settings
from .models import (
    ApprovalRequest,
    CommandResult,
    CommitResult,
    EntityStatus,
    TaskResult,
    TrackedIssue,
)
from .prompts import PromptTemplate

__all__ = [
    "EntityConfig",
    "FrameworkSettings",
    "load_entities",
    "load_settings",
    "ApprovalRequest",
    "CommandResult",
    "CommitResult",
    "EntityStatus",
    "TaskResult",
    "TrackedIssue",
    "PromptTemplate",
]
