"""Shared utility functions for entity agents."""

from .atomic_io import atomic_write_models, atomic_write_text
from .error_handling import log_and_ignore
from .process_utils import kill_process_tree
from .subprocess_utils import (
    SubprocessError,
    check_command_exists,
    run_command,
    run_gh_command,
    run_git_command,
)
from .validators import normalize_entity_name, validate_branch_name, validate_owner_repo

__all__ = [
    # Atomic I/O
    "atomic_write_models",
    "atomic_write_text",
    # Error handling
    "log_and_ignore",
    # Processes
    "kill_process_tree",
    "SubprocessError",
    "check_command_exists",
    "run_command",
    "run_gh_command",
    "run_git_command",
    # Validation
    "normalize_entity_name",
    "validate_branch_name",
    "validate_owner_repo",
]
