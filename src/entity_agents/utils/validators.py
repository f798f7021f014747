"""Validation utilities for branch names, entity names and repo references."""

import re


def validate_branch_name(branch_name: str) -> str:
    """
    Validate a git branch name before it reaches a git command line.

    Raises:
        ValueError: If branch name is invalid
    """
    if not branch_name:
        raise ValueError("Branch name cannot be empty")

    # Strict whitelist; also rules out option injection via a leading dash
    if not re.match(r'^[a-zA-Z0-9][a-zA-Z0-9/._-]*$', branch_name):
        raise ValueError(f"Invalid branch name: {branch_name}")

    if branch_name.endswith('/') or branch_name.endswith('.lock'):
        raise ValueError(f"Invalid branch name: {branch_name}")

    if '..' in branch_name or '@{' in branch_name or '//' in branch_name:
        raise ValueError("Branch name contains invalid sequence")

    if len(branch_name) > 255:
        raise ValueError("Branch name too long")

    return branch_name


def normalize_entity_name(name: str) -> str:
    """Registry key for an entity name: lower-case, spaces and dashes removed."""
    return re.sub(r'[\s-]', '', name).lower()


def validate_owner_repo(owner: str, repo: str) -> str:
    """
    Validate and join an owner/repo pair for gh's -R flag.

    Raises:
        ValueError: If either half is malformed
    """
    owner_repo = f"{owner}/{repo}"
    if not re.match(r'^[a-zA-Z0-9_-]+/[a-zA-Z0-9_.-]+$', owner_repo):
        raise ValueError(
            f"Invalid repository format: {owner_repo}. Must be 'owner/repo'"
        )
    if '..' in owner_repo:
        raise ValueError(f"Invalid repository name: {owner_repo}")
    return owner_repo
