"""GitHub integration via the gh CLI."""

from .client import GitHubClient, filter_relevant

__all__ = ["GitHubClient", "filter_relevant"]
