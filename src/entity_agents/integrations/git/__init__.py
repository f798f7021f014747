"""Git integration."""

from .client import GitClient, parse_porcelain

__all__ = ["GitClient", "parse_porcelain"]
