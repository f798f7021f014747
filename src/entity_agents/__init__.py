"""Autonomous worker entities that delegate engineering tasks to a CLI engine."""

__version__ = "0.1.0"
