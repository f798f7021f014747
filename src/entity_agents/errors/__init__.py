"""Exceptions that signal caller or configuration errors.

Runtime failures of the engine, git, gh or notification channels are never
raised; they come back as TaskResult/CommandResult values. Only the
programmer-error category below propagates.
"""


class EntityAgentsError(Exception):
    """Base class for all entity_agents exceptions."""


class UnknownEntityError(EntityAgentsError, KeyError):
    """Raised when an entity name is not in the registry."""

    def __init__(self, name: str, available):
        self.name = name
        self.available = sorted(available)
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown entity: {self.name}. Available: {', '.join(self.available)}"


class UnknownOperationError(EntityAgentsError, KeyError):
    """Raised when an entity has no prompt template with the requested name."""

    def __init__(self, entity: str, operation: str, available):
        self.entity = entity
        self.operation = operation
        self.available = sorted(available)
        super().__init__(operation)

    def __str__(self) -> str:
        known = ", ".join(self.available) or "none"
        return f"{self.entity} has no operation '{self.operation}'. Available: {known}"


__all__ = ["EntityAgentsError", "UnknownEntityError", "UnknownOperationError"]
