"""Shared data model for entities, the task runner and the integration clients."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

T = TypeVar("T")

DEFAULT_APPROVAL_OPTIONS = ["Approve", "Reject", "Modify"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskResult(BaseModel):
    """Outcome of one engine invocation.

    The runner fills success/output/duration; callers may set
    commit_hash, files_changed and the approval fields afterwards.
    """

    success: bool
    output: str
    files_changed: List[str] = Field(default_factory=list)
    duration_ms: int = 0
    commit_hash: Optional[str] = None
    needs_approval: bool = False
    approval_prompt: Optional[str] = None
    timed_out: bool = False

    @model_validator(mode="after")
    def failure_has_output(self) -> "TaskResult":
        if not self.success and not self.output.strip():
            raise ValueError("A failed TaskResult must describe the failure in output")
        return self


class ApprovalRequest(BaseModel):
    """A recorded request for human sign-off. Advisory only."""

    id: str
    description: str
    details: str
    options: List[str] = Field(default_factory=lambda: list(DEFAULT_APPROVAL_OPTIONS))
    created_at: datetime = Field(default_factory=_utcnow)
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @field_validator("options")
    @classmethod
    def options_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("An approval request needs at least one response option")
        return v


class CommitResult(BaseModel):
    """Result of a commit attempt. hash is None when nothing was committed."""

    hash: Optional[str] = None
    files: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def hash_implies_files(self) -> "CommitResult":
        if self.hash is not None and not self.files:
            raise ValueError("A commit hash requires a non-empty file list")
        return self

    @property
    def committed(self) -> bool:
        return self.hash is not None


class IssueState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class TrackedIssue(BaseModel):
    """Read-only projection of one tracker issue."""

    number: int
    title: str
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    state: IssueState = IssueState.OPEN
    assignees: List[str] = Field(default_factory=list)

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, v: Any) -> Any:
        # gh reports OPEN/CLOSED
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("body", mode="before")
    @classmethod
    def body_none_to_empty(cls, v: Any) -> Any:
        return v or ""

    @classmethod
    def from_gh(cls, payload: dict) -> "TrackedIssue":
        """Build from `gh issue ... --json number,title,body,labels,state,assignees`."""
        return cls(
            number=payload["number"],
            title=payload.get("title", ""),
            body=payload.get("body"),
            labels=[_name_of(label, "name") for label in payload.get("labels") or []],
            state=payload.get("state", "open"),
            assignees=[_name_of(user, "login") for user in payload.get("assignees") or []],
        )


def _name_of(item: Any, key: str) -> str:
    if isinstance(item, dict):
        return str(item.get(key, ""))
    return str(item)


class EntityStatus(BaseModel):
    """Point-in-time summary of an entity, computed on demand."""

    name: str
    role: str
    tasks_completed: int
    tasks_succeeded: int
    owned_paths: List[str] = Field(default_factory=list)
    is_running: bool = False
    pending_approvals: int = 0


@dataclass
class CommandResult(Generic[T]):
    """Typed outcome of one git/gh call.

    Truthiness follows ok, so `if client.push():` reads naturally while the
    failure reason stays inspectable via error.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Optional[T] = None) -> "CommandResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "CommandResult[T]":
        return cls(ok=False, error=error)
