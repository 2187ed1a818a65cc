"""Data models for tempsweep."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Kind of progress event emitted by the sweep engine."""

    INFO = "info"  # Size of one measured target
    DELETED = "deleted"  # File removed
    DELETED_EMPTY_DIR = "deleted_empty_dir"  # Empty directory removed
    WARNING = "warning"  # Item skipped, sweep continues


class SweepState(str, Enum):
    """Lifecycle of a single engine operation."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProgressEvent(BaseModel):
    """One unit of human-readable status from a worker."""

    kind: EventKind = Field(..., description="What happened")
    path: str = Field(..., description="Target path or descendant the event is about")
    size: Optional[int] = Field(None, description="Size in bytes, when known")
    message: Optional[str] = Field(None, description="Short reason for warnings")

    @classmethod
    def info(cls, path: str, size: int) -> "ProgressEvent":
        return cls(kind=EventKind.INFO, path=path, size=size)

    @classmethod
    def deleted(cls, path: str, size: int) -> "ProgressEvent":
        return cls(kind=EventKind.DELETED, path=path, size=size)

    @classmethod
    def deleted_empty_dir(cls, path: str) -> "ProgressEvent":
        return cls(kind=EventKind.DELETED_EMPTY_DIR, path=path)

    @classmethod
    def warning(cls, path: str, message: str) -> "ProgressEvent":
        return cls(kind=EventKind.WARNING, path=path, message=message)


class SweepResult(BaseModel):
    """Outcome of a measure -> delete -> measure cycle."""

    group: str = Field("", description="Name the sweep was started under")
    size_before: int = Field(..., ge=0, description="Aggregate size before deleting")
    size_after: int = Field(..., ge=0, description="Aggregate size after deleting")
    deleted_bytes: int = Field(0, ge=0, description="Sum of sizes of files actually deleted")
    cancelled: bool = Field(False, description="Whether cancellation cut the run short")

    @property
    def reclaimed(self) -> int:
        """Bytes reclaimed, clamped at zero when targets grew during the sweep."""
        return max(0, self.size_before - self.size_after)


class TargetGroup(BaseModel):
    """A named list of target path templates."""

    name: str = Field(..., description="Group name shown to the user")
    paths: list[str] = Field(default_factory=list, description="Path templates")


@dataclass(frozen=True)
class ItemOutcome:
    """Result of deleting a single file or directory.

    Either ``ok`` with the number of bytes freed, or skipped with a reason.
    """

    ok: bool
    size: int = 0
    reason: str | None = None

    @classmethod
    def done(cls, size: int = 0) -> "ItemOutcome":
        return cls(ok=True, size=size)

    @classmethod
    def skipped(cls, reason: str) -> "ItemOutcome":
        return cls(ok=False, reason=reason)
