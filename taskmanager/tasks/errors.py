"""
Task Manager - Error kinds and operation results

Service operations never raise for domain outcomes. They return a
TaskResult carrying either a value or a TaskError whose kind callers
branch on.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Outcome kinds a service operation can fail with."""
    VALIDATION = "validation_error"
    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    STORE_UNAVAILABLE = "store_unavailable"
    DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass(frozen=True)
class FieldError:
    """Single violated field constraint."""
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class TaskError:
    """Failure outcome of a service operation."""
    kind: ErrorKind
    message: str
    details: List[FieldError] = field(default_factory=list)


@dataclass(frozen=True)
class TaskResult(Generic[T]):
    """
    Result of a TaskService operation.

    Exactly one of value/error is meaningful: check `success` first.
    `etag` carries the record's concurrency token for single-record results.
    """
    value: Optional[T] = None
    error: Optional[TaskError] = None
    etag: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: Any = None, etag: Optional[str] = None) -> "TaskResult":
        return cls(value=value, etag=etag)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        details: Optional[List[FieldError]] = None,
    ) -> "TaskResult":
        return cls(error=TaskError(kind=kind, message=message, details=list(details or [])))


# Raised by stores; translated into results by the service


class StoreError(Exception):
    """Base exception for task store failures."""
    pass


class StoreUnavailableError(StoreError):
    """The backing store failed and the call cannot be completed."""
    pass


class DeadlineExceededError(StoreError):
    """The caller's deadline elapsed or was cancelled before the call committed."""
    pass
