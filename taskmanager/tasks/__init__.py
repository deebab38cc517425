"""
Task Manager - Task Core

Validation, mapping, the completion state machine and statistics for
task records, plus the stores they persist in.
"""
from .models import (
    TaskRecord,
    TaskView,
    TaskCreate,
    TaskUpdate,
    TaskStatistics,
    PRIORITY_LABELS,
)
from .errors import (
    ErrorKind,
    FieldError,
    TaskError,
    TaskResult,
    StoreError,
    StoreUnavailableError,
    DeadlineExceededError,
)
from .deadline import Deadline
from .store import TaskStore, InMemoryTaskStore, TaskFilter, StoreOutcome, WriteResult
from .sqlite_store import SqliteTaskStore
from .service import TaskService

__all__ = [
    "TaskRecord",
    "TaskView",
    "TaskCreate",
    "TaskUpdate",
    "TaskStatistics",
    "PRIORITY_LABELS",
    "ErrorKind",
    "FieldError",
    "TaskError",
    "TaskResult",
    "StoreError",
    "StoreUnavailableError",
    "DeadlineExceededError",
    "Deadline",
    "TaskStore",
    "InMemoryTaskStore",
    "TaskFilter",
    "StoreOutcome",
    "WriteResult",
    "SqliteTaskStore",
    "TaskService",
]
