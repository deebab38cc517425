"""
Task Manager - Task Models

Data classes for stored task records, their external views, operation
inputs and collection statistics.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional


MIN_PRIORITY = 1
MAX_PRIORITY = 5
DEFAULT_PRIORITY = 3
HIGH_PRIORITY_THRESHOLD = 4

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

PRIORITY_LABELS = {
    1: "Low",
    2: "Below Normal",
    3: "Normal",
    4: "High",
    5: "Critical",
}
UNKNOWN_PRIORITY_LABEL = "Unknown"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TaskRecord:
    """
    Persisted task entity.

    `id` and `concurrency_token` are None until the store assigns them.
    """
    id: Optional[int]
    title: str
    description: Optional[str] = None
    is_complete: bool = False
    created_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    priority: int = DEFAULT_PRIORITY
    concurrency_token: Optional[str] = None


@dataclass(frozen=True)
class TaskView:
    """Externally visible task, with fields derived at mapping time."""
    id: int
    title: str
    description: Optional[str]
    is_complete: bool
    created_date: datetime
    due_date: Optional[datetime]
    completed_date: Optional[datetime]
    priority: int
    priority_text: str
    is_overdue: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TaskCreate:
    """Input for creating a task."""
    title: Any
    description: Any = None
    due_date: Any = None
    priority: Any = DEFAULT_PRIORITY


@dataclass(frozen=True)
class TaskUpdate:
    """Input for a full-field task update."""
    title: Any
    description: Any = None
    due_date: Any = None
    priority: Any = DEFAULT_PRIORITY
    is_complete: Any = False


@dataclass(frozen=True)
class TaskStatistics:
    """Point-in-time summary of the task collection."""
    total: int
    completed: int
    pending: int
    overdue: int
    high_priority: int
    completion_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
