"""
API Models (Pydantic)

Request/Response schemas for the API. JSON keys are camelCase.
Field rules (length, priority range) are enforced by the task core so
that every violation is reported together; these models only shape data.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..tasks.models import (
    DEFAULT_PRIORITY,
    TaskCreate,
    TaskStatistics,
    TaskUpdate,
    TaskView,
)


class CamelModel(BaseModel):
    """Base model serializing to camelCase, accepting either case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Tasks
# =============================================================================

class TaskCreateRequest(CamelModel):
    """Create a new task."""
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: int = DEFAULT_PRIORITY

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "description": "2 litres, semi-skimmed",
                "dueDate": "2026-10-20T18:00:00Z",
                "priority": 4,
            }
        },
    )

    def to_input(self) -> TaskCreate:
        return TaskCreate(
            title=self.title,
            description=self.description,
            due_date=self.due_date,
            priority=self.priority,
        )


class TaskUpdateRequest(CamelModel):
    """Full replacement of a task's editable fields."""
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: int = DEFAULT_PRIORITY
    is_complete: bool = False

    def to_input(self) -> TaskUpdate:
        return TaskUpdate(
            title=self.title,
            description=self.description,
            due_date=self.due_date,
            priority=self.priority,
            is_complete=self.is_complete,
        )


class TaskResponse(CamelModel):
    """Task as returned to clients."""
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

    @classmethod
    def from_view(cls, view: TaskView) -> "TaskResponse":
        return cls(**view.to_dict())


class TaskStatisticsResponse(CamelModel):
    """Collection summary."""
    total: int
    completed: int
    pending: int
    overdue: int
    high_priority: int
    completion_rate: float

    @classmethod
    def from_statistics(cls, stats: TaskStatistics) -> "TaskStatisticsResponse":
        return cls(**stats.to_dict())


# =============================================================================
# Common
# =============================================================================

class ErrorDetail(BaseModel):
    """Single invalid field."""
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error response."""
    success: bool = False
    error: str
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)
