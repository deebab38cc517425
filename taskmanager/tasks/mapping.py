"""
Record <-> view mapping.

Derived fields (priority_text, is_overdue) are computed here on every
call and never stored. Nothing in this module mutates its input.
"""
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .models import (
    PRIORITY_LABELS,
    UNKNOWN_PRIORITY_LABEL,
    TaskCreate,
    TaskRecord,
    TaskUpdate,
    TaskView,
    ensure_utc,
    utc_now,
)


def priority_text(priority: int) -> str:
    """Human label for a priority level."""
    return PRIORITY_LABELS.get(priority, UNKNOWN_PRIORITY_LABEL)


def is_overdue(
    due_date: Optional[datetime],
    is_complete: bool,
    now: datetime,
) -> bool:
    """Overdue: has a due date strictly in the past and is not complete."""
    if due_date is None or is_complete:
        return False
    return ensure_utc(due_date) < ensure_utc(now)


def to_view(record: TaskRecord, now: Optional[datetime] = None) -> TaskView:
    """Convert a stored record to its external view."""
    if now is None:
        now = utc_now()
    return TaskView(
        id=record.id,
        title=record.title,
        description=record.description,
        is_complete=record.is_complete,
        created_date=record.created_date,
        due_date=record.due_date,
        completed_date=record.completed_date,
        priority=record.priority,
        priority_text=priority_text(record.priority),
        is_overdue=is_overdue(record.due_date, record.is_complete, now),
    )


def to_views(records: Iterable[TaskRecord], now: Optional[datetime] = None) -> List[TaskView]:
    """Map many records against the same point in time."""
    if now is None:
        now = utc_now()
    return [to_view(r, now) for r in records]


def new_record(data: TaskCreate, now: datetime) -> TaskRecord:
    """Build the record for a validated create input."""
    return TaskRecord(
        id=None,
        title=data.title,
        description=data.description,
        is_complete=False,
        created_date=ensure_utc(now),
        due_date=ensure_utc(data.due_date),
        completed_date=None,
        priority=data.priority,
    )


def apply_update(record: TaskRecord, data: TaskUpdate, now: datetime) -> TaskRecord:
    """
    Full-field replace with completion bookkeeping.

    Pending -> Complete stamps completed_date with `now`;
    Complete -> Pending clears it; otherwise it is kept.
    """
    completed_date = record.completed_date
    if data.is_complete and not record.is_complete:
        completed_date = ensure_utc(now)
    elif not data.is_complete and record.is_complete:
        completed_date = None

    return replace(
        record,
        title=data.title,
        description=data.description,
        due_date=ensure_utc(data.due_date),
        priority=data.priority,
        is_complete=data.is_complete,
        completed_date=completed_date,
    )


def mark_complete(record: TaskRecord, now: datetime) -> TaskRecord:
    """Pending -> Complete. A complete record is returned unchanged."""
    if record.is_complete:
        return record
    return replace(record, is_complete=True, completed_date=ensure_utc(now))


def mutable_fields(record: TaskRecord) -> Dict[str, Any]:
    """Fields a conditional store update writes."""
    return {
        "title": record.title,
        "description": record.description,
        "is_complete": record.is_complete,
        "due_date": record.due_date,
        "completed_date": record.completed_date,
        "priority": record.priority,
    }
