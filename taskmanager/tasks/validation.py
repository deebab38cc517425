"""
Field validation for incoming task data.

Pure functions: every violated field is reported, not only the first.
"""
from datetime import datetime
from typing import Any, List

from .errors import FieldError
from .models import (
    DESCRIPTION_MAX_LENGTH,
    MAX_PRIORITY,
    MIN_PRIORITY,
    TITLE_MAX_LENGTH,
    TaskCreate,
    TaskUpdate,
)


def is_valid_priority(priority: Any) -> bool:
    """True for an int (not bool) within the priority range."""
    return (
        isinstance(priority, int)
        and not isinstance(priority, bool)
        and MIN_PRIORITY <= priority <= MAX_PRIORITY
    )


def validate_fields(
    title: Any,
    description: Any = None,
    due_date: Any = None,
    priority: Any = None,
) -> List[FieldError]:
    """
    Check candidate task fields.

    Returns:
        List of violations, empty when the input is valid.
    """
    errors: List[FieldError] = []

    if title is None:
        errors.append(FieldError("title", "Title is required"))
    elif not isinstance(title, str):
        errors.append(FieldError("title", "Title must be a string"))
    elif not title.strip():
        errors.append(FieldError("title", "Title must not be empty"))
    elif len(title) > TITLE_MAX_LENGTH:
        errors.append(FieldError(
            "title", f"Title must be at most {TITLE_MAX_LENGTH} characters"
        ))

    if description is not None:
        if not isinstance(description, str):
            errors.append(FieldError("description", "Description must be a string"))
        elif len(description) > DESCRIPTION_MAX_LENGTH:
            errors.append(FieldError(
                "description",
                f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
            ))

    if due_date is not None and not isinstance(due_date, datetime):
        errors.append(FieldError("dueDate", "Due date must be a datetime"))

    if not is_valid_priority(priority):
        errors.append(FieldError(
            "priority", f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}"
        ))

    return errors


def validate_create(data: TaskCreate) -> List[FieldError]:
    return validate_fields(data.title, data.description, data.due_date, data.priority)


def validate_update(data: TaskUpdate) -> List[FieldError]:
    errors = validate_fields(data.title, data.description, data.due_date, data.priority)
    if not isinstance(data.is_complete, bool):
        errors.append(FieldError("isComplete", "isComplete must be a boolean"))
    return errors
