"""
Tests for task field validation
"""
from datetime import datetime, timezone

from taskmanager.tasks.models import TaskCreate, TaskUpdate
from taskmanager.tasks.validation import (
    is_valid_priority,
    validate_create,
    validate_fields,
    validate_update,
)


def fields(errors):
    return [e.field for e in errors]


class TestValidateFields:
    """Tests for validate_fields."""

    def test_valid_minimal(self):
        assert validate_fields("Buy milk", priority=3) == []

    def test_valid_full(self):
        errors = validate_fields(
            "t" * 100,
            "d" * 500,
            datetime(2026, 1, 1, tzinfo=timezone.utc),
            5,
        )
        assert errors == []

    def test_title_required(self):
        assert fields(validate_fields(None, priority=3)) == ["title"]

    def test_title_empty(self):
        assert fields(validate_fields("", priority=3)) == ["title"]

    def test_title_whitespace_only(self):
        assert fields(validate_fields("   ", priority=3)) == ["title"]

    def test_title_too_long(self):
        errors = validate_fields("t" * 101, priority=3)
        assert fields(errors) == ["title"]
        assert "100" in errors[0].message

    def test_description_too_long(self):
        assert fields(validate_fields("ok", "d" * 501, priority=3)) == ["description"]

    def test_description_none_allowed(self):
        assert validate_fields("ok", None, priority=3) == []

    def test_priority_bounds(self):
        assert fields(validate_fields("ok", priority=0)) == ["priority"]
        assert fields(validate_fields("ok", priority=6)) == ["priority"]
        assert validate_fields("ok", priority=1) == []
        assert validate_fields("ok", priority=5) == []

    def test_due_date_must_be_datetime(self):
        assert fields(validate_fields("ok", due_date="tomorrow", priority=3)) == ["dueDate"]

    def test_reports_every_violation(self):
        """All violated fields come back together, not just the first."""
        errors = validate_fields("", "d" * 501, None, 9)
        assert fields(errors) == ["title", "description", "priority"]


class TestPriorityCheck:
    """Tests for is_valid_priority."""

    def test_range(self):
        assert [p for p in range(-1, 8) if is_valid_priority(p)] == [1, 2, 3, 4, 5]

    def test_rejects_bool_and_non_int(self):
        assert is_valid_priority(True) is False
        assert is_valid_priority(3.0) is False
        assert is_valid_priority("3") is False
        assert is_valid_priority(None) is False


class TestInputValidation:
    """Tests for create/update input wrappers."""

    def test_create_defaults_valid(self):
        assert validate_create(TaskCreate(title="Write report")) == []

    def test_update_requires_boolean_completion(self):
        errors = validate_update(TaskUpdate(title="ok", priority=2, is_complete="yes"))
        assert fields(errors) == ["isComplete"]

    def test_update_collects_all(self):
        errors = validate_update(TaskUpdate(title=None, priority=7, is_complete=None))
        assert fields(errors) == ["title", "priority", "isComplete"]
