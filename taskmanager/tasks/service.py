"""
Task Manager - Task Service

Owns every business rule: validation, the completion state machine,
filtering and ordering, statistics. Transport-agnostic; each operation
returns a TaskResult instead of raising for domain outcomes.
"""
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional

from ..config.logging import get_logger, log_error
from . import mapping
from .deadline import Deadline
from .errors import (
    DeadlineExceededError,
    ErrorKind,
    FieldError,
    StoreUnavailableError,
    TaskResult,
)
from .models import (
    HIGH_PRIORITY_THRESHOLD,
    MAX_PRIORITY,
    MIN_PRIORITY,
    TaskCreate,
    TaskRecord,
    TaskStatistics,
    TaskUpdate,
    utc_now,
)
from .store import ALL_TASKS, StoreOutcome, TaskFilter, TaskStore
from .validation import is_valid_priority, validate_create, validate_update


def _by_created_desc(records: List[TaskRecord]) -> List[TaskRecord]:
    """Most recent first; id breaks ties between equal timestamps."""
    return sorted(records, key=lambda r: (r.created_date, r.id), reverse=True)


def _by_due_asc(records: List[TaskRecord]) -> List[TaskRecord]:
    """Soonest (most overdue) due date first."""
    return sorted(records, key=lambda r: (r.due_date, r.id))


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed tasks, two decimals; 0 for an empty collection."""
    if total == 0:
        return 0.0
    return round(completed / total * 100, 2)


class TaskService:
    """
    Task operations.

    State Machine (per task):
        Pending ──update(is_complete=True) / complete()──> Complete
        Complete ──update(is_complete=False)────────────> Pending

    Operations:
        - create_task(), get_task(), delete_task()
        - list_tasks(), list_by_status(), list_by_priority(), list_overdue()
        - update_task(): full replace, optimistic concurrency
        - complete_task(): idempotent
        - get_statistics(): one consistent snapshot

    Stateless apart from the injected store and clock; safe to share
    between threads.
    """

    def __init__(
        self,
        store: TaskStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize TaskService.

        Args:
            store: Task store collaborator.
            clock: Returns the current aware UTC time. Defaults to utc_now.
        """
        self._store = store
        self._clock = clock or utc_now
        self._logger = get_logger("tasks.service")

    @property
    def store(self) -> TaskStore:
        return self._store

    def _now(self) -> datetime:
        return self._clock()

    def _store_failure(self, error: Exception, context: str, **extra) -> TaskResult:
        """Record a store failure and turn it into a result."""
        if isinstance(error, DeadlineExceededError):
            self._logger.warning("%s aborted: %s", context, error)
            return TaskResult.fail(ErrorKind.DEADLINE_EXCEEDED, str(error))
        log_error(self._logger, error, context, **extra)
        return TaskResult.fail(
            ErrorKind.STORE_UNAVAILABLE, f"An error occurred while {context}"
        )

    def _not_found(self, task_id: int, action: str) -> TaskResult:
        self._logger.warning("Task with ID %s not found for %s", task_id, action)
        return TaskResult.fail(ErrorKind.NOT_FOUND, f"Task with ID {task_id} not found")

    def _list(
        self,
        task_filter: TaskFilter,
        context: str,
        deadline: Optional[Deadline],
    ) -> TaskResult:
        try:
            records = self._store.list(task_filter, deadline=deadline)
        except (StoreUnavailableError, DeadlineExceededError) as e:
            return self._store_failure(e, context)
        return TaskResult.ok(records)

    # ==================== CREATE ====================

    def create_task(
        self,
        data: TaskCreate,
        deadline: Optional[Deadline] = None,
    ) -> TaskResult:
        """
        Validate and persist a new pending task.

        Returns:
            TaskResult with the new TaskView, or VALIDATION listing every
            violated field.
        """
        errors = validate_create(data)
        if errors:
            return self._invalid(errors)

        now = self._now()
        record = mapping.new_record(data, now)

        try:
            task_id = self._store.insert(record, deadline=deadline)
        except (StoreUnavailableError, DeadlineExceededError) as e:
            return self._store_failure(e, "creating the task")

        # The task is committed from here on; reading back its token must
        # not turn that into a reported failure.
        try:
            stored = self._store.get_by_id(task_id)
        except StoreUnavailableError:
            self._logger.warning("Could not read back created task %s", task_id, exc_info=True)
            stored = None

        if stored is None:
            # Deleted or unreadable since the insert; no token to report
            stored = replace(record, id=task_id)

        self._logger.info("Created new task with ID %s", task_id)
        return TaskResult.ok(mapping.to_view(stored, now), etag=stored.concurrency_token)

    def _invalid(self, errors: List[FieldError]) -> TaskResult:
        self._logger.info(
            "Rejected invalid task input: %s",
            ", ".join(e.field for e in errors),
        )
        return TaskResult.fail(ErrorKind.VALIDATION, "One or more fields are invalid", errors)

    # ==================== READ ====================

    def get_task(self, task_id: int, deadline: Optional[Deadline] = None) -> TaskResult:
        """Fetch one task view by id."""
        try:
            record = self._store.get_by_id(task_id, deadline=deadline)
        except (StoreUnavailableError, DeadlineExceededError) as e:
            return self._store_failure(e, "retrieving the task", task_id=task_id)

        if record is None:
            return self._not_found(task_id, "retrieval")

        self._logger.info("Retrieved task with ID %s", task_id)
        return TaskResult.ok(mapping.to_view(record, self._now()), etag=record.concurrency_token)

    def list_tasks(self, deadline: Optional[Deadline] = None) -> TaskResult:
        """All tasks, newest first."""
        result = self._list(ALL_TASKS, "retrieving tasks", deadline)
        if not result.success:
            return result
        records = _by_created_desc(result.value)
        self._logger.info("Retrieved %d tasks", len(records))
        return TaskResult.ok(mapping.to_views(records, self._now()))

    def list_by_status(
        self,
        completed: bool,
        deadline: Optional[Deadline] = None,
    ) -> TaskResult:
        """Tasks whose completion flag equals `completed`, newest first."""
        result = self._list(TaskFilter(is_complete=completed), "retrieving tasks", deadline)
        if not result.success:
            return result
        records = _by_created_desc(result.value)
        self._logger.info(
            "Retrieved %d %s tasks", len(records), "completed" if completed else "pending"
        )
        return TaskResult.ok(mapping.to_views(records, self._now()))

    def list_by_priority(
        self,
        priority: int,
        deadline: Optional[Deadline] = None,
    ) -> TaskResult:
        """Tasks with exactly this priority, newest first."""
        if not is_valid_priority(priority):
            return TaskResult.fail(
                ErrorKind.INVALID_ARGUMENT,
                f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}",
                [FieldError("priority", f"{priority!r} is out of range")],
            )

        result = self._list(TaskFilter(priority=priority), "retrieving tasks", deadline)
        if not result.success:
            return result
        records = _by_created_desc(result.value)
        self._logger.info("Retrieved %d tasks with priority %s", len(records), priority)
        return TaskResult.ok(mapping.to_views(records, self._now()))

    def list_overdue(self, deadline: Optional[Deadline] = None) -> TaskResult:
        """Pending tasks due strictly before now, soonest due first."""
        now = self._now()
        result = self._list(
            TaskFilter(is_complete=False, due_before=now),
            "retrieving overdue tasks",
            deadline,
        )
        if not result.success:
            return result
        records = _by_due_asc(result.value)
        self._logger.info("Retrieved %d overdue tasks", len(records))
        return TaskResult.ok(mapping.to_views(records, now))

    # ==================== UPDATE ====================

    def update_task(
        self,
        task_id: int,
        data: TaskUpdate,
        expected_token: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> TaskResult:
        """
        Replace title, description, due date, priority and completion flag.

        Args:
            task_id: Task ID
            data: New field values
            expected_token: Token the caller last saw. If None, the token
                read here is used, which still catches a write landing
                between this read and the commit.
            deadline: Optional caller deadline

        Returns:
            TaskResult with the updated TaskView; VALIDATION, NOT_FOUND or
            CONCURRENCY_CONFLICT otherwise.
        """
        errors = validate_update(data)
        if errors:
            return self._invalid(errors)

        try:
            current = self._store.get_by_id(task_id, deadline=deadline)
            if current is None:
                return self._not_found(task_id, "update")

            now = self._now()
            updated = mapping.apply_update(current, data, now)
            token = expected_token if expected_token is not None else current.concurrency_token
            write = self._store.update_conditional(
                task_id, mapping.mutable_fields(updated), token, deadline=deadline
            )
        except (StoreUnavailableError, DeadlineExceededError) as e:
            return self._store_failure(e, "updating the task", task_id=task_id)

        if write.outcome == StoreOutcome.NOT_FOUND:
            return self._not_found(task_id, "update")
        if not write.success:
            self._logger.warning("Concurrency conflict while updating task with ID %s", task_id)
            return TaskResult.fail(
                ErrorKind.CONCURRENCY_CONFLICT, "The task was modified by another process"
            )

        if current.is_complete != updated.is_complete:
            self._logger.info(
                "Task %s moved to %s", task_id, "complete" if updated.is_complete else "pending"
            )
        self._logger.info("Updated task with ID %s", task_id)
        stored = replace(updated, concurrency_token=write.token)
        return TaskResult.ok(mapping.to_view(stored, now), etag=write.token)

    def complete_task(self, task_id: int, deadline: Optional[Deadline] = None) -> TaskResult:
        """
        Mark a task complete. Completing a complete task is a no-op that
        returns its current view.
        """
        try:
            current = self._store.get_by_id(task_id, deadline=deadline)
            if current is None:
                return self._not_found(task_id, "completion")

            if current.is_complete:
                return TaskResult.ok(
                    mapping.to_view(current, self._now()), etag=current.concurrency_token
                )

            now = self._now()
            completed = mapping.mark_complete(current, now)
            write = self._store.update_conditional(
                task_id,
                {"is_complete": True, "completed_date": completed.completed_date},
                current.concurrency_token,
                deadline=deadline,
            )

            if write.outcome == StoreOutcome.TOKEN_MISMATCH:
                # Lost a race: fine if the winner also completed it
                latest = self._store.get_by_id(task_id, deadline=deadline)
                if latest is None:
                    return self._not_found(task_id, "completion")
                if latest.is_complete:
                    return TaskResult.ok(
                        mapping.to_view(latest, self._now()), etag=latest.concurrency_token
                    )
                self._logger.warning(
                    "Concurrency conflict while completing task with ID %s", task_id
                )
                return TaskResult.fail(
                    ErrorKind.CONCURRENCY_CONFLICT, "The task was modified by another process"
                )
        except (StoreUnavailableError, DeadlineExceededError) as e:
            return self._store_failure(e, "completing the task", task_id=task_id)

        if write.outcome == StoreOutcome.NOT_FOUND:
            return self._not_found(task_id, "completion")

        self._logger.info("Marked task with ID %s as complete", task_id)
        stored = replace(completed, concurrency_token=write.token)
        return TaskResult.ok(mapping.to_view(stored, now), etag=write.token)

    # ==================== DELETE ====================

    def delete_task(self, task_id: int, deadline: Optional[Deadline] = None) -> TaskResult:
        """Remove a task permanently."""
        try:
            current = self._store.get_by_id(task_id, deadline=deadline)
            if current is None:
                return self._not_found(task_id, "deletion")
            outcome = self._store.delete(task_id, deadline=deadline)
        except (StoreUnavailableError, DeadlineExceededError) as e:
            return self._store_failure(e, "deleting the task", task_id=task_id)

        if outcome == StoreOutcome.NOT_FOUND:
            return self._not_found(task_id, "deletion")

        self._logger.info("Deleted task with ID %s", task_id)
        return TaskResult.ok(None)

    # ==================== STATISTICS ====================

    def get_statistics(self, deadline: Optional[Deadline] = None) -> TaskResult:
        """
        Collection summary drawn from one snapshot.

        Overdue and high-priority counts only consider pending tasks.
        """
        now = self._now()
        try:
            with self._store.snapshot():
                total = self._store.count(ALL_TASKS, deadline=deadline)
                completed = self._store.count(TaskFilter(is_complete=True), deadline=deadline)
                overdue = self._store.count(
                    TaskFilter(is_complete=False, due_before=now), deadline=deadline
                )
                high_priority = self._store.count(
                    TaskFilter(is_complete=False, min_priority=HIGH_PRIORITY_THRESHOLD),
                    deadline=deadline,
                )
        except (StoreUnavailableError, DeadlineExceededError) as e:
            return self._store_failure(e, "retrieving statistics")

        statistics = TaskStatistics(
            total=total,
            completed=completed,
            pending=total - completed,
            overdue=overdue,
            high_priority=high_priority,
            completion_rate=completion_rate(completed, total),
        )
        self._logger.info("Retrieved task statistics")
        return TaskResult.ok(statistics)
