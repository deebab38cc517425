"""
Task Store

Abstract interface the service consumes, plus an in-memory implementation.

Every store:
    - assigns ids on insert and never reuses them
    - changes the concurrency token on every successful mutation
    - offers snapshot() so several reads observe one point in time
"""
import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .deadline import Deadline, check_deadline
from .models import TaskRecord, ensure_utc


_logger = logging.getLogger("taskmanager.store")

UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "is_complete",
    "due_date",
    "completed_date",
    "priority",
})


def new_token() -> str:
    """Fresh opaque concurrency token."""
    return uuid.uuid4().hex


class StoreOutcome(str, Enum):
    """Result of a store mutation."""
    SUCCESS = "success"
    TOKEN_MISMATCH = "token_mismatch"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a conditional update, with the new token on success."""
    outcome: StoreOutcome
    token: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == StoreOutcome.SUCCESS


@dataclass(frozen=True)
class TaskFilter:
    """
    Conjunctive predicate over task records. Unset fields match anything.

    due_before implies the due date is present and strictly earlier.
    """
    is_complete: Optional[bool] = None
    priority: Optional[int] = None
    min_priority: Optional[int] = None
    due_before: Optional[datetime] = None

    def matches(self, record: TaskRecord) -> bool:
        if self.is_complete is not None and record.is_complete != self.is_complete:
            return False
        if self.priority is not None and record.priority != self.priority:
            return False
        if self.min_priority is not None and record.priority < self.min_priority:
            return False
        if self.due_before is not None:
            if record.due_date is None:
                return False
            if not ensure_utc(record.due_date) < ensure_utc(self.due_before):
                return False
        return True


ALL_TASKS = TaskFilter()


class TaskStore(ABC):
    """Durable CRUD + query primitive keyed by task id."""

    @abstractmethod
    def insert(self, record: TaskRecord, deadline: Optional[Deadline] = None) -> int:
        """Persist a new record and return its assigned id."""

    @abstractmethod
    def get_by_id(self, task_id: int, deadline: Optional[Deadline] = None) -> Optional[TaskRecord]:
        """Fetch a record or None."""

    @abstractmethod
    def list(
        self,
        task_filter: TaskFilter = ALL_TASKS,
        deadline: Optional[Deadline] = None,
    ) -> List[TaskRecord]:
        """Records matching the filter, in id order."""

    def list_all(self, deadline: Optional[Deadline] = None) -> List[TaskRecord]:
        return self.list(ALL_TASKS, deadline=deadline)

    @abstractmethod
    def update_conditional(
        self,
        task_id: int,
        fields: Dict[str, Any],
        expected_token: str,
        deadline: Optional[Deadline] = None,
    ) -> WriteResult:
        """Write fields only if the record's token still equals expected_token."""

    @abstractmethod
    def delete(self, task_id: int, deadline: Optional[Deadline] = None) -> StoreOutcome:
        """Remove a record permanently."""

    @abstractmethod
    def count(
        self,
        task_filter: TaskFilter = ALL_TASKS,
        deadline: Optional[Deadline] = None,
    ) -> int:
        """Number of records matching the filter."""

    @abstractmethod
    @contextmanager
    def snapshot(self) -> Iterator[None]:
        """Reads inside the block observe one consistent point in time."""

    def ping(self) -> bool:
        """Cheap reachability check for health endpoints."""
        return True

    def close(self) -> None:
        return None


def check_updatable_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not updatable: {sorted(unknown)}")


class InMemoryTaskStore(TaskStore):
    """
    Thread-safe in-memory store.

    A single re-entrant lock guards the map; snapshot() holds it for the
    whole block so concurrent writers wait until the reads are done.
    """

    def __init__(self):
        self._records: Dict[int, TaskRecord] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def insert(self, record: TaskRecord, deadline: Optional[Deadline] = None) -> int:
        with self._lock:
            check_deadline(deadline)
            task_id = self._next_id
            self._next_id += 1
            self._records[task_id] = replace(record, id=task_id, concurrency_token=new_token())
        _logger.debug("Inserted task id=%s", task_id)
        return task_id

    def get_by_id(self, task_id: int, deadline: Optional[Deadline] = None) -> Optional[TaskRecord]:
        with self._lock:
            check_deadline(deadline)
            return self._records.get(task_id)

    def list(
        self,
        task_filter: TaskFilter = ALL_TASKS,
        deadline: Optional[Deadline] = None,
    ) -> List[TaskRecord]:
        with self._lock:
            check_deadline(deadline)
            return [
                self._records[task_id]
                for task_id in sorted(self._records)
                if task_filter.matches(self._records[task_id])
            ]

    def update_conditional(
        self,
        task_id: int,
        fields: Dict[str, Any],
        expected_token: str,
        deadline: Optional[Deadline] = None,
    ) -> WriteResult:
        check_updatable_fields(fields)
        with self._lock:
            check_deadline(deadline)
            current = self._records.get(task_id)
            if current is None:
                return WriteResult(StoreOutcome.NOT_FOUND)
            if current.concurrency_token != expected_token:
                return WriteResult(StoreOutcome.TOKEN_MISMATCH)
            token = new_token()
            self._records[task_id] = replace(
                current, concurrency_token=token, **copy.deepcopy(fields)
            )
            return WriteResult(StoreOutcome.SUCCESS, token)

    def delete(self, task_id: int, deadline: Optional[Deadline] = None) -> StoreOutcome:
        with self._lock:
            check_deadline(deadline)
            if self._records.pop(task_id, None) is None:
                return StoreOutcome.NOT_FOUND
            return StoreOutcome.SUCCESS

    def count(
        self,
        task_filter: TaskFilter = ALL_TASKS,
        deadline: Optional[Deadline] = None,
    ) -> int:
        with self._lock:
            check_deadline(deadline)
            return sum(1 for r in self._records.values() if task_filter.matches(r))

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        with self._lock:
            yield
