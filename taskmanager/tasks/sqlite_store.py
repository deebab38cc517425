"""
SQLite Task Store

TaskStore on top of the shared Database helper. Conditional updates run
in a write transaction: the token comparison and the write are one
statement, and the follow-up existence check sees the same state.
"""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..storage import Database, from_db_timestamp, now_iso, run_migrations, to_db_timestamp
from .deadline import Deadline, check_deadline
from .errors import DeadlineExceededError, StoreUnavailableError
from .models import TaskRecord
from .store import (
    ALL_TASKS,
    StoreOutcome,
    TaskFilter,
    TaskStore,
    WriteResult,
    check_updatable_fields,
    new_token,
)


_logger = logging.getLogger("taskmanager.store.sqlite")


def _row_to_record(row) -> TaskRecord:
    """Convert DB row to TaskRecord."""
    data = dict(row)
    return TaskRecord(
        id=data["id"],
        title=data["title"],
        description=data.get("description"),
        is_complete=bool(data.get("is_complete", 0)),
        created_date=from_db_timestamp(data["created_date"]),
        due_date=from_db_timestamp(data.get("due_date")),
        completed_date=from_db_timestamp(data.get("completed_date")),
        priority=int(data.get("priority", 3)),
        concurrency_token=data.get("concurrency_token"),
    )


def _to_db_value(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return to_db_timestamp(value)
    return value


def _filter_sql(task_filter: TaskFilter) -> Tuple[str, List[Any]]:
    """Translate a TaskFilter into a WHERE clause."""
    conditions: List[str] = []
    params: List[Any] = []

    if task_filter.is_complete is not None:
        conditions.append("is_complete = ?")
        params.append(int(task_filter.is_complete))

    if task_filter.priority is not None:
        conditions.append("priority = ?")
        params.append(task_filter.priority)

    if task_filter.min_priority is not None:
        conditions.append("priority >= ?")
        params.append(task_filter.min_priority)

    if task_filter.due_before is not None:
        conditions.append("due_date IS NOT NULL AND due_date < ?")
        params.append(to_db_timestamp(task_filter.due_before))

    where = " AND ".join(conditions) if conditions else "1 = 1"
    return where, params


class SqliteTaskStore(TaskStore):
    """
    Durable task store.

    Args:
        db: Database instance. If None, creates default from settings.
    """

    def __init__(self, db: Optional[Database] = None):
        try:
            self._db = db if db is not None else Database()
            run_migrations(self._db.connection)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"task database unavailable: {e}") from e

    @classmethod
    def open(
        cls,
        db_path: Union[str, Path],
        wal_mode: Optional[bool] = None,
        busy_timeout_ms: Optional[int] = None,
    ) -> "SqliteTaskStore":
        """
        Open the database file and build a store on it.

        Raises:
            StoreUnavailableError: the file is locked or cannot be opened.
        """
        try:
            db = Database(db_path, wal_mode=wal_mode, busy_timeout_ms=busy_timeout_ms)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"cannot open task database {db_path}: {e}") from e
        return cls(db)

    @property
    def db(self) -> Database:
        return self._db

    @contextmanager
    def _guard(self, deadline: Optional[Deadline], action: str) -> Iterator[None]:
        """Enforce the deadline and translate sqlite errors into store errors."""
        check_deadline(deadline)
        should_stop = (lambda: deadline.expired) if deadline is not None else None
        try:
            with self._db.interrupt_when(should_stop):
                yield
        except sqlite3.OperationalError as e:
            if deadline is not None and deadline.expired:
                raise DeadlineExceededError(f"{action} interrupted: {e}") from e
            raise StoreUnavailableError(f"{action} failed: {e}") from e
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"{action} failed: {e}") from e

    # ==================== WRITES ====================

    def insert(self, record: TaskRecord, deadline: Optional[Deadline] = None) -> int:
        created = to_db_timestamp(record.created_date) if record.created_date else now_iso()
        with self._guard(deadline, "insert"):
            task_id = self._db.execute(
                """INSERT INTO tasks
                   (title, description, is_complete, completed_date, priority,
                    created_date, due_date, concurrency_token)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.title,
                    record.description,
                    int(record.is_complete),
                    to_db_timestamp(record.completed_date),
                    record.priority,
                    created,
                    to_db_timestamp(record.due_date),
                    new_token(),
                )
            )
        _logger.debug("Inserted task id=%s", task_id)
        return task_id

    def update_conditional(
        self,
        task_id: int,
        fields: Dict[str, Any],
        expected_token: str,
        deadline: Optional[Deadline] = None,
    ) -> WriteResult:
        check_updatable_fields(fields)
        names = list(fields)
        token = new_token()
        assignments = ", ".join(f"{name} = ?" for name in names)
        params = [_to_db_value(fields[name]) for name in names]

        with self._guard(deadline, "update"):
            with self._db.transaction():
                rowcount = self._db.execute_rowcount(
                    f"""UPDATE tasks
                        SET {assignments}{', ' if assignments else ''}concurrency_token = ?
                        WHERE id = ? AND concurrency_token = ?""",
                    (*params, token, task_id, expected_token)
                )
                if rowcount == 1:
                    return WriteResult(StoreOutcome.SUCCESS, token)

                exists = self._db.fetch_value(
                    "SELECT 1 FROM tasks WHERE id = ?", (task_id,), default=None
                )

        if exists is None:
            return WriteResult(StoreOutcome.NOT_FOUND)
        return WriteResult(StoreOutcome.TOKEN_MISMATCH)

    def delete(self, task_id: int, deadline: Optional[Deadline] = None) -> StoreOutcome:
        with self._guard(deadline, "delete"):
            rowcount = self._db.execute_rowcount("DELETE FROM tasks WHERE id = ?", (task_id,))
        if rowcount == 0:
            return StoreOutcome.NOT_FOUND
        return StoreOutcome.SUCCESS

    # ==================== READS ====================

    def get_by_id(self, task_id: int, deadline: Optional[Deadline] = None) -> Optional[TaskRecord]:
        with self._guard(deadline, "get"):
            row = self._db.fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return _row_to_record(row) if row is not None else None

    def list(
        self,
        task_filter: TaskFilter = ALL_TASKS,
        deadline: Optional[Deadline] = None,
    ) -> List[TaskRecord]:
        where, params = _filter_sql(task_filter)
        with self._guard(deadline, "list"):
            rows = self._db.fetch_all(
                f"SELECT * FROM tasks WHERE {where} ORDER BY id ASC", tuple(params)
            )
        return [_row_to_record(row) for row in rows]

    def count(
        self,
        task_filter: TaskFilter = ALL_TASKS,
        deadline: Optional[Deadline] = None,
    ) -> int:
        where, params = _filter_sql(task_filter)
        with self._guard(deadline, "count"):
            return int(self._db.fetch_value(
                f"SELECT COUNT(*) FROM tasks WHERE {where}", tuple(params), default=0
            ))

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        try:
            with self._db.snapshot():
                yield
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"snapshot failed: {e}") from e

    def ping(self) -> bool:
        try:
            self._db.fetch_one("SELECT 1 AS ping")
            return True
        except sqlite3.Error:
            _logger.warning("Task store ping failed", exc_info=True)
            return False

    def close(self) -> None:
        self._db.close()
