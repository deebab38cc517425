"""
Task Manager - Database Module

SQLite access for the task store: one connection per thread, explicit
write and read transactions, and statement interruption for deadlines.
"""
import os
import sqlite3
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, List, Union
from contextlib import contextmanager

from .schema import init_schema

_db_logger = logging.getLogger("taskmanager.database")

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# SQLite VM instructions between progress handler calls
PROGRESS_HANDLER_STEPS = 1000

SIDECAR_SUFFIXES = ("", "-shm", "-wal")


class Database:
    """
    SQLite file shared by every thread of the process.

    Each thread lazily opens its own connection; close() closes all of them.
    Statements outside transaction()/snapshot() autocommit.
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        wal_mode: Optional[bool] = None,
        busy_timeout_ms: Optional[int] = None,
    ):
        """
        Open (creating if needed) the database and its schema.

        Args:
            db_path: Database file. Defaults to settings.database.path.
            wal_mode: WAL journal instead of rollback journal.
            busy_timeout_ms: How long a statement waits on a locked database.
        """
        from ..config.settings import settings

        cfg = settings.database
        self._db_path = Path(db_path if db_path is not None else cfg.path)
        self._wal_mode = cfg.wal_mode if wal_mode is None else wal_mode
        self._busy_timeout_ms = cfg.busy_timeout_ms if busy_timeout_ms is None else busy_timeout_ms

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        self._verify_or_reset()
        init_schema(self.connection)

    @property
    def path(self) -> Path:
        return self._db_path

    # ==================== CONNECTIONS ====================

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            timeout=self._busy_timeout_ms / 1000.0,
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode = %s" % ("WAL" if self._wal_mode else "DELETE"))
            conn.execute("PRAGMA busy_timeout = %d" % int(self._busy_timeout_ms))
            conn.execute("PRAGMA synchronous = NORMAL")
        except sqlite3.Error:
            conn.close()
            raise

        with self._connections_lock:
            self._connections.append(conn)
        return conn

    @property
    def connection(self) -> sqlite3.Connection:
        """This thread's connection, opened on first use."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._local.connection = self._open()
        return conn

    def _forget_connection(self) -> None:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            return
        self._local.connection = None
        with self._connections_lock:
            if conn in self._connections:
                self._connections.remove(conn)
        conn.close()

    def _verify_or_reset(self) -> None:
        """
        A corrupt file is moved aside and replaced by an empty database.

        Lock and I/O errors (sqlite3.OperationalError) are not corruption
        and propagate with the file untouched.
        """
        try:
            status = self.connection.execute("PRAGMA integrity_check").fetchone()[0]
        except sqlite3.OperationalError:
            self._forget_connection()
            raise
        except sqlite3.DatabaseError as e:
            # Not a database at all, or damaged beyond the check
            status = str(e)

        if status == "ok":
            return

        self._forget_connection()
        moved_to = self._move_aside()
        _db_logger.warning(
            "Corrupt database at %s (%s), moved to %s, starting empty",
            self._db_path, status, moved_to,
        )

    def _move_aside(self) -> str:
        """Rename the database file and its sidecars with a .corrupt-<stamp> suffix."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = f"{self._db_path}.corrupt-{stamp}"
        for suffix in SIDECAR_SUFFIXES:
            candidate = f"{self._db_path}{suffix}"
            if os.path.exists(candidate):
                os.replace(candidate, f"{target}{suffix}")
        return target

    def _in_transaction(self) -> bool:
        return getattr(self._local, "in_transaction", False)

    # ==================== STATEMENTS ====================

    def _run(self, sql: str, params: tuple) -> sqlite3.Cursor:
        """Execute one statement, committing unless a transaction is open."""
        conn = self.connection
        cursor = conn.execute(sql, params)
        if not self._in_transaction() and conn.in_transaction:
            conn.commit()
        return cursor

    def execute(self, sql: str, params: tuple = ()) -> int:
        """Run a write statement; returns lastrowid (the new id for INSERT)."""
        return self._run(sql, params).lastrowid

    def execute_rowcount(self, sql: str, params: tuple = ()) -> int:
        """Run an UPDATE/DELETE; returns the number of rows it touched."""
        return self._run(sql, params).rowcount

    def fetch_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        return self.connection.execute(sql, params).fetchone()

    def fetch_all(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        return self.connection.execute(sql, params).fetchall()

    def fetch_value(self, sql: str, params: tuple = (), default: Any = None) -> Any:
        """First column of the first row, or `default` when there is no row."""
        row = self.fetch_one(sql, params)
        return default if row is None else row[0]

    # ==================== TRANSACTIONS ====================

    @contextmanager
    def transaction(self):
        """
        Write transaction. BEGIN IMMEDIATE takes the write lock up front,
        so reads inside the block stay valid until commit.

        Nested use joins the outer transaction.
        """
        conn = self.connection
        if self._in_transaction():
            yield conn
            return

        conn.execute("BEGIN IMMEDIATE")
        self._local.in_transaction = True
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            self._local.in_transaction = False

    @contextmanager
    def snapshot(self):
        """
        Read transaction: all queries in the block see one database state.

            with db.snapshot():
                total = db.fetch_value("SELECT COUNT(*) FROM tasks")
                done = db.fetch_value("SELECT COUNT(*) FROM tasks WHERE is_complete = 1")
        """
        conn = self.connection
        if self._in_transaction():
            yield conn
            return

        conn.execute("BEGIN DEFERRED")
        self._local.in_transaction = True
        try:
            yield conn
        finally:
            self._local.in_transaction = False
            conn.rollback()

    @contextmanager
    def interrupt_when(self, should_stop: Optional[Callable[[], bool]]):
        """
        While the block runs, a statement on this thread's connection is
        aborted with sqlite3.OperationalError once should_stop() is true.
        """
        if should_stop is None:
            yield
            return

        conn = self.connection
        conn.set_progress_handler(lambda: int(bool(should_stop())), PROGRESS_HANDLER_STEPS)
        try:
            yield
        finally:
            conn.set_progress_handler(None, PROGRESS_HANDLER_STEPS)

    def close(self) -> None:
        """Close the connections of every thread."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.ProgrammingError:
                # Already closed by its owning thread
                pass
        self._local.connection = None


# Timestamp helpers

def now_iso() -> str:
    """Current UTC time in storage format."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """
    Serialize a datetime for storage.

    Fixed-width UTC strings compare in chronological order, so range
    filters can run in SQL. Naive values are taken as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.strptime(value, TIMESTAMP_FORMAT)
        except ValueError:
            # Plain ISO-8601, with or without offset
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
