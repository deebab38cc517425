"""
Task Manager - Schema Migrations

Numbered steps applied in order on startup. The applied level lives in
the single-row `schema_version` table; a step and its version bump
commit together, so a failed step leaves the database at the previous
level.

To add a step: write `_mNNN_<what>(conn)` and register it in MIGRATIONS.
"""
import logging
import sqlite3
from typing import Callable, List, Set, Tuple

_logger = logging.getLogger("taskmanager.migrations")

Migration = Callable[[sqlite3.Connection], None]


# ==================== VERSION TABLE ====================


def _prepare_version_table(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            version INTEGER NOT NULL DEFAULT 0
        );
        INSERT OR IGNORE INTO schema_version (id, version) VALUES (1, 0);
        """
    )


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Migration level of the database behind *conn*."""
    _prepare_version_table(conn)
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return int(row[0]) if row else 0


def _record_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute("UPDATE schema_version SET version = ? WHERE id = 1", (version,))


def _task_columns(conn: sqlite3.Connection) -> Set[str]:
    return {row[1] for row in conn.execute("PRAGMA table_info(tasks)")}


def _task_indexes(conn: sqlite3.Connection) -> Set[str]:
    return {row[1] for row in conn.execute("PRAGMA index_list(tasks)")}


# ==================== STEPS ====================


def _m001_tasks_concurrency_token(conn: sqlite3.Connection) -> None:
    """Token column for optimistic concurrency; existing rows get a random one."""
    if "concurrency_token" not in _task_columns(conn):
        conn.execute("ALTER TABLE tasks ADD COLUMN concurrency_token TEXT")
    conn.execute(
        "UPDATE tasks SET concurrency_token = lower(hex(randomblob(16))) "
        "WHERE concurrency_token IS NULL"
    )


def _m002_tasks_indexes(conn: sqlite3.Connection) -> None:
    """Newest-first listing and the pending/overdue filters."""
    conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created_date ON tasks(created_date)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON tasks(is_complete, due_date)")


MIGRATIONS: List[Tuple[int, Migration]] = [
    (1, _m001_tasks_concurrency_token),
    (2, _m002_tasks_indexes),
]

LATEST_VERSION = MIGRATIONS[-1][0]


def _infer_version(conn: sqlite3.Connection) -> int:
    """Level of a database created before version tracking, from what it already has."""
    if "concurrency_token" not in _task_columns(conn):
        return 0
    if {"idx_tasks_created_date", "idx_tasks_status_due"} <= _task_indexes(conn):
        return 2
    return 1


# ==================== RUNNER ====================


def run_migrations(conn: sqlite3.Connection) -> int:
    """
    Bring the database behind *conn* up to LATEST_VERSION.

    An untracked database (level 0) is first inspected so that steps whose
    effect is already present are not replayed.

    Returns:
        The version after running.
    """
    current = get_schema_version(conn)
    if current == 0:
        inferred = _infer_version(conn)
        if inferred:
            _record_version(conn, inferred)
            conn.commit()
            _logger.info("Untracked database already at schema version %d", inferred)
            current = inferred

    pending = [(v, step) for v, step in MIGRATIONS if v > current]
    if not pending:
        _logger.debug("Schema up to date at version %d", current)
        return current

    for version, step in pending:
        _logger.info("Applying migration %d (%s)", version, step.__name__)
        if not conn.in_transaction:
            conn.execute("BEGIN")
        try:
            step(conn)
            _record_version(conn, version)
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            _logger.error("Migration %d failed; schema stays at %d", version, current, exc_info=True)
            raise
        current = version

    _logger.info("Schema migrated to version %d", current)
    return current
