"""
Task Manager - Database Schema

Core tables:
- tasks: task records with an optimistic concurrency token

Indexes are created by migrations so that older databases get them too.
"""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL CHECK(length(trim(title)) BETWEEN 1 AND 100),
    description TEXT CHECK(description IS NULL OR length(description) <= 500),

    -- Completion state machine: completed_date is set iff is_complete
    is_complete INTEGER NOT NULL DEFAULT 0 CHECK(is_complete IN (0, 1)),
    completed_date TEXT,

    priority INTEGER NOT NULL DEFAULT 3 CHECK(priority BETWEEN 1 AND 5),

    -- Timestamps (UTC, fixed-width ISO strings)
    created_date TEXT NOT NULL,
    due_date TEXT,

    -- Changed on every successful write
    concurrency_token TEXT NOT NULL,

    CHECK((is_complete = 1) = (completed_date IS NOT NULL))
);
"""


def init_schema(connection) -> None:
    """Initialize database schema."""
    connection.executescript(SCHEMA_SQL)
    connection.commit()
