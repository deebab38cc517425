"""
Task Manager - Storage Layer

SQLite database access, schema and migrations.
"""
from .database import Database, now_iso, to_db_timestamp, from_db_timestamp
from .schema import init_schema, SCHEMA_SQL
from .migrations import run_migrations, get_schema_version, LATEST_VERSION

__all__ = [
    # Database
    "Database",
    "now_iso",
    "to_db_timestamp",
    "from_db_timestamp",
    # Schema
    "init_schema",
    "SCHEMA_SQL",
    "run_migrations",
    "get_schema_version",
    "LATEST_VERSION",
]
