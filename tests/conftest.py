"""
Shared pytest fixtures for the Task Manager test suite.

Module-level defaults; individual test classes may override
with their own class-level fixtures (pytest priority: class > conftest).
"""
from datetime import datetime, timedelta, timezone

import pytest

from taskmanager.storage import Database
from taskmanager.tasks import InMemoryTaskStore, SqliteTaskStore, TaskService


START = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable UTC clock for the service."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def db(tmp_path):
    """Fresh database for each test."""
    database = Database(tmp_path / "test.sqlite3")
    yield database
    database.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each store implementation in turn."""
    if request.param == "memory":
        yield InMemoryTaskStore()
        return
    database = Database(tmp_path / "store.sqlite3")
    sqlite_store = SqliteTaskStore(database)
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(store, clock):
    """TaskService over each store, driven by the fake clock."""
    return TaskService(store, clock=clock)
