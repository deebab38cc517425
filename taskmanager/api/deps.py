"""
API Dependencies

Store, service and deadline injection.
"""

from typing import Optional

from fastapi import Depends, Header

from ..config.logging import get_logger
from ..config.settings import settings
from ..tasks.deadline import Deadline
from ..tasks.service import TaskService
from ..tasks.sqlite_store import SqliteTaskStore
from ..tasks.store import InMemoryTaskStore, TaskStore


logger = get_logger("api.deps")


# =============================================================================
# Store
# =============================================================================

_store: Optional[TaskStore] = None


def get_store() -> TaskStore:
    """Get the configured task store (created on first use)."""
    global _store
    if _store is None:
        if settings.store.backend == "memory":
            _store = InMemoryTaskStore()
        else:
            _store = SqliteTaskStore.open(
                settings.database.path,
                wal_mode=settings.database.wal_mode,
                busy_timeout_ms=settings.database.busy_timeout_ms,
            )
        logger.info("Task store ready: %s", type(_store).__name__)
    return _store


# =============================================================================
# Services
# =============================================================================

_service: Optional[TaskService] = None


def get_service(store: TaskStore = Depends(get_store)) -> TaskService:
    """Get task service."""
    global _service
    if _service is None or _service.store is not store:
        _service = TaskService(store)
    return _service


def reset_dependencies() -> None:
    """Close the store and forget cached instances."""
    global _store, _service
    if _store is not None:
        _store.close()
    _store = None
    _service = None


# =============================================================================
# Deadlines
# =============================================================================

def get_deadline(
    x_request_timeout: Optional[float] = Header(None, gt=0),
) -> Deadline:
    """
    Per-request deadline.

    Clients may shorten (never extend) the configured limit with
    X-Request-Timeout (seconds).
    """
    timeout = settings.api.request_timeout_seconds
    if x_request_timeout is not None:
        timeout = min(timeout, x_request_timeout)
    return Deadline.after(timeout)
