"""
Caller-controlled deadlines.

A Deadline travels from the caller through TaskService into the store.
Stores check it before touching data and, where they can, while a
statement is running.
"""
import threading
import time
from typing import Optional

from .errors import DeadlineExceededError


class Deadline:
    """
    Absolute deadline on the monotonic clock, optionally cancelled early.

    Usage:
        deadline = Deadline.after(2.5)
        service.list_tasks(deadline=deadline)

        # from another thread
        deadline.cancel()
    """

    def __init__(self, expires_at: Optional[float] = None):
        self.expires_at = expires_at
        self._cancelled = threading.Event()

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + max(0.0, seconds))

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when there is no time limit."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def check(self) -> None:
        """Raise DeadlineExceededError if the deadline has passed."""
        if self.cancelled:
            raise DeadlineExceededError("operation cancelled by caller")
        if self.expired:
            raise DeadlineExceededError("deadline exceeded")

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining()!r}, cancelled={self.cancelled})"


def check_deadline(deadline: Optional[Deadline]) -> None:
    """Check an optional deadline."""
    if deadline is not None:
        deadline.check()
