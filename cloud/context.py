"""
Cancellation and deadline propagation for client calls.

A Context is passed unchanged through every middleware layer down to the
adapter, which checks it right before the native SDK call. The dispatcher
derives a bounded child with timeout_scope() when a timeout applies.
"""
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional


class ContextError(Exception):
    """Base class for context termination errors."""


class Cancelled(ContextError):
    """Raised when the context was cancelled by its owner."""

    def __init__(self) -> None:
        super().__init__("context canceled")


class DeadlineExceeded(ContextError):
    """Raised when the context deadline has passed."""

    def __init__(self) -> None:
        super().__init__("context deadline exceeded")


class Context:
    """
    Cancellation flag plus optional deadline, linked to a parent.

    A child observes its parent's cancellation and never outlives the
    parent's deadline. Cancelling a child does not affect the parent.
    """

    def __init__(self, parent: Optional["Context"] = None, deadline: Optional[float] = None) -> None:
        """
        Initialize a context.

        Args:
            parent: Parent context, or None for a root
            deadline: Absolute time.monotonic() value, or None for no deadline
        """
        self._parent = parent
        self._deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> "Context":
        """Return a new root context with no deadline."""
        return cls()

    def with_cancel(self) -> "Context":
        """Derive a child that can be cancelled independently."""
        return Context(parent=self)

    def with_timeout(self, seconds: float) -> "Context":
        """
        Derive a child bounded by a timeout.

        Prefer timeout_scope(), which also releases the child.
        """
        return Context(parent=self, deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def deadline(self) -> Optional[float]:
        """Earliest deadline along the parent chain."""
        parent_deadline = self._parent.deadline if self._parent is not None else None
        if parent_deadline is None:
            return self._deadline
        if self._deadline is None:
            return parent_deadline
        return min(self._deadline, parent_deadline)

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def err(self) -> Optional[ContextError]:
        """Return why the context is done, or None if it is still live."""
        if self.cancelled:
            return Cancelled()
        deadline = self.deadline
        if deadline is not None and time.monotonic() >= deadline:
            return DeadlineExceeded()
        return None

    def check(self) -> None:
        """
        Raise if the context is done.

        Raises:
            Cancelled: If this context or a parent was cancelled
            DeadlineExceeded: If the deadline has passed
        """
        error = self.err()
        if error is not None:
            raise error


@contextmanager
def timeout_scope(parent: Context, seconds: float) -> Iterator[Context]:
    """
    Run a block under a child context bounded by `seconds`.

    The child is cancelled when the block exits, whether it returns or raises.
    """
    child = parent.with_timeout(seconds)
    try:
        yield child
    finally:
        child.cancel()
