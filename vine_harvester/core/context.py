"""Cancellation and deadline context for blocking operations.

Store and scheduler operations accept an optional ``OperationContext``.
The job reconciler waits on it between retry attempts, so cancelling
the context interrupts a backoff sleep immediately instead of letting
it run to completion.

Usage::

    ctx = OperationContext.with_timeout(30.0)
    result = reconciler.reconcile_all(registry, ctx)

    # from another thread
    ctx.cancel()
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from vine_harvester.core.exceptions import OperationCancelledError


@dataclass(slots=True)
class OperationContext:
    """Cancellation token with an optional monotonic deadline.

    Attributes:
        deadline: ``time.monotonic()`` value after which the context is
            considered expired, or ``None`` for no deadline.
    """

    deadline: float | None = None
    _event: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float) -> OperationContext:
        """Return a context that expires *seconds* from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        """Cancel the context and wake any waiter."""
        self._event.set()

    def remaining(self) -> float | None:
        """Seconds until the deadline (never negative), or ``None``."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def cancelled(self) -> bool:
        """True once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def raise_if_cancelled(self, operation: str = "") -> None:
        """Raise ``OperationCancelledError`` if the context is done."""
        if self.cancelled:
            what = f" during {operation}" if operation else ""
            msg = f"Operation cancelled{what}"
            raise OperationCancelledError(msg)

    def wait(self, seconds: float) -> bool:
        """Block up to *seconds*; return ``True`` if cancelled meanwhile.

        The wait is cut short by ``cancel()`` or by the deadline.
        """
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        if self._event.wait(timeout):
            return True
        return self.cancelled


def ensure_context(ctx: OperationContext | None) -> OperationContext:
    """Return *ctx* or a fresh, never-cancelled context."""
    return ctx if ctx is not None else OperationContext()
