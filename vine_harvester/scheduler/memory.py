"""In-memory scheduler adapter.

Keeps jobs in a dict guarded by a lock.  Used for local development
(``SCHEDULER_BACKEND=memory``) and as the test double for the
reconciler: every call is recorded in ``calls`` and failures can be
queued per operation with ``fail_next``.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import TYPE_CHECKING

from vine_harvester.models.jobs import ScheduledJobHandle
from vine_harvester.scheduler.base import (
    JobAlreadyExistsError,
    JobNotFoundError,
    SchedulerAdapter,
    SchedulerConfig,
)

if TYPE_CHECKING:
    from vine_harvester.core.context import OperationContext
    from vine_harvester.models.jobs import JobDescriptor

logger = logging.getLogger("vine_harvester.scheduler.memory")

_OPERATIONS = ("get_job", "create_job", "delete_job")


class InMemorySchedulerAdapter(SchedulerAdapter):
    """Thread-safe scheduler double.

    Attributes:
        calls: ``(operation, job_name)`` tuples in call order.
    """

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        super().__init__(config or SchedulerConfig(name="memory"))
        self._lock = threading.Lock()
        self._jobs: dict[str, ScheduledJobHandle] = {}
        self._failures: dict[str, deque[Exception]] = defaultdict(deque)
        self.calls: list[tuple[str, str]] = []

    # ------------------------------------------------------------------
    # Test hooks
    # ------------------------------------------------------------------

    def fail_next(self, operation: str, *errors: Exception) -> None:
        """Queue *errors* to be raised by the next calls to *operation*."""
        if operation not in _OPERATIONS:
            msg = f"Unknown operation {operation!r}; expected one of {_OPERATIONS}"
            raise ValueError(msg)
        with self._lock:
            self._failures[operation].extend(errors)

    def call_count(self, operation: str, job_name: str | None = None) -> int:
        with self._lock:
            return sum(
                1 for op, name in self.calls if op == operation and (job_name is None or name == job_name)
            )

    def jobs(self) -> dict[str, ScheduledJobHandle]:
        """Snapshot of stored jobs keyed by short name."""
        with self._lock:
            return dict(self._jobs)

    # ------------------------------------------------------------------
    # SchedulerAdapter
    # ------------------------------------------------------------------

    def get_job(self, job_name: str, ctx: OperationContext | None = None) -> ScheduledJobHandle:
        self._enter("get_job", job_name, ctx)
        with self._lock:
            handle = self._jobs.get(job_name)
        if handle is None:
            msg = f"Job {self.qualify(job_name)} not found"
            raise JobNotFoundError(msg, job_name=job_name)
        return handle

    def create_job(
        self, descriptor: JobDescriptor, ctx: OperationContext | None = None
    ) -> ScheduledJobHandle:
        self._enter("create_job", descriptor.name, ctx)
        handle = ScheduledJobHandle(
            fully_qualified_name=self.qualify(descriptor.name),
            schedule=descriptor.schedule,
            time_zone=descriptor.time_zone,
            http_target=descriptor.http_target,
        )
        with self._lock:
            if descriptor.name in self._jobs:
                msg = f"Job {handle.fully_qualified_name} already exists"
                raise JobAlreadyExistsError(msg, job_name=descriptor.name)
            self._jobs[descriptor.name] = handle
        logger.debug("In-memory job created | job=%s", descriptor.name)
        return handle

    def delete_job(self, job_name: str, ctx: OperationContext | None = None) -> None:
        self._enter("delete_job", job_name, ctx)
        with self._lock:
            if self._jobs.pop(job_name, None) is None:
                msg = f"Job {self.qualify(job_name)} not found"
                raise JobNotFoundError(msg, job_name=job_name)

    def _enter(self, operation: str, job_name: str, ctx: OperationContext | None) -> None:
        if ctx is not None:
            ctx.raise_if_cancelled(operation)
        with self._lock:
            self.calls.append((operation, job_name))
            queued = self._failures[operation]
            error = queued.popleft() if queued else None
        if error is not None:
            raise error
