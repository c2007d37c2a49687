"""External scheduler adapters and the job reconciler.

- SchedulerAdapter: abstract base class defining the interface
- CloudSchedulerAdapter: Google Cloud Scheduler REST v1 (production)
- InMemorySchedulerAdapter: local development and tests
- JobReconciler: ensures one job per enabled data source

The active adapter is selected via ``SCHEDULER_BACKEND``.
"""

from vine_harvester.scheduler.base import (
    JobAlreadyExistsError,
    JobNotFoundError,
    SchedulerAdapter,
    SchedulerAuthError,
    SchedulerConfig,
    SchedulerError,
    SchedulerRequestError,
    SchedulerUnavailableError,
)
from vine_harvester.scheduler.factory import (
    CLOUD_SCHEDULER,
    MEMORY,
    get_scheduler,
    list_schedulers,
    register_scheduler,
)
from vine_harvester.scheduler.reconciler import JobReconciler, ReconcileResult

__all__ = [
    "CLOUD_SCHEDULER",
    "MEMORY",
    "JobAlreadyExistsError",
    "JobNotFoundError",
    "JobReconciler",
    "ReconcileResult",
    "SchedulerAdapter",
    "SchedulerAuthError",
    "SchedulerConfig",
    "SchedulerError",
    "SchedulerRequestError",
    "SchedulerUnavailableError",
    "get_scheduler",
    "list_schedulers",
    "register_scheduler",
]
