"""SchedulerAdapter abstract base class.

Defines the contract every external scheduler adapter implements.  The
job reconciler talks exclusively to this interface; it never knows which
concrete scheduler is behind it.

Operations:
    1. ``get_job(name)``         : look up an existing job.
    2. ``create_job(descriptor)``: create a job from a descriptor.
    3. ``delete_job(name)``      : remove a job.

Adapters perform no retries of their own: retry policy belongs to the
caller.  Transport failures are translated into the typed errors below
at the adapter boundary, so callers never inspect error strings.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING

from vine_harvester.core.constants import DEFAULT_SCHEDULER_API_BASE_URL
from vine_harvester.core.exceptions import (
    ConflictError,
    HarvesterError,
    InvalidArgumentError,
    NotFoundError,
    PermanentError,
    UnavailableError,
)

if TYPE_CHECKING:
    from vine_harvester.core.context import OperationContext
    from vine_harvester.models.jobs import JobDescriptor, ScheduledJobHandle


@dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Configuration for a scheduler adapter.

    Attributes:
        name: Adapter identifier (must match the factory registry key).
        project_id: Cloud project owning the jobs.
        location_id: Cloud region of the jobs.
        api_base_url: REST endpoint (REST adapters only).
        access_token: Bearer token (REST adapters only).
        timeout_seconds: Per-request HTTP timeout.
    """

    name: str
    project_id: str = "local"
    location_id: str = "local"
    api_base_url: str = DEFAULT_SCHEDULER_API_BASE_URL
    access_token: str = ""
    timeout_seconds: float = 30.0

    @property
    def parent(self) -> str:
        """``projects/{project}/locations/{location}``."""
        return f"projects/{self.project_id}/locations/{self.location_id}"


class SchedulerAdapter(abc.ABC):
    """Abstract base class for external scheduler adapters.

    Example usage::

        adapter = get_scheduler("memory")
        try:
            adapter.get_job("weather")
        except JobNotFoundError:
            adapter.create_job(JobDescriptor.from_config(source))
    """

    def __init__(self, config: SchedulerConfig) -> None:
        self._config = config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    def qualify(self, job_name: str) -> str:
        """Return the fully-qualified job name for *job_name*."""
        return f"{self._config.parent}/jobs/{job_name}"

    @abc.abstractmethod
    def get_job(self, job_name: str, ctx: OperationContext | None = None) -> ScheduledJobHandle:
        """Return the job called *job_name*.

        Raises:
            JobNotFoundError: If no such job exists.
            SchedulerError: On any other failure.
        """

    @abc.abstractmethod
    def create_job(
        self, descriptor: JobDescriptor, ctx: OperationContext | None = None
    ) -> ScheduledJobHandle:
        """Create a job from *descriptor*.

        Raises:
            JobAlreadyExistsError: If a job with that name exists.
            SchedulerRequestError: If the scheduler rejects the definition.
            SchedulerError: On any other failure.
        """

    @abc.abstractmethod
    def delete_job(self, job_name: str, ctx: OperationContext | None = None) -> None:
        """Delete the job called *job_name*.

        Raises:
            JobNotFoundError: If no such job exists.
            SchedulerError: On any other failure.
        """


# ---------------------------------------------------------------------------
# Scheduler exceptions
# ---------------------------------------------------------------------------


class SchedulerError(HarvesterError):
    """Base exception for scheduler adapter errors.

    Attributes:
        job_name: Job the failing call referred to (may be empty).
    """

    default_stage = "scheduler"
    default_code = "SCHEDULER_ERROR"

    def __init__(self, message: str = "", *, job_name: str = "", **kwargs: object) -> None:
        self.job_name = job_name
        super().__init__(message, **kwargs)


class JobNotFoundError(SchedulerError, NotFoundError):
    default_code = "JOB_NOT_FOUND"


class JobAlreadyExistsError(SchedulerError, ConflictError):
    default_code = "JOB_ALREADY_EXISTS"


class SchedulerUnavailableError(SchedulerError, UnavailableError):
    """The scheduler could not be reached or is throttling.  Retryable."""

    default_code = "SCHEDULER_UNAVAILABLE"


class SchedulerAuthError(SchedulerError, PermanentError):
    """Authentication or authorisation failure with the scheduler API."""

    default_code = "SCHEDULER_AUTH_FAILED"


class SchedulerRequestError(SchedulerError, InvalidArgumentError):
    """The scheduler rejected the job definition as malformed."""

    default_code = "SCHEDULER_BAD_REQUEST"
