"""Scheduler job descriptors and handles.

A ``JobDescriptor`` is what the reconciler asks the scheduler to create
for one enabled data source; a ``ScheduledJobHandle`` is what the
scheduler reports back for an existing job.  Job names are derived from
data-source names with ``normalize_job_name`` everywhere, so lookup and
creation always agree on the id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from vine_harvester.core.constants import BODY_METHODS, DEFAULT_TIME_ZONE
from vine_harvester.utils.endpoint import render_endpoint

if TYPE_CHECKING:
    from vine_harvester.models.datasource import DataSourceConfig


def normalize_job_name(name: str) -> str:
    """Canonical job id: trimmed, lower-case, spaces replaced by hyphens.

    Idempotent: ``normalize_job_name(normalize_job_name(x)) == normalize_job_name(x)``.
    """
    return name.strip().lower().replace(" ", "-")


@dataclass(frozen=True, slots=True)
class HttpTarget:
    """HTTP call a scheduled job makes when it fires."""

    uri: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"uri": self.uri, "method": self.method, "headers": dict(self.headers)}
        if self.body is not None:
            data["body"] = self.body
        return data


@dataclass(frozen=True, slots=True)
class JobDescriptor:
    """Definition of a job to create.

    Attributes:
        name: Normalised job id (not fully qualified).
        schedule: Cron expression, copied verbatim from the source.
        time_zone: IANA zone, ``"UTC"`` when the source declares none.
        http_target: Call made on each firing.
        description: Free text shown in the scheduler console.
    """

    name: str
    schedule: str
    time_zone: str
    http_target: HttpTarget
    description: str = ""

    @classmethod
    def from_config(cls, config: DataSourceConfig) -> JobDescriptor:
        """Build the descriptor for *config*.

        The body is only attached for methods that carry one
        (POST, PUT, PATCH); headers default to a JSON content type.
        The source's ``apiKey`` is substituted into the endpoint; other
        placeholders are kept for the receiving side.
        """
        method = config.http_method.value
        headers = dict(config.headers) or {"Content-Type": "application/json"}
        uri = config.endpoint
        if config.api_key:
            uri = render_endpoint(uri, {"apiKey": config.api_key})
        return cls(
            name=config.job_name,
            schedule=config.schedule,
            time_zone=config.time_zone or DEFAULT_TIME_ZONE,
            http_target=HttpTarget(
                uri=uri,
                method=method,
                headers=headers,
                body=config.body if method in BODY_METHODS else None,
            ),
            description=config.description,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "schedule": self.schedule,
            "time_zone": self.time_zone,
            "http_target": self.http_target.to_dict(),
            "description": self.description,
        }


@dataclass(frozen=True, slots=True)
class ScheduledJobHandle:
    """An existing job as reported by the scheduler."""

    fully_qualified_name: str
    schedule: str
    time_zone: str
    http_target: HttpTarget

    @property
    def short_name(self) -> str:
        """Last path segment of the fully-qualified name."""
        return self.fully_qualified_name.rsplit("/", 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.fully_qualified_name,
            "schedule": self.schedule,
            "time_zone": self.time_zone,
            "http_target": self.http_target.to_dict(),
        }
