"""Google Cloud Scheduler adapter (REST v1 over httpx).

Endpoints used:

- ``GET    {base}/v1/{name}``         : get a job
- ``POST   {base}/v1/{parent}/jobs``  : create a job
- ``DELETE {base}/v1/{name}``         : delete a job

where ``name`` is ``projects/{project}/locations/{location}/jobs/{job}``.

HTTP status mapping:

=========  ==============================
404        ``JobNotFoundError``
409        ``JobAlreadyExistsError``
401, 403   ``SchedulerAuthError``
400        ``SchedulerRequestError``
429, 5xx   ``SchedulerUnavailableError``
transport  ``SchedulerUnavailableError``
=========  ==============================

Authentication is a bearer token from ``SchedulerConfig.access_token``;
token minting and refresh are left to the hosting environment.
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

import httpx

from vine_harvester.models.jobs import HttpTarget, ScheduledJobHandle
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

if TYPE_CHECKING:
    from vine_harvester.core.context import OperationContext
    from vine_harvester.models.jobs import JobDescriptor

logger = logging.getLogger(__name__)

_API_VERSION = "v1"


class CloudSchedulerAdapter(SchedulerAdapter):
    """Cloud Scheduler REST adapter.

    A single ``httpx.Client`` is created lazily and reused; pass
    ``client`` to inject one (tests use ``httpx.MockTransport``).
    """

    def __init__(self, config: SchedulerConfig, *, client: httpx.Client | None = None) -> None:
        super().__init__(config)
        self._client = client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------
    # SchedulerAdapter
    # ------------------------------------------------------------------

    def get_job(self, job_name: str, ctx: OperationContext | None = None) -> ScheduledJobHandle:
        response = self._request("GET", self._job_url(job_name), job_name, ctx)
        return _handle_from_json(response.json())

    def create_job(
        self, descriptor: JobDescriptor, ctx: OperationContext | None = None
    ) -> ScheduledJobHandle:
        url = f"{self._base}/{self._config.parent}/jobs"
        payload = _job_to_json(self.qualify(descriptor.name), descriptor)
        response = self._request("POST", url, descriptor.name, ctx, json=payload)
        logger.info(
            "Scheduler job created | job=%s | schedule=%s | time_zone=%s",
            descriptor.name,
            descriptor.schedule,
            descriptor.time_zone,
        )
        return _handle_from_json(response.json())

    def delete_job(self, job_name: str, ctx: OperationContext | None = None) -> None:
        self._request("DELETE", self._job_url(job_name), job_name, ctx)
        logger.info("Scheduler job deleted | job=%s", job_name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def _base(self) -> str:
        return f"{self._config.api_base_url.rstrip('/')}/{_API_VERSION}"

    def _job_url(self, job_name: str) -> str:
        return f"{self._base}/{self.qualify(job_name)}"

    def _http(self) -> httpx.Client:
        if self._client is None:
            headers = {}
            if self._config.access_token:
                headers["Authorization"] = f"Bearer {self._config.access_token}"
            self._client = httpx.Client(timeout=self._config.timeout_seconds, headers=headers)
        return self._client

    def _request(
        self,
        method: str,
        url: str,
        job_name: str,
        ctx: OperationContext | None,
        **kwargs: Any,
    ) -> httpx.Response:
        timeout: float | None = None
        if ctx is not None:
            ctx.raise_if_cancelled(f"scheduler {method} {job_name}")
            timeout = ctx.remaining()
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = self._http().request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"Scheduler request failed: {method} {url}: {exc}"
            raise SchedulerUnavailableError(msg, job_name=job_name) from exc

        if response.is_success:
            return response
        raise _error_for_status(response, job_name)


def _error_for_status(response: httpx.Response, job_name: str) -> SchedulerError:
    status = response.status_code
    detail = _error_message(response)
    msg = f"Scheduler returned HTTP {status} for job {job_name!r}: {detail}"
    if status == httpx.codes.NOT_FOUND:
        return JobNotFoundError(msg, job_name=job_name)
    if status == httpx.codes.CONFLICT:
        return JobAlreadyExistsError(msg, job_name=job_name)
    if status in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
        return SchedulerAuthError(msg, job_name=job_name)
    if status == httpx.codes.BAD_REQUEST:
        return SchedulerRequestError(msg, job_name=job_name)
    if status == httpx.codes.TOO_MANY_REQUESTS or status >= httpx.codes.INTERNAL_SERVER_ERROR:
        return SchedulerUnavailableError(msg, job_name=job_name)
    return SchedulerError(msg, job_name=job_name)


def _error_message(response: httpx.Response) -> str:
    """Extract ``error.message`` from a Google API error body if present."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message", ""))
    return response.text[:200]


def _job_to_json(qualified_name: str, descriptor: JobDescriptor) -> dict[str, Any]:
    target = descriptor.http_target
    http_target: dict[str, Any] = {
        "uri": target.uri,
        "httpMethod": target.method,
        "headers": dict(target.headers),
    }
    if target.body is not None:
        http_target["body"] = base64.b64encode(target.body.encode("utf-8")).decode("ascii")
    job: dict[str, Any] = {
        "name": qualified_name,
        "schedule": descriptor.schedule,
        "timeZone": descriptor.time_zone,
        "httpTarget": http_target,
    }
    if descriptor.description:
        job["description"] = descriptor.description
    return job


def _handle_from_json(data: dict[str, Any]) -> ScheduledJobHandle:
    target = data.get("httpTarget") or {}
    raw_body = target.get("body")
    body = base64.b64decode(raw_body).decode("utf-8") if raw_body else None
    return ScheduledJobHandle(
        fully_qualified_name=str(data.get("name", "")),
        schedule=str(data.get("schedule", "")),
        time_zone=str(data.get("timeZone", "")),
        http_target=HttpTarget(
            uri=str(target.get("uri", "")),
            method=str(target.get("httpMethod", "GET")),
            headers=dict(target.get("headers") or {}),
            body=body,
        ),
    )
