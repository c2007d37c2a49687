"""Job reconciler: ensures one scheduler job per enabled data source.

For every enabled source:

1. Compute the job name with ``normalize_job_name``.
2. ``get_job``: found means done; ``JobNotFoundError`` means create.
   Any other lookup error is logged and creation is attempted anyway.
3. ``create_job`` with up to ``max_retries + 1`` attempts, sleeping
   ``backoff_base * 2**attempt`` between attempts.  Invalid-argument
   errors stop retrying at once; ``JobAlreadyExistsError`` counts as
   success.

Failures are recorded per source and never abort the run.  Existing
jobs are never updated: a changed schedule needs the job deleted first
(or ``prune_disabled`` plus a re-enable).

The reconciler is not re-entrant; callers serialise runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vine_harvester.core.context import OperationContext, ensure_context
from vine_harvester.core.exceptions import InvalidArgumentError, OperationCancelledError
from vine_harvester.models.jobs import JobDescriptor
from vine_harvester.scheduler.base import JobAlreadyExistsError, JobNotFoundError

if TYPE_CHECKING:
    from vine_harvester.models.datasource import DataSourceConfig, DataSourceRegistry
    from vine_harvester.scheduler.base import SchedulerAdapter

logger = logging.getLogger("vine_harvester.scheduler.reconciler")

Sleeper = Callable[[float, OperationContext], None]
"""``sleeper(seconds, ctx)``; raises ``OperationCancelledError`` if *ctx* is cancelled meanwhile."""


def wait_on_context(seconds: float, ctx: OperationContext) -> None:
    """Default sleeper: block on the context so cancellation wakes it."""
    if ctx.wait(seconds):
        msg = f"Cancelled during {seconds:.2f}s backoff"
        raise OperationCancelledError(msg, stage="reconciler")


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of one reconciliation run, keyed by data-source name.

    Attributes:
        succeeded: Sources whose job exists after the run.
        failed: Source name -> last error for sources that failed.
        created: Subset of ``succeeded`` whose job was created this run.
        deleted: Disabled sources whose job was removed (``prune_disabled``).
    """

    succeeded: set[str] = field(default_factory=set)
    failed: dict[str, Exception] = field(default_factory=dict)
    created: set[str] = field(default_factory=set)
    deleted: set[str] = field(default_factory=set)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, object]:
        return {
            "succeeded": sorted(self.succeeded),
            "created": sorted(self.created),
            "deleted": sorted(self.deleted),
            "failed": {name: str(exc) for name, exc in sorted(self.failed.items())},
        }


@dataclass(frozen=True, slots=True)
class _Outcome:
    name: str
    created: bool = False
    error: Exception | None = None


class JobReconciler:
    """Drive the scheduler towards the registry's enabled sources.

    Args:
        adapter: Scheduler to reconcile against.
        sleeper: Backoff sleep, injectable for tests.
        max_workers: Sources reconciled concurrently (1 = sequential).
        prune_disabled: Also delete jobs belonging to disabled sources.
    """

    def __init__(
        self,
        adapter: SchedulerAdapter,
        *,
        sleeper: Sleeper = wait_on_context,
        max_workers: int = 1,
        prune_disabled: bool = False,
    ) -> None:
        if max_workers <= 0:
            msg = f"max_workers must be > 0, got {max_workers}"
            raise InvalidArgumentError(msg)
        self._adapter = adapter
        self._sleeper = sleeper
        self._max_workers = max_workers
        self._prune_disabled = prune_disabled

    def reconcile_all(
        self,
        registry: DataSourceRegistry,
        ctx: OperationContext | None = None,
    ) -> ReconcileResult:
        """Ensure a job exists for every enabled source in *registry*.

        Never raises for per-source failures; inspect ``result.failed``.
        """
        ctx = ensure_context(ctx)
        sources = registry.enabled()
        logger.info(
            "Reconciliation started | scheduler=%s | enabled=%d | workers=%d",
            self._adapter.name,
            len(sources),
            self._max_workers,
        )

        if self._max_workers == 1 or len(sources) <= 1:
            outcomes = [self._reconcile_one(source, ctx) for source in sources]
        else:
            with ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="reconcile"
            ) as pool:
                outcomes = list(pool.map(lambda s: self._reconcile_one(s, ctx), sources))

        result = ReconcileResult()
        for outcome in outcomes:
            if outcome.error is not None:
                result.failed[outcome.name] = outcome.error
                continue
            result.succeeded.add(outcome.name)
            if outcome.created:
                result.created.add(outcome.name)

        if self._prune_disabled:
            self._prune(registry.disabled(), ctx, result)

        logger.info(
            "Reconciliation completed | succeeded=%d | created=%d | failed=%d | deleted=%d",
            len(result.succeeded),
            len(result.created),
            len(result.failed),
            len(result.deleted),
        )
        return result

    # ------------------------------------------------------------------
    # Per-source steps
    # ------------------------------------------------------------------

    def _reconcile_one(self, source: DataSourceConfig, ctx: OperationContext) -> _Outcome:
        job_name = source.job_name
        try:
            ctx.raise_if_cancelled(f"reconcile {source.name}")
            self._adapter.get_job(job_name, ctx)
        except JobNotFoundError:
            pass
        except OperationCancelledError as exc:
            return _Outcome(source.name, error=exc)
        except Exception as exc:
            logger.warning(
                "Job lookup failed, attempting create | source=%s | job=%s | error=%s",
                source.name,
                job_name,
                exc,
            )
        else:
            logger.debug("Job already present | source=%s | job=%s", source.name, job_name)
            return _Outcome(source.name)

        return self._create_with_retry(source, JobDescriptor.from_config(source), ctx)

    def _create_with_retry(
        self,
        source: DataSourceConfig,
        descriptor: JobDescriptor,
        ctx: OperationContext,
    ) -> _Outcome:
        policy = source.retry_policy
        last_error: Exception | None = None
        for attempt in range(policy.max_retries + 1):
            try:
                self._adapter.create_job(descriptor, ctx)
            except JobAlreadyExistsError:
                logger.info(
                    "Job created concurrently, treating as present | source=%s | job=%s",
                    source.name,
                    descriptor.name,
                )
                return _Outcome(source.name)
            except (InvalidArgumentError, OperationCancelledError) as exc:
                logger.error(
                    "Job creation failed (non-retryable) | source=%s | job=%s | error=%s",
                    source.name,
                    descriptor.name,
                    exc,
                )
                return _Outcome(source.name, error=exc)
            except Exception as exc:
                last_error = exc
                if attempt < policy.max_retries:
                    delay = policy.delay_for(attempt)
                    logger.warning(
                        "Job creation failed, retrying | source=%s | job=%s | attempt=%d/%d | "
                        "backoff=%.2fs | error=%s",
                        source.name,
                        descriptor.name,
                        attempt + 1,
                        policy.max_retries + 1,
                        delay,
                        exc,
                    )
                    try:
                        self._sleeper(delay, ctx)
                    except OperationCancelledError as cancelled:
                        return _Outcome(source.name, error=cancelled)
            else:
                logger.info(
                    "Job created | source=%s | job=%s | attempts=%d",
                    source.name,
                    descriptor.name,
                    attempt + 1,
                )
                return _Outcome(source.name, created=True)

        logger.error(
            "Job creation exhausted retries | source=%s | job=%s | attempts=%d | error=%s",
            source.name,
            descriptor.name,
            policy.max_retries + 1,
            last_error,
        )
        return _Outcome(source.name, error=last_error)

    def _prune(
        self,
        sources: list[DataSourceConfig],
        ctx: OperationContext,
        result: ReconcileResult,
    ) -> None:
        for source in sources:
            try:
                ctx.raise_if_cancelled(f"prune {source.name}")
                self._adapter.delete_job(source.job_name, ctx)
            except JobNotFoundError:
                continue
            except Exception as exc:
                logger.warning(
                    "Job deletion failed | source=%s | job=%s | error=%s",
                    source.name,
                    source.job_name,
                    exc,
                )
                result.failed[source.name] = exc
            else:
                logger.info("Job deleted for disabled source | source=%s", source.name)
                result.deleted.add(source.name)
