"""Correlation query engine.

Assembles a per-vineyard environmental snapshot by listing every
observation kind concurrently, and saves batches of observations with
one concurrent save per item.

Snapshot completeness:
    A snapshot either contains every kind or is not returned at all.
    If any per-kind listing fails, ``SnapshotIncompleteError`` names the
    failed kinds; kinds with no data are empty lists, never missing.

Batch saves:
    ``save_many`` is not atomic.  It waits for every save to finish and
    then raises the first error collected (in completion order); saves
    that succeeded stay persisted.  ``save_each`` reports per item.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from vine_harvester.core.constants import DEFAULT_PARALLEL_INGESTIONS
from vine_harvester.core.context import ensure_context
from vine_harvester.core.exceptions import HarvesterError, InvalidArgumentError
from vine_harvester.models.observation import (
    ImageObservation,
    ObservationKind,
    PestObservation,
    SatelliteObservation,
    SoilObservation,
    WeatherObservation,
)
from vine_harvester.utils.helpers import ensure_utc

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from vine_harvester.core.context import OperationContext
    from vine_harvester.models.geometry import BoundingBox
    from vine_harvester.models.observation import Observation
    from vine_harvester.models.vineyard import Vineyard
    from vine_harvester.storage.base import ObservationStore, VineyardRepository

logger = logging.getLogger("vine_harvester.query.correlation")

# Snapshot attribute for each kind.
_SNAPSHOT_FIELDS: dict[ObservationKind, str] = {
    ObservationKind.SOIL: "soil",
    ObservationKind.PEST: "pests",
    ObservationKind.WEATHER: "weather",
    ObservationKind.IMAGE: "imagery",
    ObservationKind.SATELLITE: "satellite",
}


class SnapshotIncompleteError(HarvesterError):
    """One or more observation kinds could not be listed.

    Attributes:
        vineyard_id: Vineyard the snapshot was for.
        failures: Failed kind -> error.
    """

    default_stage = "correlation"
    default_code = "SNAPSHOT_INCOMPLETE"

    def __init__(self, vineyard_id: int, failures: dict[ObservationKind, Exception]) -> None:
        self.vineyard_id = vineyard_id
        self.failures = failures
        kinds = ", ".join(sorted(k.value for k in failures))
        retryable = all(getattr(exc, "retryable", False) for exc in failures.values())
        super().__init__(
            f"Snapshot for vineyard {vineyard_id} incomplete; failed kinds: {kinds}",
            retryable=retryable,
        )

    @property
    def failed_kinds(self) -> set[ObservationKind]:
        return set(self.failures)


@dataclass(frozen=True, slots=True)
class EnvironmentalSnapshot:
    """Every observation kind for one vineyard over one window."""

    vineyard: Vineyard
    soil: list[SoilObservation] = field(default_factory=list)
    pests: list[PestObservation] = field(default_factory=list)
    weather: list[WeatherObservation] = field(default_factory=list)
    imagery: list[ImageObservation] = field(default_factory=list)
    satellite: list[SatelliteObservation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"vineyard": self.vineyard.to_dict()}
        for attr in _SNAPSHOT_FIELDS.values():
            data[attr] = [obs.to_dict() for obs in getattr(self, attr)]
        return data


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    """Result of saving one observation in ``save_each``."""

    observation: Observation
    id: int | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CorrelationEngine:
    """Read-side aggregation and batch writes over an ``ObservationStore``.

    Args:
        store: Observation store.
        vineyards: Vineyard lookup.
        max_workers: Thread-pool size for fan-out.
    """

    def __init__(
        self,
        store: ObservationStore,
        vineyards: VineyardRepository,
        *,
        max_workers: int = DEFAULT_PARALLEL_INGESTIONS,
    ) -> None:
        if max_workers <= 0:
            msg = f"max_workers must be > 0, got {max_workers}"
            raise InvalidArgumentError(msg)
        self._store = store
        self._vineyards = vineyards
        self._max_workers = max_workers

    @property
    def store(self) -> ObservationStore:
        return self._store

    def get_environmental_snapshot(
        self,
        vineyard_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        bbox: BoundingBox | None = None,
        ctx: OperationContext | None = None,
    ) -> EnvironmentalSnapshot:
        """Return all observations for a vineyard, optionally windowed.

        Raises:
            VineyardNotFoundError: If the vineyard does not exist.
            InvalidArgumentError: If ``start > end`` or the id is invalid.
            SnapshotIncompleteError: If any kind could not be listed.
        """
        ctx = ensure_context(ctx)
        if vineyard_id <= 0:
            msg = f"vineyard_id must be > 0, got {vineyard_id}"
            raise InvalidArgumentError(msg, stage="correlation")
        start = ensure_utc(start) if start is not None else None
        end = ensure_utc(end) if end is not None else None
        if start is not None and end is not None and start > end:
            msg = f"start {start.isoformat()} is after end {end.isoformat()}"
            raise InvalidArgumentError(msg, stage="correlation")
        vineyard = self._vineyards.get(vineyard_id, ctx)

        results: dict[ObservationKind, list[Observation]] = {}
        failures: dict[ObservationKind, Exception] = {}
        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(_SNAPSHOT_FIELDS)),
            thread_name_prefix="snapshot",
        ) as pool:
            futures = {
                pool.submit(
                    self._store.query, kind, vineyard_id, start=start, end=end, bbox=bbox, ctx=ctx
                ): kind
                for kind in _SNAPSHOT_FIELDS
            }
            for future in as_completed(futures):
                kind = futures[future]
                try:
                    results[kind] = future.result()
                except Exception as exc:
                    failures[kind] = exc

        if failures:
            error = SnapshotIncompleteError(vineyard_id, failures)
            logger.error(
                "Snapshot incomplete | vineyard=%d | failed=%s | retryable=%s",
                vineyard_id,
                ",".join(sorted(k.value for k in failures)),
                error.retryable,
            )
            raise error

        logger.info(
            "Snapshot assembled | vineyard=%d | %s",
            vineyard_id,
            " | ".join(f"{_SNAPSHOT_FIELDS[k]}={len(results[k])}" for k in _SNAPSHOT_FIELDS),
        )
        return EnvironmentalSnapshot(
            vineyard=vineyard,
            **{_SNAPSHOT_FIELDS[kind]: rows for kind, rows in results.items()},
        )

    def save_many(
        self, observations: Sequence[Observation], ctx: OperationContext | None = None
    ) -> list[int]:
        """Save every observation concurrently; return ids in input order.

        Waits for all saves, then raises the first error collected.
        Successful saves are not rolled back.
        """
        if not observations:
            return []
        first_error: BaseException | None = None
        failed = 0
        with self._pool(len(observations), "save") as pool:
            futures = [pool.submit(self._store.save, obs, ctx) for obs in observations]
            for future in as_completed(futures):
                exc = future.exception()
                if exc is not None:
                    failed += 1
                    if first_error is None:
                        first_error = exc
        if first_error is not None:
            logger.warning(
                "Batch save partially failed | total=%d | failed=%d | first_error=%s",
                len(observations),
                failed,
                first_error,
            )
            raise first_error
        logger.info("Batch save completed | total=%d", len(observations))
        return [future.result() for future in futures]

    def save_each(
        self, observations: Sequence[Observation], ctx: OperationContext | None = None
    ) -> list[SaveOutcome]:
        """Save every observation concurrently and report each result in input order."""
        if not observations:
            return []
        with self._pool(len(observations), "save") as pool:
            futures = [pool.submit(self._store.save, obs, ctx) for obs in observations]
        outcomes: list[SaveOutcome] = []
        for observation, future in zip(observations, futures, strict=True):
            exc = future.exception()
            if exc is None:
                outcomes.append(SaveOutcome(observation, id=future.result()))
            else:
                outcomes.append(SaveOutcome(observation, error=exc))  # type: ignore[arg-type]
        failed = sum(1 for o in outcomes if not o.ok)
        logger.info("Batch save reported | total=%d | failed=%d", len(outcomes), failed)
        return outcomes

    def _pool(self, tasks: int, prefix: str) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=min(self._max_workers, tasks), thread_name_prefix=prefix)
