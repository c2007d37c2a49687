"""Observation store and vineyard repository interfaces.

``ObservationStore`` owns validation; backends implement a handful of
primitives (``_insert``, ``_fetch``, ``_replace``, ``_remove``,
``_query``).  Every listing goes through ``query`` so date, spatial and
kind scoping behave identically across backends.

Ordering:
    ``list_by_vineyard`` and ``list_by_date_range`` return observations
    in ascending timestamp order (ties broken by id); ``list_recent``
    returns descending order.

Concurrency:
    Saves and updates are atomic per observation.  Concurrent updates
    of the same id are last-writer-wins.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from vine_harvester.core.exceptions import InvalidArgumentError, NotFoundError
from vine_harvester.models.observation import ObservationKind, PestObservation, Severity
from vine_harvester.utils.helpers import ensure_utc, is_zero_time

if TYPE_CHECKING:
    from vine_harvester.core.context import OperationContext
    from vine_harvester.models.geometry import BoundingBox
    from vine_harvester.models.observation import Observation
    from vine_harvester.models.vineyard import Vineyard

logger = logging.getLogger("vine_harvester.storage")


class ObservationNotFoundError(NotFoundError):
    """No observation of the given kind has the given id."""

    default_stage = "observation_store"
    default_code = "OBSERVATION_NOT_FOUND"

    def __init__(self, kind: ObservationKind, observation_id: int) -> None:
        self.kind = kind
        self.observation_id = observation_id
        super().__init__(f"{kind.value} observation {observation_id} not found")


class VineyardNotFoundError(NotFoundError):
    default_stage = "vineyard_repository"
    default_code = "VINEYARD_NOT_FOUND"

    def __init__(self, vineyard_id: int) -> None:
        self.vineyard_id = vineyard_id
        super().__init__(f"Vineyard {vineyard_id} not found")


def sort_key(observation: Observation) -> tuple[datetime, int]:
    """Ascending sort key: timestamp, then id."""
    return observation.timestamp, observation.id or 0  # type: ignore[return-value]


class ObservationStore(abc.ABC):
    """Typed persistence for every observation kind."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def save(self, observation: Observation, ctx: OperationContext | None = None) -> int:
        """Persist a new observation and return its allocated id.

        Raises:
            InvalidArgumentError: If ``vineyard_id <= 0``, the timestamp
                is missing, or the observation already has an id.
        """
        _check_ctx(ctx, "save")
        _require_vineyard_id(observation.vineyard_id)
        _require_timestamp(observation)
        if observation.id is not None:
            msg = f"Observation already has id {observation.id}; use update()"
            raise InvalidArgumentError(msg, stage="observation_store")
        new_id = self._insert(observation)
        logger.debug(
            "Observation saved | kind=%s | id=%d | vineyard=%d",
            observation.kind.value,
            new_id,
            observation.vineyard_id,
        )
        return new_id

    def get(
        self, kind: ObservationKind | str, observation_id: int, ctx: OperationContext | None = None
    ) -> Observation:
        """Return one observation.  Raises ``ObservationNotFoundError``."""
        _check_ctx(ctx, "get")
        resolved = ObservationKind.parse(kind)
        _require_id(observation_id)
        found = self._fetch(resolved, observation_id)
        if found is None:
            raise ObservationNotFoundError(resolved, observation_id)
        return found

    def update(self, observation: Observation, ctx: OperationContext | None = None) -> None:
        """Replace a stored observation wholesale.

        Raises:
            InvalidArgumentError: If the id is missing/non-positive or the
                observation fails the save checks.
            ObservationNotFoundError: If no observation has that id.
        """
        _check_ctx(ctx, "update")
        if observation.id is None:
            msg = "Observation id is required for update"
            raise InvalidArgumentError(msg, stage="observation_store")
        _require_id(observation.id)
        _require_vineyard_id(observation.vineyard_id)
        _require_timestamp(observation)
        if not self._replace(observation):
            raise ObservationNotFoundError(observation.kind, observation.id)

    def delete(
        self, kind: ObservationKind | str, observation_id: int, ctx: OperationContext | None = None
    ) -> None:
        """Delete one observation.  Raises ``ObservationNotFoundError``."""
        _check_ctx(ctx, "delete")
        resolved = ObservationKind.parse(kind)
        _require_id(observation_id)
        if not self._remove(resolved, observation_id):
            raise ObservationNotFoundError(resolved, observation_id)

    def query(
        self,
        kind: ObservationKind | str,
        vineyard_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        bbox: BoundingBox | None = None,
        ctx: OperationContext | None = None,
    ) -> list[Observation]:
        """Observations of *kind* for a vineyard, ascending by timestamp.

        Both date bounds are inclusive; either may be omitted.  *bbox*
        keeps observations whose geometry intersects it, boundary
        included.

        Raises:
            InvalidArgumentError: If ``vineyard_id <= 0`` or ``start > end``.
        """
        _check_ctx(ctx, "query")
        resolved = ObservationKind.parse(kind)
        _require_vineyard_id(vineyard_id)
        start = ensure_utc(start) if start is not None else None
        end = ensure_utc(end) if end is not None else None
        if start is not None and end is not None and start > end:
            msg = f"start {start.isoformat()} is after end {end.isoformat()}"
            raise InvalidArgumentError(msg, stage="observation_store")
        return self._query(resolved, vineyard_id, start, end, bbox)

    def list_by_vineyard(
        self, kind: ObservationKind | str, vineyard_id: int, ctx: OperationContext | None = None
    ) -> list[Observation]:
        return self.query(kind, vineyard_id, ctx=ctx)

    def list_by_date_range(
        self,
        kind: ObservationKind | str,
        vineyard_id: int,
        start: datetime,
        end: datetime,
        ctx: OperationContext | None = None,
    ) -> list[Observation]:
        """Observations with ``start <= timestamp <= end``."""
        return self.query(kind, vineyard_id, start=start, end=end, ctx=ctx)

    def list_recent(
        self,
        kind: ObservationKind | str,
        vineyard_id: int,
        limit: int,
        ctx: OperationContext | None = None,
    ) -> list[Observation]:
        """Most recent *limit* observations, newest first."""
        if limit <= 0:
            msg = f"limit must be > 0, got {limit}"
            raise InvalidArgumentError(msg, stage="observation_store")
        rows = self.query(kind, vineyard_id, ctx=ctx)
        rows.reverse()
        return rows[:limit]

    def list_within(
        self,
        kind: ObservationKind | str,
        vineyard_id: int,
        bbox: BoundingBox,
        ctx: OperationContext | None = None,
    ) -> list[Observation]:
        return self.query(kind, vineyard_id, bbox=bbox, ctx=ctx)

    def filter_pests(
        self,
        vineyard_id: int,
        *,
        pest_type: str | None = None,
        severity: Severity | str | None = None,
        ctx: OperationContext | None = None,
    ) -> list[PestObservation]:
        """Pest observations matching *pest_type* and/or *severity*.

        Raises:
            InvalidArgumentError: If *severity* names no known level.
        """
        wanted = Severity.parse(severity) if severity is not None else None
        rows = self.query(ObservationKind.PEST, vineyard_id, ctx=ctx)
        return [
            row
            for row in rows
            if isinstance(row, PestObservation)
            and (pest_type is None or row.pest_type == pest_type)
            and (wanted is None or row.severity is wanted)
        ]

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def _insert(self, observation: Observation) -> int:
        """Store a new observation; return the allocated id."""

    @abc.abstractmethod
    def _fetch(self, kind: ObservationKind, observation_id: int) -> Observation | None:
        """Return the observation or ``None``."""

    @abc.abstractmethod
    def _replace(self, observation: Observation) -> bool:
        """Replace by id; return ``False`` if absent."""

    @abc.abstractmethod
    def _remove(self, kind: ObservationKind, observation_id: int) -> bool:
        """Delete by id; return ``False`` if absent."""

    @abc.abstractmethod
    def _query(
        self,
        kind: ObservationKind,
        vineyard_id: int,
        start: datetime | None,
        end: datetime | None,
        bbox: BoundingBox | None,
    ) -> list[Observation]:
        """Filtered listing in ascending ``sort_key`` order."""


class VineyardRepository(abc.ABC):
    """Read access to vineyards (writes belong to the CRUD service)."""

    @abc.abstractmethod
    def get(self, vineyard_id: int, ctx: OperationContext | None = None) -> Vineyard:
        """Return the vineyard.  Raises ``VineyardNotFoundError``."""

    @abc.abstractmethod
    def add(self, vineyard: Vineyard) -> None:
        """Insert or replace a vineyard (seeding and tests)."""


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_ctx(ctx: OperationContext | None, operation: str) -> None:
    if ctx is not None:
        ctx.raise_if_cancelled(operation)


def _require_vineyard_id(vineyard_id: int) -> None:
    if vineyard_id <= 0:
        msg = f"vineyard_id must be > 0, got {vineyard_id}"
        raise InvalidArgumentError(msg, stage="observation_store")


def _require_id(observation_id: int) -> None:
    if observation_id <= 0:
        msg = f"observation id must be > 0, got {observation_id}"
        raise InvalidArgumentError(msg, stage="observation_store")


def _require_timestamp(observation: Observation) -> None:
    if is_zero_time(observation.timestamp):
        msg = f"{observation.kind.value} observation requires {observation.timestamp_field}"
        raise InvalidArgumentError(msg, stage="observation_store")
