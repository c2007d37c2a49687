"""In-memory observation store and vineyard repository.

One dict per observation kind behind a single ``threading.Lock``.  Ids
are allocated from one counter shared by all kinds.
"""

from __future__ import annotations

import itertools
import threading
from typing import TYPE_CHECKING

from vine_harvester.models.observation import ObservationKind
from vine_harvester.storage.base import (
    ObservationStore,
    VineyardNotFoundError,
    VineyardRepository,
    sort_key,
)

if TYPE_CHECKING:
    from datetime import datetime

    from vine_harvester.core.context import OperationContext
    from vine_harvester.models.geometry import BoundingBox
    from vine_harvester.models.observation import Observation
    from vine_harvester.models.vineyard import Vineyard


class InMemoryObservationStore(ObservationStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._rows: dict[ObservationKind, dict[int, Observation]] = {kind: {} for kind in ObservationKind}

    def _insert(self, observation: Observation) -> int:
        with self._lock:
            new_id = next(self._ids)
            self._rows[observation.kind][new_id] = observation.with_id(new_id)
        return new_id

    def _fetch(self, kind: ObservationKind, observation_id: int) -> Observation | None:
        with self._lock:
            return self._rows[kind].get(observation_id)

    def _replace(self, observation: Observation) -> bool:
        with self._lock:
            rows = self._rows[observation.kind]
            if observation.id not in rows:
                return False
            rows[observation.id] = observation  # type: ignore[index]
        return True

    def _remove(self, kind: ObservationKind, observation_id: int) -> bool:
        with self._lock:
            return self._rows[kind].pop(observation_id, None) is not None

    def _query(
        self,
        kind: ObservationKind,
        vineyard_id: int,
        start: datetime | None,
        end: datetime | None,
        bbox: BoundingBox | None,
    ) -> list[Observation]:
        with self._lock:
            candidates = list(self._rows[kind].values())
        matches = [
            obs
            for obs in candidates
            if obs.vineyard_id == vineyard_id
            and (start is None or obs.timestamp >= start)  # type: ignore[operator]
            and (end is None or obs.timestamp <= end)  # type: ignore[operator]
            and (bbox is None or bbox.intersects(obs.geometry))
        ]
        matches.sort(key=sort_key)
        return matches


class InMemoryVineyardRepository(VineyardRepository):
    def __init__(self, vineyards: list[Vineyard] | None = None) -> None:
        self._lock = threading.Lock()
        self._vineyards: dict[int, Vineyard] = {v.id: v for v in vineyards or []}

    def get(self, vineyard_id: int, ctx: OperationContext | None = None) -> Vineyard:
        if ctx is not None:
            ctx.raise_if_cancelled("get vineyard")
        with self._lock:
            vineyard = self._vineyards.get(vineyard_id)
        if vineyard is None:
            raise VineyardNotFoundError(vineyard_id)
        return vineyard

    def add(self, vineyard: Vineyard) -> None:
        with self._lock:
            self._vineyards[vineyard.id] = vineyard
