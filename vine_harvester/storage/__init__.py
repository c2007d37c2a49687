"""Observation store and vineyard repository backends."""

from vine_harvester.storage.base import (
    ObservationNotFoundError,
    ObservationStore,
    VineyardNotFoundError,
    VineyardRepository,
)
from vine_harvester.storage.memory import InMemoryObservationStore, InMemoryVineyardRepository

__all__ = [
    "InMemoryObservationStore",
    "InMemoryVineyardRepository",
    "ObservationNotFoundError",
    "ObservationStore",
    "VineyardNotFoundError",
    "VineyardRepository",
]
