"""Cross-kind queries over the observation store."""

from vine_harvester.query.correlation import (
    CorrelationEngine,
    EnvironmentalSnapshot,
    SaveOutcome,
    SnapshotIncompleteError,
)

__all__ = [
    "CorrelationEngine",
    "EnvironmentalSnapshot",
    "SaveOutcome",
    "SnapshotIncompleteError",
]
