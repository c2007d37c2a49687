"""Ingest observation activity.

The endpoint a scheduled job (or an upstream feed) calls: parses one
JSON payload into a typed observation and saves it.  A batch variant
saves many payloads through ``CorrelationEngine.save_many``; a replace
variant overwrites one stored observation by id.

Engineering standards:
    - Payloads are parsed completely before anything is written.
    - A malformed item in a batch rejects the whole batch up front.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vine_harvester.core.exceptions import ContractError
from vine_harvester.models.observation import ObservationKind, observation_from_dict

if TYPE_CHECKING:
    from vine_harvester.core.context import OperationContext
    from vine_harvester.models.observation import Observation
    from vine_harvester.query.correlation import CorrelationEngine
    from vine_harvester.storage.base import ObservationStore

logger = logging.getLogger("vine_harvester.activities.ingest_observation")


def ingest_observation(
    kind: ObservationKind | str,
    payload: dict[str, Any],
    store: ObservationStore,
    ctx: OperationContext | None = None,
) -> dict[str, Any]:
    """Parse and save one observation.

    Returns:
        ``{"kind", "id", "vineyard_id"}`` for the saved observation.

    Raises:
        ContractError: If the payload shape is wrong.
        InvalidArgumentError: If a value is invalid or the store rejects it.
    """
    resolved = ObservationKind.parse(kind)
    observation = observation_from_dict(resolved, payload)
    new_id = store.save(observation, ctx)
    logger.info(
        "ingest_observation completed | kind=%s | id=%d | vineyard=%d | timestamp=%s",
        resolved.value,
        new_id,
        observation.vineyard_id,
        observation.timestamp.isoformat() if observation.timestamp else "",
    )
    return {"kind": resolved.value, "id": new_id, "vineyard_id": observation.vineyard_id}


def ingest_batch(
    kind: ObservationKind | str,
    payloads: list[dict[str, Any]],
    engine: CorrelationEngine,
    ctx: OperationContext | None = None,
) -> dict[str, Any]:
    """Parse every payload, then save them concurrently.

    Returns:
        ``{"kind", "ids", "count"}`` with ids in input order.

    Raises:
        ContractError: If *payloads* is not a list or any item is malformed.
        HarvesterError: The first save error; earlier saves stay persisted.
    """
    resolved = ObservationKind.parse(kind)
    if not isinstance(payloads, list):
        msg = f"Batch payload must be a list, got {type(payloads).__name__}"
        raise ContractError(msg, stage="ingest_observation")
    observations = [observation_from_dict(resolved, item) for item in payloads]
    ids = engine.save_many(observations, ctx)
    logger.info("ingest_batch completed | kind=%s | count=%d", resolved.value, len(ids))
    return {"kind": resolved.value, "ids": ids, "count": len(ids)}


def replace_observation(
    kind: ObservationKind | str,
    observation_id: int,
    payload: dict[str, Any],
    store: ObservationStore,
    ctx: OperationContext | None = None,
) -> Observation:
    """Parse *payload* and replace the stored observation *observation_id*.

    The id comes from the caller; a payload ``id``, if present, must agree.

    Raises:
        ContractError: If the payload shape is wrong or its id disagrees.
        InvalidArgumentError: If a value is invalid or the store rejects it.
        ObservationNotFoundError: If no such observation exists.
    """
    resolved = ObservationKind.parse(kind)
    if not isinstance(payload, dict):
        msg = f"Observation payload must be an object, got {type(payload).__name__}"
        raise ContractError(msg, stage="ingest_observation")
    declared = payload.get("id")
    if declared is not None and declared != observation_id:
        msg = f"Payload id {declared!r} does not match {observation_id}"
        raise ContractError(msg, stage="ingest_observation")
    observation = observation_from_dict(resolved, {**payload, "id": observation_id})
    store.update(observation, ctx)
    logger.info(
        "replace_observation completed | kind=%s | id=%d | vineyard=%d",
        resolved.value,
        observation_id,
        observation.vineyard_id,
    )
    return observation
