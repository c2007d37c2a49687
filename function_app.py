"""Azure Functions entry point: Vineyard Environmental Data Harvester.

This module registers all Azure Functions (HTTP routes and the start-up
timer) using the Python v2 programming model.

All business logic lives in the vine_harvester package. This file is
purely the wiring layer between Azure Functions bindings and
application code.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache

import azure.functions as func

from vine_harvester.activities.ingest_observation import (
    ingest_batch,
    ingest_observation,
    replace_observation,
)
from vine_harvester.core.config import AppConfig
from vine_harvester.core.exceptions import HarvesterError, InvalidArgumentError
from vine_harvester.core.ingress import (
    error_body,
    http_status_for,
    parse_json_body,
    path_int,
    query_bbox,
    query_int,
    query_timestamp,
)
from vine_harvester.core.services import Services, build_services
from vine_harvester.models.observation import ObservationKind

app = func.FunctionApp(http_auth_level=func.AuthLevel.FUNCTION)

logger = logging.getLogger("vine_harvester.function_app")


@lru_cache(maxsize=1)
def _services() -> Services:
    return build_services(AppConfig.from_env())


def _json_response(body: object, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body), status_code=status_code, mimetype="application/json"
    )


def _error_response(exc: Exception, route: str) -> func.HttpResponse:
    status = http_status_for(exc)
    if isinstance(exc, HarvesterError):
        logger.warning(
            "Request failed | route=%s | status=%d | code=%s | error=%s",
            route,
            status,
            exc.code,
            exc,
        )
    else:
        logger.exception("Unhandled error | route=%s", route)
    return _json_response(error_body(exc), status)


# ---------------------------------------------------------------------------
# Timer: reconcile scheduler jobs at start-up (and daily)
# ---------------------------------------------------------------------------


@app.function_name("reconcile_on_startup")
@app.timer_trigger(schedule="0 0 3 * * *", arg_name="timer", run_on_startup=True)
def reconcile_on_startup(timer: func.TimerRequest) -> None:
    """Ensure one scheduler job per enabled data source.

    Per-source failures are logged and the host keeps running.
    """
    result = _services().reconcile()
    logger.info(
        "Startup reconciliation | succeeded=%d | created=%d | failed=%d | past_due=%s",
        len(result.succeeded),
        len(result.created),
        len(result.failed),
        timer.past_due,
    )


# ---------------------------------------------------------------------------
# HTTP: reconciliation on demand
# ---------------------------------------------------------------------------


@app.function_name("reconcile_scheduler")
@app.route(route="scheduler/reconcile", methods=["POST"])
def reconcile_scheduler(req: func.HttpRequest) -> func.HttpResponse:
    try:
        result = _services().reconcile()
    except Exception as exc:
        return _error_response(exc, "scheduler/reconcile")
    return _json_response(result.to_dict(), 200 if result.ok else 207)


# ---------------------------------------------------------------------------
# HTTP: ingestion
# ---------------------------------------------------------------------------


@app.function_name("ingest_observation")
@app.route(route="observations/{kind}", methods=["POST"])
def ingest_observation_http(req: func.HttpRequest) -> func.HttpResponse:
    """Save one observation (JSON object) or a batch (JSON array)."""
    kind = req.route_params.get("kind", "")
    try:
        services = _services()
        body = parse_json_body(req.get_body(), allow_list=True)
        if isinstance(body, list):
            result = ingest_batch(kind, body, services.engine)
        else:
            result = ingest_observation(kind, body, services.store)
    except Exception as exc:
        return _error_response(exc, f"observations/{kind}")
    return _json_response(result, 201)


# ---------------------------------------------------------------------------
# HTTP: single observations
# ---------------------------------------------------------------------------


@app.function_name("get_observation")
@app.route(route="observations/{kind}/{observation_id}", methods=["GET"])
def get_observation(req: func.HttpRequest) -> func.HttpResponse:
    kind = req.route_params.get("kind", "")
    try:
        observation_id = path_int(req.route_params.get("observation_id"), "observation_id")
        observation = _services().store.get(kind, observation_id)
    except Exception as exc:
        return _error_response(exc, f"observations/{kind}/id")
    return _json_response(observation.to_dict())


@app.function_name("update_observation")
@app.route(route="observations/{kind}/{observation_id}", methods=["PUT"])
def update_observation(req: func.HttpRequest) -> func.HttpResponse:
    """Replace a stored observation; a body ``id`` must match the path."""
    kind = req.route_params.get("kind", "")
    try:
        observation_id = path_int(req.route_params.get("observation_id"), "observation_id")
        body = parse_json_body(req.get_body())
        observation = replace_observation(kind, observation_id, body, _services().store)
    except Exception as exc:
        return _error_response(exc, f"observations/{kind}/id")
    return _json_response(observation.to_dict())


@app.function_name("delete_observation")
@app.route(route="observations/{kind}/{observation_id}", methods=["DELETE"])
def delete_observation(req: func.HttpRequest) -> func.HttpResponse:
    kind = req.route_params.get("kind", "")
    try:
        observation_id = path_int(req.route_params.get("observation_id"), "observation_id")
        _services().store.delete(kind, observation_id)
    except Exception as exc:
        return _error_response(exc, f"observations/{kind}/id")
    logger.info("Observation deleted | kind=%s | id=%d", kind, observation_id)
    return func.HttpResponse(status_code=204)


# ---------------------------------------------------------------------------
# HTTP: queries
# ---------------------------------------------------------------------------


@app.function_name("vineyard_snapshot")
@app.route(route="vineyards/{vineyard_id}/snapshot", methods=["GET"])
def vineyard_snapshot(req: func.HttpRequest) -> func.HttpResponse:
    """Every observation kind for a vineyard (``start``, ``end``, ``bbox`` optional)."""
    try:
        vineyard_id = path_int(req.route_params.get("vineyard_id"), "vineyard_id")
        snapshot = _services().engine.get_environmental_snapshot(
            vineyard_id,
            start=query_timestamp(req.params, "start"),
            end=query_timestamp(req.params, "end"),
            bbox=query_bbox(req.params),
        )
    except Exception as exc:
        return _error_response(exc, "vineyards/snapshot")
    return _json_response(snapshot.to_dict())


@app.function_name("vineyard_observations")
@app.route(route="vineyards/{vineyard_id}/observations/{kind}", methods=["GET"])
def vineyard_observations(req: func.HttpRequest) -> func.HttpResponse:
    """List one kind by date range, most recent ``limit``, or ``bbox``."""
    try:
        vineyard_id = path_int(req.route_params.get("vineyard_id"), "vineyard_id")
        kind = ObservationKind.parse(req.route_params.get("kind", ""))
        store = _services().store
        start = query_timestamp(req.params, "start")
        end = query_timestamp(req.params, "end")
        limit = query_int(req.params, "limit")
        bbox = query_bbox(req.params)
        if limit is not None:
            if start or end or bbox:
                msg = "limit cannot be combined with start, end or bbox"
                raise InvalidArgumentError(msg, stage="ingress")
            rows = store.list_recent(kind, vineyard_id, limit)
        else:
            rows = store.query(kind, vineyard_id, start=start, end=end, bbox=bbox)
    except Exception as exc:
        return _error_response(exc, "vineyards/observations")
    return _json_response({"kind": kind.value, "observations": [r.to_dict() for r in rows]})


@app.function_name("vineyard_pests")
@app.route(route="vineyards/{vineyard_id}/pests", methods=["GET"])
def vineyard_pests(req: func.HttpRequest) -> func.HttpResponse:
    """Pest observations filtered by ``pest_type`` and/or ``severity``."""
    try:
        vineyard_id = path_int(req.route_params.get("vineyard_id"), "vineyard_id")
        rows = _services().store.filter_pests(
            vineyard_id,
            pest_type=req.params.get("pest_type") or None,
            severity=req.params.get("severity") or None,
        )
    except Exception as exc:
        return _error_response(exc, "vineyards/pests")
    return _json_response({"kind": "pest", "observations": [r.to_dict() for r in rows]})
