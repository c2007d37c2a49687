"""Thin ingress boundary helpers for the HTTP entrypoints.

Centralises the transport concerns so that ``function_app.py`` contains
only trigger bindings and handoff:

- **parse_json_body**: decodes a request body into a dict (or list).
- **query_int / query_timestamp / query_bbox**: typed query parameters.
- **http_status_for / error_body**: map harvester errors to responses.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from vine_harvester.core.exceptions import (
    ConflictError,
    ContractError,
    HarvesterError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from vine_harvester.models.geometry import BoundingBox
from vine_harvester.utils.helpers import parse_timestamp

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


def parse_json_body(raw: bytes | str | None, *, allow_list: bool = False) -> Any:
    """Decode a JSON request body.

    Args:
        raw: The raw body.
        allow_list: Accept a top-level array (batch ingestion).

    Raises:
        ContractError: If the body is empty, not JSON, or of the wrong shape.
    """
    if not raw:
        msg = "Request body is empty"
        raise ContractError(msg, stage="ingress", code="EMPTY_BODY")
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        msg = f"Request body is not valid JSON: {exc}"
        raise ContractError(msg, stage="ingress", code="INVALID_JSON") from exc
    if isinstance(parsed, dict) or (allow_list and isinstance(parsed, list)):
        return parsed
    expected = "an object or array" if allow_list else "an object"
    msg = f"Request body must be {expected}, got {type(parsed).__name__}"
    raise ContractError(msg, stage="ingress", code="INVALID_INPUT_TYPE")


# ---------------------------------------------------------------------------
# Query parameters
# ---------------------------------------------------------------------------


def path_int(value: str | None, name: str) -> int:
    """Parse an integer route parameter."""
    msg = f"{name} must be an integer, got {value!r}"
    if value is None or not value.strip().lstrip("-").isdigit():
        raise InvalidArgumentError(msg, stage="ingress")
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidArgumentError(msg, stage="ingress") from exc


def query_int(params: Mapping[str, str], name: str, default: int | None = None) -> int | None:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"Query parameter {name} must be an integer, got {raw!r}"
        raise InvalidArgumentError(msg, stage="ingress") from exc


def query_timestamp(params: Mapping[str, str], name: str) -> datetime | None:
    raw = params.get(name)
    if not raw:
        return None
    return parse_timestamp(raw)


def query_bbox(params: Mapping[str, str], name: str = "bbox") -> BoundingBox | None:
    """Parse ``bbox=min_x,min_y,max_x,max_y``."""
    raw = params.get(name)
    if not raw:
        return None
    return BoundingBox.from_string(raw)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def http_status_for(exc: BaseException) -> int:
    """HTTP status for *exc*: 400 / 404 / 409 / 503, else 500."""
    if isinstance(exc, ValidationError | ContractError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, UnavailableError):
        return 503
    if isinstance(exc, HarvesterError) and exc.retryable:
        return 503
    return 500


def error_body(exc: BaseException) -> dict[str, object]:
    """Structured error payload; unexpected exceptions are not echoed."""
    if isinstance(exc, HarvesterError):
        return {"error": exc.to_error_dict()}
    return {"error": InternalError("Internal error", stage="ingress").to_error_dict()}
