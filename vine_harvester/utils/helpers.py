"""Shared helper functions used across models, storage and ingress.

Centralises timestamp normalisation and duration parsing so that every
observation kind compares timestamps the same way.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from vine_harvester.core.exceptions import InvalidArgumentError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as a timezone-aware UTC datetime.

    Naive datetimes are taken to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_zero_time(value: datetime | None) -> bool:
    """True for a missing timestamp or the ``datetime.min`` sentinel."""
    return value is None or value.replace(tzinfo=None) == datetime.min


def parse_timestamp(timestamp: str | datetime) -> datetime:
    """Parse an ISO 8601 timestamp string into an aware UTC datetime.

    A trailing ``Z`` is accepted.  Date-only strings resolve to midnight.

    Raises:
        InvalidArgumentError: If the value is empty or unparseable.
    """
    if isinstance(timestamp, datetime):
        return ensure_utc(timestamp)
    if not timestamp:
        msg = "Timestamp must not be empty"
        raise InvalidArgumentError(msg)
    try:
        parsed = datetime.fromisoformat(timestamp)
    except (ValueError, TypeError) as exc:
        msg = f"Invalid ISO 8601 timestamp: {timestamp!r}"
        raise InvalidArgumentError(msg) from exc
    return ensure_utc(parsed)


def format_timestamp(value: datetime | None) -> str | None:
    """Serialise an aware datetime as ISO 8601 (``None`` passes through)."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def parse_duration(raw: str | float | int | timedelta) -> timedelta:
    """Parse a duration such as ``"2s"``, ``"500ms"`` or ``"1m30s"``.

    Bare numbers (or numeric strings) are seconds.

    Raises:
        InvalidArgumentError: If the value is malformed or negative.
    """
    if isinstance(raw, timedelta):
        seconds = raw.total_seconds()
    elif isinstance(raw, int | float):
        seconds = float(raw)
    else:
        text = raw.strip().lower()
        try:
            seconds = float(text)
        except ValueError:
            seconds = _parse_duration_units(text)
    if seconds < 0:
        msg = f"Duration must be >= 0, got {raw!r}"
        raise InvalidArgumentError(msg)
    return timedelta(seconds=seconds)


def _parse_duration_units(text: str) -> float:
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        msg = f"Invalid duration: {text!r} (expected e.g. '2s', '500ms', '1m30s')"
        raise InvalidArgumentError(msg)
    return total
