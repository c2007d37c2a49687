"""Shared harvester constants: single source of truth."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

DEFAULT_TIME_ZONE: str = "UTC"
"""Time zone applied to a job when its data source declares none."""

BODY_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})
"""HTTP methods whose job target carries a request body."""

DEFAULT_SCHEDULER_API_BASE_URL: str = "https://cloudscheduler.googleapis.com"
"""Google Cloud Scheduler REST endpoint (v1 paths are appended)."""

# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------

DEFAULT_MAX_RETRIES: int = 3
"""Retries after the first job creation attempt."""

DEFAULT_BACKOFF_BASE_SECONDS: float = 1.0
"""First backoff delay; doubles after each failed attempt."""

# ---------------------------------------------------------------------------
# Storage / query
# ---------------------------------------------------------------------------

DEFAULT_DATABASE_URL: str = "sqlite:///./harvester.db"
"""SQLAlchemy URL used when ``DATABASE_URL`` is unset."""

DEFAULT_PARALLEL_INGESTIONS: int = 5
"""Worker threads for snapshot fan-out and batch saves."""
