"""Harvester configuration loaded from environment variables.

Defaults target a local SQLite store and the Cloud Scheduler backend;
set ``SCHEDULER_BACKEND=memory`` to run without a scheduler project.
Azure Functions app settings (or ``local.settings.json``) are the
source of truth.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any value is out
    of its valid range, so bad configuration is caught at start-up
    rather than on the first scheduled run.

The data-source registry itself lives in a YAML file referenced by
``CONFIG_PATH``; see ``vine_harvester.models.datasource``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from vine_harvester.core.constants import (
    DEFAULT_DATABASE_URL,
    DEFAULT_PARALLEL_INGESTIONS,
    DEFAULT_SCHEDULER_API_BASE_URL,
)
from vine_harvester.core.exceptions import HarvesterError

_SCHEDULER_BACKENDS = ("cloud_scheduler", "memory")


class ConfigValidationError(HarvesterError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Immutable harvester configuration.

    Loaded once at function start-up and passed to the service wiring.

    Attributes:
        config_path: Path to the data-source registry YAML file.
        database_url: SQLAlchemy URL for the observation store.
        scheduler_backend: ``cloud_scheduler`` or ``memory``.
        scheduler_project_id: Cloud project that owns the scheduler jobs.
        scheduler_location_id: Cloud region of the scheduler jobs.
        scheduler_api_base_url: Scheduler REST endpoint.
        scheduler_access_token: Bearer token for the scheduler API.
        parallel_ingestions: Worker threads for snapshot fan-out and batch saves.
        reconcile_workers: Sources reconciled in parallel (1 = sequential).
        log_level: Level applied to the ``vine_harvester`` logger.
    """

    config_path: str = ""
    database_url: str = DEFAULT_DATABASE_URL
    scheduler_backend: str = "cloud_scheduler"
    scheduler_project_id: str = ""
    scheduler_location_id: str = ""
    scheduler_api_base_url: str = DEFAULT_SCHEDULER_API_BASE_URL
    scheduler_access_token: str = ""
    parallel_ingestions: int = DEFAULT_PARALLEL_INGESTIONS
    reconcile_workers: int = 1
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range or a
                required value for the selected backend is empty.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``PARALLEL_INGESTIONS=abc``).
        """
        config = cls(
            config_path=os.getenv("CONFIG_PATH", ""),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            scheduler_backend=os.getenv("SCHEDULER_BACKEND", "cloud_scheduler"),
            scheduler_project_id=os.getenv("SCHEDULER_PROJECT_ID", ""),
            scheduler_location_id=os.getenv("SCHEDULER_LOCATION_ID", ""),
            scheduler_api_base_url=os.getenv(
                "SCHEDULER_API_BASE_URL", DEFAULT_SCHEDULER_API_BASE_URL
            ),
            scheduler_access_token=os.getenv("SCHEDULER_ACCESS_TOKEN", ""),
            parallel_ingestions=int(
                os.getenv("PARALLEL_INGESTIONS", str(DEFAULT_PARALLEL_INGESTIONS))
            ),
            reconcile_workers=int(os.getenv("RECONCILE_WORKERS", "1")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
        _validate(config)
        return config

    def apply_logging(self) -> None:
        """Set the package logger level from ``log_level``."""
        logging.getLogger("vine_harvester").setLevel(self.log_level)


def _validate(config: AppConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.database_url:
        raise ConfigValidationError("DATABASE_URL", config.database_url, "must not be empty")

    if config.scheduler_backend not in _SCHEDULER_BACKENDS:
        raise ConfigValidationError(
            "SCHEDULER_BACKEND",
            config.scheduler_backend,
            f"must be one of {', '.join(_SCHEDULER_BACKENDS)}",
        )

    if config.scheduler_backend == "cloud_scheduler":
        if not config.scheduler_project_id:
            raise ConfigValidationError(
                "SCHEDULER_PROJECT_ID",
                config.scheduler_project_id,
                "must not be empty when SCHEDULER_BACKEND=cloud_scheduler",
            )
        if not config.scheduler_location_id:
            raise ConfigValidationError(
                "SCHEDULER_LOCATION_ID",
                config.scheduler_location_id,
                "must not be empty when SCHEDULER_BACKEND=cloud_scheduler",
            )

    if config.parallel_ingestions <= 0:
        raise ConfigValidationError(
            "PARALLEL_INGESTIONS", config.parallel_ingestions, "must be > 0"
        )

    if config.reconcile_workers <= 0:
        raise ConfigValidationError("RECONCILE_WORKERS", config.reconcile_workers, "must be > 0")

    if config.log_level not in logging.getLevelNamesMapping():
        raise ConfigValidationError("LOG_LEVEL", config.log_level, "must be a logging level name")
