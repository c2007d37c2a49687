"""Tests for harvester configuration.

Covers:
- Default values
- Loading from environment variables
- Type coercion (string env vars -> numeric fields)
- Fail-fast range validation
"""

from __future__ import annotations

import logging
import os
from unittest.mock import patch

import pytest

from vine_harvester.core.config import AppConfig, ConfigValidationError

_MEMORY_ENV = {"SCHEDULER_BACKEND": "memory"}


class TestAppConfigDefaults:
    def test_defaults(self) -> None:
        cfg = AppConfig()
        assert cfg.database_url == "sqlite:///./harvester.db"
        assert cfg.scheduler_backend == "cloud_scheduler"
        assert cfg.scheduler_api_base_url == "https://cloudscheduler.googleapis.com"
        assert cfg.parallel_ingestions == 5
        assert cfg.reconcile_workers == 1
        assert cfg.log_level == "INFO"

    def test_is_frozen(self) -> None:
        cfg = AppConfig()
        with pytest.raises(AttributeError):
            cfg.log_level = "DEBUG"  # type: ignore[misc]


class TestAppConfigFromEnv:
    def test_loads_from_environment(self) -> None:
        env = {
            "CONFIG_PATH": "/etc/harvester/config.yaml",
            "DATABASE_URL": "postgresql+psycopg://u:p@db/harvester",
            "SCHEDULER_BACKEND": "cloud_scheduler",
            "SCHEDULER_PROJECT_ID": "vineyard-prod",
            "SCHEDULER_LOCATION_ID": "europe-west1",
            "SCHEDULER_ACCESS_TOKEN": "token",
            "PARALLEL_INGESTIONS": "8",
            "RECONCILE_WORKERS": "3",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = AppConfig.from_env()
        assert cfg.config_path == "/etc/harvester/config.yaml"
        assert cfg.scheduler_project_id == "vineyard-prod"
        assert cfg.scheduler_location_id == "europe-west1"
        assert cfg.parallel_ingestions == 8
        assert cfg.reconcile_workers == 3
        assert cfg.log_level == "DEBUG"

    def test_memory_backend_needs_no_project(self) -> None:
        with patch.dict(os.environ, _MEMORY_ENV, clear=True):
            cfg = AppConfig.from_env()
        assert cfg.scheduler_backend == "memory"

    def test_non_numeric_parallelism(self) -> None:
        with patch.dict(os.environ, {**_MEMORY_ENV, "PARALLEL_INGESTIONS": "abc"}, clear=True):
            with pytest.raises(ValueError):
                AppConfig.from_env()


class TestAppConfigValidation:
    def test_cloud_scheduler_requires_project(self) -> None:
        with patch.dict(os.environ, {"SCHEDULER_LOCATION_ID": "l"}, clear=True):
            with pytest.raises(ConfigValidationError) as exc_info:
                AppConfig.from_env()
        assert exc_info.value.key == "SCHEDULER_PROJECT_ID"

    def test_cloud_scheduler_requires_location(self) -> None:
        with patch.dict(os.environ, {"SCHEDULER_PROJECT_ID": "p"}, clear=True):
            with pytest.raises(ConfigValidationError) as exc_info:
                AppConfig.from_env()
        assert exc_info.value.key == "SCHEDULER_LOCATION_ID"

    def test_unknown_backend(self) -> None:
        with patch.dict(os.environ, {"SCHEDULER_BACKEND": "cron"}, clear=True):
            with pytest.raises(ConfigValidationError, match="SCHEDULER_BACKEND"):
                AppConfig.from_env()

    @pytest.mark.parametrize("key", ["PARALLEL_INGESTIONS", "RECONCILE_WORKERS"])
    def test_counts_must_be_positive(self, key: str) -> None:
        with patch.dict(os.environ, {**_MEMORY_ENV, key: "0"}, clear=True):
            with pytest.raises(ConfigValidationError) as exc_info:
                AppConfig.from_env()
        assert exc_info.value.key == key
        assert exc_info.value.value == 0

    def test_unknown_log_level(self) -> None:
        with patch.dict(os.environ, {**_MEMORY_ENV, "LOG_LEVEL": "chatty"}, clear=True):
            with pytest.raises(ConfigValidationError, match="LOG_LEVEL"):
                AppConfig.from_env()

    def test_error_dict(self) -> None:
        err = ConfigValidationError("PARALLEL_INGESTIONS", 0, "must be > 0")
        payload = err.to_error_dict()
        assert payload["stage"] == "config"
        assert payload["code"] == "CONFIG_VALIDATION_FAILED"
        assert payload["retryable"] is False


def test_apply_logging_sets_package_level() -> None:
    logger = logging.getLogger("vine_harvester")
    previous = logger.level
    try:
        AppConfig(scheduler_backend="memory", log_level="WARNING").apply_logging()
        assert logger.level == logging.WARNING
    finally:
        logger.setLevel(previous)
