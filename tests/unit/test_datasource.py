"""Tests for data-source configuration and the registry."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from tests.factories import make_source
from vine_harvester.core.config import ConfigValidationError
from vine_harvester.models.datasource import (
    DataSourceConfig,
    DataSourceRegistry,
    HttpMethod,
    RetryPolicy,
)


def _doc(**sources: dict) -> dict:
    return {"dataSources": sources}


def _src(**overrides: object) -> dict:
    base = {
        "enabled": True,
        "schedule": "0 */6 * * *",
        "httpMethod": "GET",
        "endpoint": "https://feeds.example.com/x",
    }
    base.update(overrides)
    return base


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.backoff_base == timedelta(seconds=1)

    def test_camel_case_and_duration_string(self) -> None:
        policy = RetryPolicy.model_validate({"maxRetries": 5, "backoffInterval": "30s"})
        assert policy.max_retries == 5
        assert policy.backoff_base == timedelta(seconds=30)

    def test_delays_double(self) -> None:
        policy = RetryPolicy(max_retries=3, backoff_base="500ms")
        assert [policy.delay_for(i) for i in range(3)] == [0.5, 1.0, 2.0]

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            RetryPolicy(max_retries=-1)

    def test_malformed_duration_rejected(self) -> None:
        with pytest.raises(PydanticValidationError, match="Invalid duration"):
            RetryPolicy(backoff_base="soon")


class TestDataSourceConfig:
    def test_aliases_and_defaults(self) -> None:
        cfg = DataSourceConfig.model_validate({"name": "weather", **_src(timeZone="Europe/Paris")})
        assert cfg.time_zone == "Europe/Paris"
        assert cfg.http_method is HttpMethod.GET
        assert cfg.headers == {}
        assert cfg.body is None

    def test_method_is_case_insensitive(self) -> None:
        cfg = DataSourceConfig.model_validate({"name": "x", **_src(httpMethod="post")})
        assert cfg.http_method is HttpMethod.POST

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            DataSourceConfig.model_validate({"name": "x", **_src(httpMethod="TRACE")})

    @pytest.mark.parametrize("schedule", ["* * * *", "0 */6 * * * *", "every hour", "0 6 * * $"])
    def test_bad_cron_rejected(self, schedule: str) -> None:
        with pytest.raises(PydanticValidationError):
            DataSourceConfig.model_validate({"name": "x", **_src(schedule=schedule)})

    def test_job_name_is_normalised(self) -> None:
        assert make_source("  Satellite Imagery ").job_name == "satellite-imagery"

    def test_is_frozen(self) -> None:
        cfg = make_source("weather")
        with pytest.raises(PydanticValidationError):
            cfg.enabled = False  # type: ignore[misc]


class TestRegistryFromMapping:
    def test_reads_sources_in_order(self) -> None:
        registry = DataSourceRegistry.from_mapping(
            _doc(weather=_src(), soil=_src(enabled=False), pest=_src())
        )
        assert registry.names() == ["weather", "soil", "pest"]
        assert [s.name for s in registry.enabled()] == ["weather", "pest"]
        assert [s.name for s in registry.disabled()] == ["soil"]
        assert "soil" in registry
        assert len(registry) == 3

    def test_default_retry_policy_from_ingestion_settings(self) -> None:
        doc = _doc(weather=_src(), soil=_src(retryPolicy={"maxRetries": 1, "backoffBase": "2s"}))
        doc["ingestionSettings"] = {
            "retryPolicy": {"maxRetries": 4, "backoffInterval": "30s"},
            "parallelIngestions": 8,
        }
        registry = DataSourceRegistry.from_mapping(doc)
        weather = registry.get("weather")
        soil = registry.get("soil")
        assert weather is not None and soil is not None
        assert weather.retry_policy.max_retries == 4
        assert weather.retry_policy.backoff_base == timedelta(seconds=30)
        assert soil.retry_policy.max_retries == 1
        assert registry.parallel_ingestions == 8

    def test_empty_document(self) -> None:
        registry = DataSourceRegistry.from_mapping({})
        assert len(registry) == 0
        assert registry.enabled() == []

    def test_invalid_source_reports_key(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            DataSourceRegistry.from_mapping(_doc(weather=_src(schedule="bad")))
        assert exc_info.value.key == "dataSources.weather"

    def test_missing_endpoint(self) -> None:
        source = _src()
        del source["endpoint"]
        with pytest.raises(ConfigValidationError, match="endpoint"):
            DataSourceRegistry.from_mapping(_doc(weather=source))

    def test_colliding_job_names_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="already used"):
            DataSourceRegistry.from_mapping(_doc(**{"Soil Data": _src(), "soil-data": _src()}))

    def test_non_positive_parallelism_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="parallelIngestions"):
            DataSourceRegistry.from_mapping({"ingestionSettings": {"parallelIngestions": 0}})

    def test_duplicate_names_rejected_in_constructor(self) -> None:
        with pytest.raises(ConfigValidationError, match="duplicate"):
            DataSourceRegistry([make_source("weather"), make_source("weather")])


class TestRegistryFromYaml:
    def test_example_config_loads(self, example_config_path: Path) -> None:
        registry = DataSourceRegistry.from_yaml(example_config_path)
        assert "weather" in registry
        report = registry.get("Report Generation")
        assert report is not None
        assert report.job_name == "report-generation"
        assert report.body == '{"window": "7d"}'
        assert registry.parallel_ingestions == 5

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigValidationError, match="cannot read file"):
            DataSourceRegistry.from_yaml(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("dataSources: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="invalid YAML"):
            DataSourceRegistry.from_yaml(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="mapping"):
            DataSourceRegistry.from_yaml(path)
