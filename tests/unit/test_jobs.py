"""Tests for job-name normalisation and job descriptors."""

from __future__ import annotations

import pytest

from tests.factories import make_source
from vine_harvester.models.jobs import (
    HttpTarget,
    JobDescriptor,
    ScheduledJobHandle,
    normalize_job_name,
)


class TestNormalizeJobName:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("weather", "weather"),
            ("Satellite Imagery", "satellite-imagery"),
            ("  Soil  ", "soil"),
            ("eosdaLandViewer", "eosdalandviewer"),
        ],
    )
    def test_normalises(self, raw: str, expected: str) -> None:
        assert normalize_job_name(raw) == expected

    @pytest.mark.parametrize("raw", ["Weather Feed", " a b ", "already-normal"])
    def test_idempotent(self, raw: str) -> None:
        once = normalize_job_name(raw)
        assert normalize_job_name(once) == once


class TestJobDescriptorFromConfig:
    def test_get_source_has_no_body(self) -> None:
        desc = JobDescriptor.from_config(make_source("weather", body='{"ignored": true}'))
        assert desc.http_target.method == "GET"
        assert desc.http_target.body is None

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH"])
    def test_body_methods_carry_body(self, method: str) -> None:
        desc = JobDescriptor.from_config(make_source("report", http_method=method, body="{}"))
        assert desc.http_target.method == method
        assert desc.http_target.body == "{}"

    def test_time_zone_defaults_to_utc(self) -> None:
        assert JobDescriptor.from_config(make_source("weather")).time_zone == "UTC"

    def test_time_zone_copied_verbatim(self) -> None:
        desc = JobDescriptor.from_config(make_source("weather", time_zone="America/Los_Angeles"))
        assert desc.time_zone == "America/Los_Angeles"

    def test_name_schedule_and_endpoint(self) -> None:
        source = make_source("Satellite Imagery")
        desc = JobDescriptor.from_config(source)
        assert desc.name == "satellite-imagery"
        assert desc.schedule == source.schedule
        # Placeholders are passed through untouched.
        assert desc.http_target.uri == "https://feeds.example.com/Satellite Imagery?lat={lat}&lon={lon}"

    def test_default_content_type_header(self) -> None:
        desc = JobDescriptor.from_config(make_source("weather"))
        assert desc.http_target.headers == {"Content-Type": "application/json"}

    def test_configured_headers_replace_default(self) -> None:
        desc = JobDescriptor.from_config(make_source("weather", headers={"Accept": "text/csv"}))
        assert desc.http_target.headers == {"Accept": "text/csv"}

    def test_api_key_substituted_into_endpoint(self) -> None:
        source = make_source(
            "weather",
            endpoint="https://api.example.com/weather?lat={lat}&lon={lon}&appid={apiKey}",
            api_key="k 1/2",
        )
        desc = JobDescriptor.from_config(source)
        assert desc.http_target.uri == "https://api.example.com/weather?lat={lat}&lon={lon}&appid=k%201%2F2"

    def test_api_key_placeholder_kept_without_key(self) -> None:
        source = make_source("weather", endpoint="https://api.example.com/weather?appid={apiKey}")
        desc = JobDescriptor.from_config(source)
        assert desc.http_target.uri == "https://api.example.com/weather?appid={apiKey}"


class TestHandle:
    def test_short_name(self) -> None:
        handle = ScheduledJobHandle(
            fully_qualified_name="projects/p/locations/l/jobs/weather",
            schedule="* * * * *",
            time_zone="UTC",
            http_target=HttpTarget(uri="https://x"),
        )
        assert handle.short_name == "weather"
        assert handle.to_dict()["name"] == "projects/p/locations/l/jobs/weather"
