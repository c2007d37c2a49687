"""Tests for the observation tagged union."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from tests.factories import T0, make_image, make_pest, make_satellite, make_soil, make_weather
from vine_harvester.core.exceptions import ContractError, InvalidArgumentError
from vine_harvester.models.geometry import BoundingBox, Point
from vine_harvester.models.observation import (
    ImageObservation,
    ModelValidationError,
    ObservationKind,
    PestObservation,
    SatelliteObservation,
    Severity,
    WeatherObservation,
    observation_from_dict,
    observation_type,
)


class TestKinds:
    def test_each_variant_reports_its_kind(self) -> None:
        assert make_soil().kind is ObservationKind.SOIL
        assert make_pest().kind is ObservationKind.PEST
        assert make_weather().kind is ObservationKind.WEATHER
        assert make_image().kind is ObservationKind.IMAGE
        assert make_satellite().kind is ObservationKind.SATELLITE

    def test_satellite_is_an_image(self) -> None:
        assert isinstance(make_satellite(), ImageObservation)

    def test_parse_is_case_insensitive(self) -> None:
        assert ObservationKind.parse(" Pest ") is ObservationKind.PEST

    def test_parse_unknown_kind(self) -> None:
        with pytest.raises(InvalidArgumentError, match="Unknown observation kind"):
            ObservationKind.parse("hail")

    def test_observation_type(self) -> None:
        assert observation_type("satellite") is SatelliteObservation


class TestTimestamps:
    def test_timestamp_uses_kind_specific_field(self) -> None:
        soil = make_soil(at=T0)
        assert soil.timestamp == soil.sampled_at == T0
        image = make_image(at=T0 + timedelta(hours=1))
        assert image.timestamp == image.captured_at

    def test_naive_timestamp_taken_as_utc(self) -> None:
        obs = make_weather(at=datetime(2024, 6, 1, 12, 0))  # noqa: DTZ001
        assert obs.timestamp == T0
        assert obs.timestamp.tzinfo is UTC

    def test_offset_timestamp_converted_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        obs = make_weather(at=datetime(2024, 6, 1, 14, 0, tzinfo=plus_two))
        assert obs.timestamp == T0

    def test_missing_timestamp_allowed_at_construction(self) -> None:
        obs = WeatherObservation(
            vineyard_id=1, location=Point(0, 0), temperature_c=20.0, humidity_pct=50.0
        )
        assert obs.timestamp is None


class TestInvariants:
    def test_humidity_range(self) -> None:
        with pytest.raises(ModelValidationError, match="humidity_pct"):
            WeatherObservation(
                vineyard_id=1,
                observed_at=T0,
                location=Point(0, 0),
                temperature_c=20.0,
                humidity_pct=101.0,
            )

    def test_negative_resolution(self) -> None:
        with pytest.raises(ModelValidationError, match="resolution_m"):
            SatelliteObservation(
                vineyard_id=1,
                captured_at=T0,
                bounding_box=BoundingBox(0, 0, 1, 1),
                url="https://x",
                resolution_m=-1.0,
            )

    def test_empty_url(self) -> None:
        with pytest.raises(ModelValidationError, match="url"):
            ImageObservation(vineyard_id=1, captured_at=T0, bounding_box=BoundingBox(0, 0, 1, 1), url="")

    def test_empty_pest_type(self) -> None:
        with pytest.raises(ModelValidationError, match="pest_type"):
            PestObservation(
                vineyard_id=1, observed_at=T0, location=Point(0, 0), pest_type="", severity=Severity.MILD
            )

    def test_model_validation_error_is_invalid_argument(self) -> None:
        assert issubclass(ModelValidationError, InvalidArgumentError)

    def test_missing_location_rejected(self) -> None:
        with pytest.raises(ModelValidationError, match="location"):
            PestObservation(
                vineyard_id=1,
                observed_at=T0,
                location=None,  # type: ignore[arg-type]
                pest_type="mite",
                severity=Severity.MILD,
            )

    def test_point_where_bounding_box_expected(self) -> None:
        with pytest.raises(ModelValidationError, match="bounding_box"):
            ImageObservation(
                vineyard_id=1,
                captured_at=T0,
                bounding_box=Point(0, 0),  # type: ignore[arg-type]
                url="https://x",
            )

    @pytest.mark.parametrize("vineyard_id", [None, "1", 1.0, True])
    def test_vineyard_id_must_be_int(self, vineyard_id: object) -> None:
        with pytest.raises(ModelValidationError, match="vineyard_id"):
            make_soil(vineyard_id=vineyard_id)  # type: ignore[arg-type]

    def test_temperature_must_be_number(self) -> None:
        with pytest.raises(ModelValidationError, match="temperature_c"):
            WeatherObservation(
                vineyard_id=1,
                observed_at=T0,
                location=Point(0, 0),
                temperature_c=None,  # type: ignore[arg-type]
                humidity_pct=50.0,
            )

    def test_severity_must_be_enum(self) -> None:
        with pytest.raises(ModelValidationError, match="severity"):
            make_pest(severity="severe")  # type: ignore[arg-type]


class TestSerialisation:
    def test_to_dict_shape(self) -> None:
        data = make_pest(severity=Severity.SEVERE).with_id(7).to_dict()
        assert data["kind"] == "pest"
        assert data["id"] == 7
        assert data["severity"] == "severe"
        assert data["observed_at"] == "2024-06-01T12:00:00+00:00"
        assert data["location"] == {"type": "Point", "x": -122.25, "y": 38.45}

    def test_from_dict_rebuilds_equal_observation(self) -> None:
        original = make_satellite().with_id(3)
        assert observation_from_dict("satellite", original.to_dict()) == original

    def test_from_dict_parses_z_suffix(self) -> None:
        obs = observation_from_dict(
            "weather",
            {
                "vineyard_id": "2",
                "observed_at": "2024-06-01T12:00:00Z",
                "location": {"lon": 1.0, "lat": 2.0},
                "temperature_c": "18.5",
                "humidity_pct": 60,
            },
        )
        assert isinstance(obs, WeatherObservation)
        assert obs.vineyard_id == 2
        assert obs.timestamp == T0
        assert obs.temperature_c == 18.5

    def test_from_dict_kind_mismatch(self) -> None:
        with pytest.raises(ContractError, match="does not match"):
            observation_from_dict("soil", make_weather().to_dict())

    def test_from_dict_missing_required_field(self) -> None:
        with pytest.raises(ContractError, match="Invalid pest observation payload"):
            observation_from_dict("pest", {"vineyard_id": 1, "observed_at": "2024-06-01T00:00:00Z"})

    @pytest.mark.parametrize("field", ["vineyard_id", "location", "temperature_c", "humidity_pct"])
    def test_from_dict_null_required_field(self, field: str) -> None:
        data = make_weather().to_dict()
        data[field] = None
        with pytest.raises(ContractError, match=f"{field} must not be null"):
            observation_from_dict("weather", data)

    def test_from_dict_null_optional_field_takes_default(self) -> None:
        data = make_image().to_dict()
        data["description"] = None
        data["id"] = None
        obs = observation_from_dict("image", data)
        assert obs.description == ""  # type: ignore[attr-defined]
        assert obs.id is None

    def test_from_dict_not_an_object(self) -> None:
        with pytest.raises(ContractError):
            observation_from_dict("soil", ["not", "a", "dict"])  # type: ignore[arg-type]

    def test_from_dict_unknown_severity(self) -> None:
        data = make_pest().to_dict()
        data["severity"] = "catastrophic"
        with pytest.raises(ModelValidationError, match="severity"):
            observation_from_dict("pest", data)

    def test_from_dict_bad_timestamp(self) -> None:
        data = make_soil().to_dict()
        data["sampled_at"] = "yesterday"
        with pytest.raises(InvalidArgumentError, match="ISO 8601"):
            observation_from_dict("soil", data)
