"""Typed environmental observations: one variant per data kind.

Every observation belongs to exactly one vineyard and carries exactly
one timestamp used for range filtering.  The timestamp field name
differs per kind (``sampled_at`` for soil, ``observed_at`` for pests and
weather, ``captured_at`` for imagery) and is exposed uniformly as
``Observation.timestamp`` so the store never mixes semantics between
kinds: every query is scoped to a single ``ObservationKind``.

Variants:

- ``SoilObservation``     : point sample with a structured property map
- ``PestObservation``     : point sighting with a ``Severity``
- ``WeatherObservation``  : point reading (temperature, humidity)
- ``ImageObservation``    : image covering a bounding box
- ``SatelliteObservation``: satellite image, adds ``resolution_m``

Timestamps are normalised to timezone-aware UTC.  A missing timestamp is
allowed at construction; the store rejects it on save.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from vine_harvester.core.exceptions import ContractError, InvalidArgumentError
from vine_harvester.models.geometry import BoundingBox, GeometryValue, Point
from vine_harvester.utils.helpers import ensure_utc, format_timestamp, parse_timestamp


class ModelValidationError(InvalidArgumentError):
    """Raised when an observation is constructed with invalid field values.

    Attributes:
        model: Name of the model class that failed validation.
        field_name: The field that violated the invariant.
        value: The invalid value.
    """

    default_stage = "model_validation"
    default_code = "MODEL_VALIDATION_FAILED"

    def __init__(self, model: str, field_name: str, value: object, message: str) -> None:
        self.model = model
        self.field_name = field_name
        self.value = value
        super().__init__(f"{model}.{field_name}={value!r}: {message}")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ObservationKind(enum.Enum):
    """Closed set of observation kinds."""

    SOIL = "soil"
    PEST = "pest"
    WEATHER = "weather"
    IMAGE = "image"
    SATELLITE = "satellite"

    @classmethod
    def parse(cls, value: str | ObservationKind) -> ObservationKind:
        """Resolve a kind from its value, raising ``InvalidArgumentError``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            known = ", ".join(k.value for k in cls)
            msg = f"Unknown observation kind {value!r}. Known: {known}"
            raise InvalidArgumentError(msg) from exc


class Severity(enum.Enum):
    """Pest severity.  ``BENEFICIAL`` marks a helpful species."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    BENEFICIAL = "beneficial"

    @classmethod
    def parse(cls, value: str | Severity) -> Severity:
        """Resolve a severity case-insensitively, raising ``InvalidArgumentError``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            known = ", ".join(s.value for s in cls)
            msg = f"Unknown severity {value!r}. Known: {known}"
            raise InvalidArgumentError(msg) from exc


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

_GEOMETRY_TYPES: dict[str, type[Point] | type[BoundingBox]] = {
    "location": Point,
    "bounding_box": BoundingBox,
}


def _require_number(model: str, field_name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ModelValidationError(model, field_name, value, "must be a number")


@dataclass(frozen=True, slots=True, kw_only=True)
class Observation:
    """Fields shared by every observation kind.

    Attributes:
        id: Store-allocated identifier; ``None`` until saved.
        vineyard_id: Owning vineyard (foreign key, not containment).
    """

    kind: ClassVar[ObservationKind]
    timestamp_field: ClassVar[str]
    geometry_field: ClassVar[str]

    id: int | None = None
    vineyard_id: int

    def __post_init__(self) -> None:
        name = type(self).__name__
        if isinstance(self.vineyard_id, bool) or not isinstance(self.vineyard_id, int):
            raise ModelValidationError(name, "vineyard_id", self.vineyard_id, "must be an integer")
        expected = _GEOMETRY_TYPES[self.geometry_field]
        if not isinstance(self.geometry, expected):
            raise ModelValidationError(
                name, self.geometry_field, self.geometry, f"must be a {expected.__name__}"
            )
        value = getattr(self, self.timestamp_field)
        if isinstance(value, datetime):
            object.__setattr__(self, self.timestamp_field, ensure_utc(value))

    @property
    def timestamp(self) -> datetime | None:
        """The kind-specific timestamp used for range filtering."""
        return getattr(self, self.timestamp_field)

    @property
    def geometry(self) -> GeometryValue:
        return getattr(self, self.geometry_field)

    def with_id(self, observation_id: int) -> Observation:
        """Return a copy carrying *observation_id*."""
        return dataclasses.replace(self, id=observation_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict (includes ``kind``)."""
        data: dict[str, Any] = {"kind": self.kind.value}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = format_timestamp(value)
            elif isinstance(value, Point | BoundingBox):
                value = value.to_dict()
            elif isinstance(value, enum.Enum):
                value = value.value
            elif isinstance(value, dict):
                value = dict(value)
            data[f.name] = value
        return data


# ---------------------------------------------------------------------------
# Point-located kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True, kw_only=True)
class SoilObservation(Observation):
    """A soil sample.

    ``properties`` holds the structured sample data, e.g.
    ``{"ph": 6.4, "nutrients": {"nitrogen": 12.0}, "organic_matter_pct": 3.1}``.
    """

    kind: ClassVar[ObservationKind] = ObservationKind.SOIL
    timestamp_field: ClassVar[str] = "sampled_at"
    geometry_field: ClassVar[str] = "location"

    sampled_at: datetime | None = None
    location: Point
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class PestObservation(Observation):
    kind: ClassVar[ObservationKind] = ObservationKind.PEST
    timestamp_field: ClassVar[str] = "observed_at"
    geometry_field: ClassVar[str] = "location"

    observed_at: datetime | None = None
    location: Point
    pest_type: str
    severity: Severity

    def __post_init__(self) -> None:
        Observation.__post_init__(self)
        if not isinstance(self.pest_type, str) or not self.pest_type:
            raise ModelValidationError("PestObservation", "pest_type", self.pest_type, "must not be empty")
        if not isinstance(self.severity, Severity):
            raise ModelValidationError("PestObservation", "severity", self.severity, "must be a Severity")


@dataclass(frozen=True, slots=True, kw_only=True)
class WeatherObservation(Observation):
    kind: ClassVar[ObservationKind] = ObservationKind.WEATHER
    timestamp_field: ClassVar[str] = "observed_at"
    geometry_field: ClassVar[str] = "location"

    observed_at: datetime | None = None
    location: Point
    temperature_c: float
    humidity_pct: float

    def __post_init__(self) -> None:
        Observation.__post_init__(self)
        _require_number("WeatherObservation", "temperature_c", self.temperature_c)
        _require_number("WeatherObservation", "humidity_pct", self.humidity_pct)
        if not 0.0 <= self.humidity_pct <= 100.0:
            raise ModelValidationError(
                "WeatherObservation", "humidity_pct", self.humidity_pct, "must be between 0 and 100"
            )


# ---------------------------------------------------------------------------
# Area-covering kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True, kw_only=True)
class ImageObservation(Observation):
    """An image (drone, aerial, upload) covering ``bounding_box``."""

    kind: ClassVar[ObservationKind] = ObservationKind.IMAGE
    timestamp_field: ClassVar[str] = "captured_at"
    geometry_field: ClassVar[str] = "bounding_box"

    captured_at: datetime | None = None
    bounding_box: BoundingBox
    url: str
    description: str = ""

    def __post_init__(self) -> None:
        Observation.__post_init__(self)
        if not isinstance(self.url, str) or not self.url:
            raise ModelValidationError(type(self).__name__, "url", self.url, "must not be empty")


@dataclass(frozen=True, slots=True, kw_only=True)
class SatelliteObservation(ImageObservation):
    """A satellite scene; ``resolution_m`` is ground sample distance in metres."""

    kind: ClassVar[ObservationKind] = ObservationKind.SATELLITE

    resolution_m: float = 0.0

    def __post_init__(self) -> None:
        ImageObservation.__post_init__(self)
        _require_number("SatelliteObservation", "resolution_m", self.resolution_m)
        if self.resolution_m < 0:
            raise ModelValidationError(
                "SatelliteObservation", "resolution_m", self.resolution_m, "must be >= 0 (metres)"
            )


# ---------------------------------------------------------------------------
# Deserialisation
# ---------------------------------------------------------------------------

OBSERVATION_TYPES: dict[ObservationKind, type[Observation]] = {
    ObservationKind.SOIL: SoilObservation,
    ObservationKind.PEST: PestObservation,
    ObservationKind.WEATHER: WeatherObservation,
    ObservationKind.IMAGE: ImageObservation,
    ObservationKind.SATELLITE: SatelliteObservation,
}


def observation_type(kind: ObservationKind | str) -> type[Observation]:
    """Return the observation class for *kind*."""
    return OBSERVATION_TYPES[ObservationKind.parse(kind)]


def observation_from_dict(kind: ObservationKind | str, data: dict[str, Any]) -> Observation:
    """Build an observation of *kind* from a JSON-style dict.

    Unknown keys are ignored.  A ``kind`` key, if present, must agree
    with *kind*.

    Raises:
        ContractError: If *data* is not a dict or a required field is
            missing or null.  A null ``id`` or timestamp counts as unset;
            a null optional field takes its default.
        InvalidArgumentError: If a field value is invalid.
    """
    resolved = ObservationKind.parse(kind)
    if not isinstance(data, dict):
        msg = f"Observation payload must be an object, got {type(data).__name__}"
        raise ContractError(msg)
    declared = data.get("kind")
    if declared is not None and ObservationKind.parse(declared) is not resolved:
        msg = f"Payload kind {declared!r} does not match {resolved.value!r}"
        raise ContractError(msg)

    cls = OBSERVATION_TYPES[resolved]
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if value is None:
            if f.name in ("id", cls.timestamp_field):
                kwargs[f.name] = None
            elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                msg = f"Invalid {resolved.value} observation payload: {f.name} must not be null"
                raise ContractError(msg)
            continue
        kwargs[f.name] = _coerce_field(cls, f.name, value)

    try:
        return cls(**kwargs)
    except TypeError as exc:
        msg = f"Invalid {resolved.value} observation payload: {exc}"
        raise ContractError(msg) from exc


def _coerce_field(cls: type[Observation], name: str, value: Any) -> Any:
    if name in ("id", "vineyard_id"):
        return _as_int(cls, name, value)
    if name == cls.timestamp_field:
        return parse_timestamp(value)
    if name == "location":
        return value if isinstance(value, Point) else Point.from_dict(_as_mapping(cls, name, value))
    if name == "bounding_box":
        if isinstance(value, BoundingBox):
            return value
        return BoundingBox.from_dict(_as_mapping(cls, name, value))
    if name == "severity":
        try:
            return Severity(str(value).lower())
        except ValueError as exc:
            raise ModelValidationError(cls.__name__, name, value, "unknown severity") from exc
    if name in ("temperature_c", "humidity_pct", "resolution_m"):
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ModelValidationError(cls.__name__, name, value, "must be a number") from exc
    if name == "properties":
        return dict(_as_mapping(cls, name, value))
    return str(value)


def _as_int(cls: type[Observation], name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ModelValidationError(cls.__name__, name, value, "must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ModelValidationError(cls.__name__, name, value, "must be an integer") from exc


def _as_mapping(cls: type[Observation], name: str, value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ModelValidationError(cls.__name__, name, value, "must be an object")
    return value
