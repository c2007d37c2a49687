"""Planar geometry values: ``Point`` and ``BoundingBox``.

Coordinates are WGS 84 longitude (x) and latitude (y).  Both types are
frozen and validated at construction; an inverted bounding box is an
error, never silently normalised.

Spatial predicates delegate to Shapely and are boundary-inclusive: a
point on the edge of a box is covered by it, and two boxes that share
only an edge intersect.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import Polygon, box

from vine_harvester.core.exceptions import InvalidArgumentError


class GeometryError(InvalidArgumentError):
    """Raised when a geometry value violates its invariants."""

    default_stage = "geometry"
    default_code = "INVALID_GEOMETRY"


def _check_finite(type_name: str, name: str, value: float) -> None:
    if not isinstance(value, int | float) or not math.isfinite(value):
        msg = f"{type_name}.{name}={value!r}: must be a finite number"
        raise GeometryError(msg)


@dataclass(frozen=True, slots=True)
class Point:
    """A single location.

    Attributes:
        x: Longitude in decimal degrees.
        y: Latitude in decimal degrees.
    """

    x: float
    y: float

    def __post_init__(self) -> None:
        _check_finite("Point", "x", self.x)
        _check_finite("Point", "y", self.y)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Degenerate ``(min_x, min_y, max_x, max_y)`` of the point."""
        return (self.x, self.y, self.x, self.y)

    def to_shapely(self) -> ShapelyPoint:
        return ShapelyPoint(self.x, self.y)

    def to_dict(self) -> dict[str, object]:
        return {"type": "Point", "x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Point:
        """Build from ``{"x": .., "y": ..}`` (``lon``/``lat`` also accepted)."""
        try:
            x = data["x"] if "x" in data else data["lon"]
            y = data["y"] if "y" in data else data["lat"]
            return cls(x=float(x), y=float(y))
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Invalid point payload {data!r}: {exc}"
            raise GeometryError(msg) from exc


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """An axis-aligned rectangle in longitude/latitude space.

    Invariant: ``min_x <= max_x`` and ``min_y <= max_y``.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self) -> None:
        for name in ("min_x", "min_y", "max_x", "max_y"):
            _check_finite("BoundingBox", name, getattr(self, name))
        if self.min_x > self.max_x:
            msg = f"BoundingBox.min_x={self.min_x!r}: must be <= max_x ({self.max_x!r})"
            raise GeometryError(msg)
        if self.min_y > self.max_y:
            msg = f"BoundingBox.min_y={self.min_y!r}: must be <= max_y ({self.max_y!r})"
            raise GeometryError(msg)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def to_shapely(self) -> Polygon:
        return box(self.min_x, self.min_y, self.max_x, self.max_y)

    def covers(self, point: Point) -> bool:
        """True if *point* lies inside the box or on its boundary."""
        return bool(self.to_shapely().covers(point.to_shapely()))

    def intersects(self, other: GeometryValue) -> bool:
        """True if *other* (point or box) touches or overlaps the box."""
        return bool(self.to_shapely().intersects(other.to_shapely()))

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "BoundingBox",
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BoundingBox:
        try:
            return cls(
                min_x=float(data["min_x"]),
                min_y=float(data["min_y"]),
                max_x=float(data["max_x"]),
                max_y=float(data["max_y"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Invalid bounding box payload {data!r}: {exc}"
            raise GeometryError(msg) from exc

    @classmethod
    def from_string(cls, raw: str) -> BoundingBox:
        """Parse ``"min_x,min_y,max_x,max_y"`` (query-string form)."""
        parts = [p.strip() for p in raw.split(",")]
        if len(parts) != 4:
            msg = f"Bounding box must have 4 comma-separated values, got {raw!r}"
            raise GeometryError(msg)
        try:
            min_x, min_y, max_x, max_y = (float(p) for p in parts)
        except ValueError as exc:
            msg = f"Bounding box values must be numbers, got {raw!r}"
            raise GeometryError(msg) from exc
        return cls(min_x, min_y, max_x, max_y)


GeometryValue = Point | BoundingBox


def geometry_from_dict(data: dict[str, Any]) -> GeometryValue:
    """Dispatch on the ``type`` key (``"Point"`` or ``"BoundingBox"``)."""
    geometry_type = data.get("type")
    if geometry_type == "Point":
        return Point.from_dict(data)
    if geometry_type == "BoundingBox":
        return BoundingBox.from_dict(data)
    msg = f"Unknown geometry type: {geometry_type!r}"
    raise GeometryError(msg)
