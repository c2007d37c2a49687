"""Data models and schemas.

- geometry: Point and BoundingBox values
- observation: Observation kinds (soil, pest, weather, image, satellite)
- vineyard: Vineyard record
- datasource: Data-source configuration and registry
- jobs: Scheduler job descriptors and handles
"""

from vine_harvester.models.geometry import BoundingBox, GeometryError, Point
from vine_harvester.models.observation import (
    ImageObservation,
    ModelValidationError,
    Observation,
    ObservationKind,
    PestObservation,
    SatelliteObservation,
    Severity,
    SoilObservation,
    WeatherObservation,
    observation_from_dict,
)
from vine_harvester.models.vineyard import Vineyard

__all__ = [
    "BoundingBox",
    "GeometryError",
    "ImageObservation",
    "ModelValidationError",
    "Observation",
    "ObservationKind",
    "PestObservation",
    "Point",
    "SatelliteObservation",
    "Severity",
    "SoilObservation",
    "Vineyard",
    "WeatherObservation",
    "observation_from_dict",
]
