"""Shared pytest fixtures for the vine harvester test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.factories import make_source
from vine_harvester.models.datasource import DataSourceRegistry
from vine_harvester.models.geometry import BoundingBox
from vine_harvester.models.vineyard import Vineyard

# ---------------------------------------------------------------------------
# Path fixtures
# ---------------------------------------------------------------------------

TESTS_DIR = Path(__file__).parent
EXAMPLE_CONFIG = TESTS_DIR.parent / "configs" / "config-example.yaml"


@pytest.fixture()
def example_config_path() -> Path:
    """Path to the shipped example registry."""
    return EXAMPLE_CONFIG


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def vineyard() -> Vineyard:
    return Vineyard(
        id=1,
        name="Domaine Test",
        location="Napa Valley, CA",
        bounding_box=BoundingBox(-122.30, 38.40, -122.20, 38.50),
    )


@pytest.fixture()
def registry() -> DataSourceRegistry:
    """Three enabled sources and one disabled one."""
    return DataSourceRegistry(
        [
            make_source("weather"),
            make_source("soil"),
            make_source("Satellite Imagery"),
            make_source("skywatch", enabled=False),
        ]
    )
