"""Vineyard record.

Vineyards are created and edited by an external CRUD collaborator; the
harvester core only reads them.  Observations reference a vineyard by
id and are stored independently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from vine_harvester.core.exceptions import ContractError
from vine_harvester.models.geometry import BoundingBox


@dataclass(frozen=True, slots=True)
class Vineyard:
    """A vineyard and its spatial extent.

    Attributes:
        id: Vineyard identifier (positive integer).
        name: Display name.
        location: Free-text location (e.g. ``"Napa Valley, CA"``).
        bounding_box: Extent of the vineyard blocks, if surveyed.
    """

    id: int
    name: str
    location: str = ""
    bounding_box: BoundingBox | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "bounding_box": self.bounding_box.to_dict() if self.bounding_box else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Vineyard:
        """Deserialise from a JSON-style dict.

        Raises:
            ContractError: If ``id`` or ``name`` is missing or mistyped.
        """
        try:
            vineyard_id = int(data["id"])
            name = str(data["name"])
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Invalid vineyard payload: {exc}"
            raise ContractError(msg) from exc
        bbox_raw = data.get("bounding_box")
        return cls(
            id=vineyard_id,
            name=name,
            location=str(data.get("location", "")),
            bounding_box=BoundingBox.from_dict(bbox_raw) if bbox_raw else None,
        )
