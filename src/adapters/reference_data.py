"""Reference data file loader.

The file is plain JSON so the locality hierarchy can be regenerated from any
administrative register without touching Python:

    {
      "localities": [{"id": 1, "type": "COUNTRY", "parent_id": null,
                      "names": {"UA": "...", "RU": "...", "EN": "..."}}],
      "categories": [{"id": "<uuid>", "names": {"UA": "...", "EN": "..."}}]
    }
"""

from __future__ import annotations

import json
from typing import List, Tuple
from uuid import UUID

from core.errors import ValidationError
from core.models import Category, Locality, LocalityType


def _check_hierarchy(localities: List[Locality]) -> None:
    """Every parent must exist, chains must be acyclic and end at a COUNTRY."""

    by_id = {item.id: item for item in localities}
    for item in localities:
        seen = {item.id}
        current = item
        while current.parent_id is not None:
            parent = by_id.get(current.parent_id)
            if parent is None:
                raise ValidationError(f"Locality {current.id} has unknown parent {current.parent_id}")
            if parent.id in seen:
                raise ValidationError(f"Locality {item.id} has a cyclic parent chain")
            seen.add(parent.id)
            current = parent
        if current.type is not LocalityType.COUNTRY:
            raise ValidationError(f"Locality {item.id} does not resolve to a COUNTRY")


def parse_reference_data(raw: dict) -> Tuple[List[Locality], List[Category]]:
    try:
        localities = [
            Locality(
                id=int(entry["id"]),
                type=LocalityType(str(entry["type"]).upper()),
                parent_id=int(entry["parent_id"]) if entry.get("parent_id") is not None else None,
                names=dict(entry.get("names", {})),
            )
            for entry in raw.get("localities", [])
        ]
        categories = [
            Category(id=UUID(str(entry["id"])), names=dict(entry.get("names", {})))
            for entry in raw.get("categories", [])
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid reference data: {exc}") from exc

    for item in localities:
        if not item.names.get("UA"):
            raise ValidationError(f"Locality {item.id} needs a UA name")
    _check_hierarchy(localities)
    return localities, categories


def read_reference_file(path: str) -> Tuple[List[Locality], List[Category]]:
    """Load and validate a reference data JSON file."""

    with open(path, "r", encoding="utf-8") as handle:
        return parse_reference_data(json.load(handle))
