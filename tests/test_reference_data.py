from __future__ import annotations

from pathlib import Path
from uuid import uuid4

import pytest

from adapters.reference_data import parse_reference_data, read_reference_file
from core.errors import ValidationError
from core.models import LocalityType

SAMPLE = Path(__file__).resolve().parents[1] / "data" / "reference.json"


def _raw(*localities):
    return {"localities": list(localities), "categories": [{"id": str(uuid4()), "names": {"UA": "Yizha"}}]}


def _entry(locality_id, kind, parent_id, name="x"):
    return {"id": locality_id, "type": kind, "parent_id": parent_id, "names": {"UA": name}}


def test_bundled_reference_file_is_valid() -> None:
    localities, categories = read_reference_file(str(SAMPLE))

    assert any(item.type is LocalityType.COUNTRY for item in localities)
    assert categories


def test_parse_accepts_lowercase_types() -> None:
    localities, categories = parse_reference_data(
        _raw(_entry(1, "country", None), _entry(2, "state", 1), _entry(3, "village", 2))
    )

    assert [item.type for item in localities] == [LocalityType.COUNTRY, LocalityType.STATE, LocalityType.VILLAGE]
    assert len(categories) == 1


@pytest.mark.parametrize(
    "entries",
    [
        [_entry(1, "COUNTRY", None), _entry(2, "CITY", 99)],
        [_entry(1, "CITY", 2), _entry(2, "VILLAGE", 1)],
        [_entry(1, "STATE", None), _entry(2, "CITY", 1)],
        [_entry(1, "COUNTRY", None), _entry(2, "HAMLET", 1)],
        [_entry(1, "COUNTRY", None, name="")],
    ],
    ids=["unknown-parent", "cycle", "not-under-country", "unknown-type", "missing-ua-name"],
)
def test_parse_rejects_broken_hierarchies(entries) -> None:
    with pytest.raises(ValidationError):
        parse_reference_data(_raw(*entries))


def test_loaded_reference_data_round_trips_through_storage(storage) -> None:
    localities, categories = read_reference_file(str(SAMPLE))

    assert storage.load_reference_data(localities, categories) == (len(localities), len(categories))
    assert storage.get_locality(localities[-1].id).names == localities[-1].names
