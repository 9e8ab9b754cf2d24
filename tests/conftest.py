from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from adapters.sqlite_storage import SQLiteStorage
from core.models import Category, Locality, LocalityType, User, UserContact

FOOD = UUID("00000000-0000-4000-8000-000000000001")
MEDS = UUID("00000000-0000-4000-8000-000000000002")
HOUSING = UUID("00000000-0000-4000-8000-000000000003")

UKRAINE = 1
KYIV_OBLAST = 10
BUCHA_DISTRICT = 100
FASTIV_DISTRICT = 101
KYIV = 1000
BUCHA = 1001
IRPIN = 1002
VILSHANKA = 1003
VORZEL = 1004
HOSTOMEL = 1005
KYIEVO = 1006

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _locality(locality_id, kind, parent_id, ua, ru="", en=""):
    names = {"UA": ua}
    if ru:
        names["RU"] = ru
    if en:
        names["EN"] = en
    return Locality(id=locality_id, type=kind, parent_id=parent_id, names=names)


LOCALITIES = [
    _locality(UKRAINE, LocalityType.COUNTRY, None, "Ukraina", "Ukraina", "Ukraine"),
    _locality(KYIV_OBLAST, LocalityType.STATE, UKRAINE, "Kyivska oblast", "Kievskaya oblast", "Kyiv Oblast"),
    _locality(BUCHA_DISTRICT, LocalityType.DISTRICT, KYIV_OBLAST, "Bucha", "Bucha"),
    _locality(FASTIV_DISTRICT, LocalityType.DISTRICT, KYIV_OBLAST, "Fastivskyi raion"),
    _locality(KYIV, LocalityType.CITY, KYIV_OBLAST, "Kyiv", "Kiev", "Kyiv"),
    _locality(BUCHA, LocalityType.CITY, BUCHA_DISTRICT, "Bucha", "Bucha", "Bucha"),
    _locality(IRPIN, LocalityType.CITY, BUCHA_DISTRICT, "Irpin", "Irpen", "Irpin"),
    _locality(VILSHANKA, LocalityType.VILLAGE, BUCHA_DISTRICT, "Vilshanka"),
    _locality(VORZEL, LocalityType.VILLAGE, BUCHA_DISTRICT, "Vorzel"),
    _locality(HOSTOMEL, LocalityType.URBAN, BUCHA_DISTRICT, "Hostomel", "Gostomel"),
    _locality(KYIEVO, LocalityType.VILLAGE, FASTIV_DISTRICT, "Kyievo"),
]

CATEGORIES = [
    Category(id=FOOD, names={"UA": "Yizha", "EN": "Food"}),
    Category(id=MEDS, names={"UA": "Liky", "EN": "Medicine"}),
    Category(id=HOUSING, names={"UA": "Zhytlo", "EN": "Housing"}),
]


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def register(storage: SQLiteStorage, tg_id: int, language: str = "EN", name: str = "") -> User:
    contact = UserContact(tg_id=tg_id, chat_id=tg_id * 10, name=name or f"user-{tg_id}")
    return storage.upsert_user(contact, language, T0)


@pytest.fixture
def storage(tmp_path) -> SQLiteStorage:
    store = SQLiteStorage(str(tmp_path / "helplink.db"))
    store.init_db()
    store.load_reference_data(LOCALITIES, CATEGORIES)
    return store


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
