"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database. Each call
opens its own connection, so the adapter is safe to use from worker threads.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional, Sequence
from uuid import UUID, uuid4

from core.errors import TransientStoreError, UniqueConstraintViolation, ValidationError
from core.localities import COARSE_TYPES, edit_distance
from core.models import (
    ActivityStats,
    Category,
    HelpPosting,
    Locality,
    LocalityCandidate,
    LocalityType,
    Subscription,
    User,
    UserContact,
)

LOGGER = logging.getLogger(__name__)

LANGUAGES = ("UA", "RU", "EN")
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _to_db(value: datetime) -> str:
    # Fixed-width UTC text keeps lexical and chronological order identical.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _from_db(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _placeholders(values: Sequence[object]) -> str:
    return ", ".join("?" for _ in values)


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map sqlite3 failures onto the core error taxonomy."""

    try:
        yield
    except sqlite3.IntegrityError as exc:
        message = str(exc)
        if "UNIQUE" in message or "PRIMARY KEY" in message:
            raise UniqueConstraintViolation(message) from exc
        # FOREIGN KEY, NOT NULL and CHECK failures are bad references or data.
        raise ValidationError(message) from exc
    except sqlite3.Error as exc:
        # Locked or missing database, I/O and driver failures.
        raise TransientStoreError(str(exc)) from exc


def _names(row: sqlite3.Row, prefix: str) -> dict[str, str]:
    names = {}
    for language in LANGUAGES:
        value = row[f"{prefix}name_{language.lower()}"]
        if value:
            names[language] = value
    return names


def _locality(row: sqlite3.Row, prefix: str = "") -> Locality:
    return Locality(
        id=int(row[f"{prefix}id"]),
        type=LocalityType(row[f"{prefix}type"]),
        parent_id=row[f"{prefix}parent_id"],
        names=_names(row, prefix),
    )


def _category(row: sqlite3.Row, prefix: str = "") -> Category:
    return Category(id=UUID(row[f"{prefix}id"]), names=_names(row, prefix))


def _subscription(row: sqlite3.Row) -> Subscription:
    return Subscription(
        id=UUID(row["id"]),
        creator_id=UUID(row["creator_id"]),
        category=_category(row, "cat_"),
        locality=_locality(row, "loc_"),
        chat_id=int(row["chat_id"]),
        language=row["language"],
        created_at=_from_db(row["created_at"]),
        deleted_at=_from_db(row["deleted_at"]),
    )


_LOCALITY_COLUMNS = "id, type, parent_id, name_ua, name_ru, name_en"

_HELP_SELECT = """
    SELECT
        h.id,
        h.creator_id,
        h.description,
        h.created_at,
        h.updated_at,
        h.deleted_at,
        u.language,
        u.chat_id,
        l.id AS loc_id,
        l.type AS loc_type,
        l.parent_id AS loc_parent_id,
        l.name_ua AS loc_name_ua,
        l.name_ru AS loc_name_ru,
        l.name_en AS loc_name_en
    FROM help AS h
    JOIN app_user AS u ON u.id = h.creator_id
    JOIN locality AS l ON l.id = h.locality_id
"""

_SUBSCRIPTION_SELECT = """
    SELECT
        s.id,
        s.creator_id,
        s.created_at,
        s.deleted_at,
        u.chat_id,
        u.language,
        c.id AS cat_id,
        c.name_ua AS cat_name_ua,
        c.name_ru AS cat_name_ru,
        c.name_en AS cat_name_en,
        l.id AS loc_id,
        l.type AS loc_type,
        l.parent_id AS loc_parent_id,
        l.name_ua AS loc_name_ua,
        l.name_ru AS loc_name_ru,
        l.name_en AS loc_name_en
    FROM subscription AS s
    JOIN app_user AS u ON u.id = s.creator_id
    JOIN category AS c ON c.id = s.category_id
    JOIN locality AS l ON l.id = s.locality_id
"""


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        # Approximate matching runs inside the store, like a server-side function.
        conn.create_function("levenshtein", 2, edit_distance, deterministic=True)
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one transaction, then close it."""

        with _translate_errors():
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - locality, category: immutable reference data
        - app_user: one row per messaging handle
        - help, help_category: postings and their ordered categories
        - subscription: standing interest in a category at a locality
        """

        with self._session() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS locality (
                    id INTEGER PRIMARY KEY,
                    type TEXT NOT NULL CHECK (type IN (
                        'COUNTRY', 'STATE', 'DISTRICT', 'CITY', 'URBAN', 'SETTLEMENT', 'VILLAGE'
                    )),
                    parent_id INTEGER REFERENCES locality (id),
                    name_ua TEXT NOT NULL,
                    name_ru TEXT NOT NULL DEFAULT '',
                    name_en TEXT NOT NULL DEFAULT ''
                );
                CREATE INDEX IF NOT EXISTS locality_parent_idx ON locality (parent_id);

                CREATE TABLE IF NOT EXISTS category (
                    id TEXT PRIMARY KEY,
                    name_ua TEXT NOT NULL,
                    name_ru TEXT NOT NULL DEFAULT '',
                    name_en TEXT NOT NULL DEFAULT ''
                );

                CREATE TABLE IF NOT EXISTS app_user (
                    id TEXT PRIMARY KEY,
                    tg_id INTEGER NOT NULL UNIQUE,
                    chat_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    language TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS help (
                    id TEXT PRIMARY KEY,
                    creator_id TEXT NOT NULL REFERENCES app_user (id),
                    locality_id INTEGER NOT NULL REFERENCES locality (id),
                    description TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT,
                    deleted_at TEXT
                );
                CREATE INDEX IF NOT EXISTS help_locality_idx ON help (locality_id);
                CREATE INDEX IF NOT EXISTS help_creator_idx ON help (creator_id);

                CREATE TABLE IF NOT EXISTS help_category (
                    help_id TEXT NOT NULL REFERENCES help (id),
                    category_id TEXT NOT NULL REFERENCES category (id),
                    position INTEGER NOT NULL,
                    PRIMARY KEY (help_id, category_id)
                );

                CREATE TABLE IF NOT EXISTS subscription (
                    id TEXT PRIMARY KEY,
                    creator_id TEXT NOT NULL REFERENCES app_user (id),
                    category_id TEXT NOT NULL REFERENCES category (id),
                    locality_id INTEGER NOT NULL REFERENCES locality (id),
                    created_at TEXT NOT NULL,
                    deleted_at TEXT
                );
                CREATE INDEX IF NOT EXISTS subscription_match_idx
                    ON subscription (locality_id, category_id);
                """
            )

    def load_reference_data(
        self, localities: Iterable[Locality], categories: Iterable[Category]
    ) -> tuple[int, int]:
        """Upsert localities and categories; returns the row counts written."""

        locality_rows = [
            (
                item.id,
                item.type.value,
                item.parent_id,
                item.names.get("UA", ""),
                item.names.get("RU", ""),
                item.names.get("EN", ""),
            )
            for item in localities
        ]
        category_rows = [
            (str(item.id), item.names.get("UA", ""), item.names.get("RU", ""), item.names.get("EN", ""))
            for item in categories
        ]
        with self._session() as conn:
            # Children may arrive before parents; check references at commit.
            conn.execute("PRAGMA defer_foreign_keys = ON")
            conn.executemany(
                f"""
                INSERT INTO locality ({_LOCALITY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    type = excluded.type,
                    parent_id = excluded.parent_id,
                    name_ua = excluded.name_ua,
                    name_ru = excluded.name_ru,
                    name_en = excluded.name_en
                """,
                locality_rows,
            )
            conn.executemany(
                """
                INSERT INTO category (id, name_ua, name_ru, name_en) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name_ua = excluded.name_ua,
                    name_ru = excluded.name_ru,
                    name_en = excluded.name_en
                """,
                category_rows,
            )
        LOGGER.info("Loaded %s localities and %s categories", len(locality_rows), len(category_rows))
        return len(locality_rows), len(category_rows)

    # Localities and categories

    def get_locality(self, locality_id: int) -> Optional[Locality]:
        with self._session() as conn:
            row = conn.execute(
                f"SELECT {_LOCALITY_COLUMNS} FROM locality WHERE id = ?",
                (locality_id,),
            ).fetchone()
        return _locality(row) if row else None

    def list_localities_by_parent(self, parent_id: int) -> list[Locality]:
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT {_LOCALITY_COLUMNS} FROM locality WHERE parent_id = ? ORDER BY id",
                (parent_id,),
            ).fetchall()
        return [_locality(row) for row in rows]

    def select_locality_candidates(self, text: str, max_distance: int) -> list[LocalityCandidate]:
        """Return localities within max_distance of text on the UA or RU name.

        Rows come back unordered; ranking is the resolver's job.
        """

        coarse = sorted(item.value for item in COARSE_TYPES)
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM (
                    SELECT
                        l1.id, l1.type, l1.parent_id, l1.name_ua, l1.name_ru, l1.name_en,
                        l3.id AS reg_id,
                        l3.type AS reg_type,
                        l3.parent_id AS reg_parent_id,
                        l3.name_ua AS reg_name_ua,
                        l3.name_ru AS reg_name_ru,
                        l3.name_en AS reg_name_en,
                        min(
                            levenshtein(l1.name_ua, ?),
                            CASE WHEN l1.name_ru = '' THEN ? + 1 ELSE levenshtein(l1.name_ru, ?) END
                        ) AS distance
                    FROM locality AS l1
                    LEFT JOIN locality AS l2 ON l2.id = l1.parent_id
                    LEFT JOIN locality AS l3 ON l3.id = l2.parent_id
                    WHERE l1.type NOT IN ({_placeholders(coarse)})
                )
                WHERE distance <= ?
                """,
                (text, max_distance, text, *coarse, max_distance),
            ).fetchall()

        candidates = []
        for row in rows:
            region = _locality(row, "reg_") if row["reg_id"] is not None else None
            candidates.append(
                LocalityCandidate(locality=_locality(row), region=region, distance=int(row["distance"]))
            )
        return candidates

    def select_categories(self) -> list[Category]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT id, name_ua, name_ru, name_en FROM category ORDER BY name_ua"
            ).fetchall()
        return [_category(row) for row in rows]

    # Users

    def upsert_user(self, contact: UserContact, language: str, now: datetime) -> User:
        """Insert a user, or refresh the display name and updated_at of a known handle."""

        stamp = _to_db(now)
        with self._session() as conn:
            row = conn.execute(
                """
                INSERT INTO app_user (id, tg_id, chat_id, name, language, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(tg_id) DO UPDATE SET name = excluded.name, updated_at = excluded.updated_at
                RETURNING id, tg_id, chat_id, name, language, created_at, updated_at
                """,
                (str(uuid4()), contact.tg_id, contact.chat_id, contact.name, language, stamp, stamp),
            ).fetchone()
        return User(
            id=UUID(row["id"]),
            tg_id=int(row["tg_id"]),
            chat_id=int(row["chat_id"]),
            name=row["name"],
            language=row["language"],
            created_at=_from_db(row["created_at"]),
            updated_at=_from_db(row["updated_at"]),
        )

    # Helps

    def _load_helps(self, conn: sqlite3.Connection, where: str, params: Sequence[object]) -> list[HelpPosting]:
        rows = conn.execute(f"{_HELP_SELECT} WHERE {where} ORDER BY h.created_at, h.id", params).fetchall()
        if not rows:
            return []

        help_ids = [row["id"] for row in rows]
        category_rows = conn.execute(
            f"""
            SELECT hc.help_id, c.id, c.name_ua, c.name_ru, c.name_en
            FROM help_category AS hc
            JOIN category AS c ON c.id = hc.category_id
            WHERE hc.help_id IN ({_placeholders(help_ids)})
            ORDER BY hc.help_id, hc.position
            """,
            help_ids,
        ).fetchall()
        categories: dict[str, list[Category]] = {}
        for row in category_rows:
            categories.setdefault(row["help_id"], []).append(_category(row))

        return [
            HelpPosting(
                id=UUID(row["id"]),
                creator_id=UUID(row["creator_id"]),
                categories=tuple(categories.get(row["id"], [])),
                locality=_locality(row, "loc_"),
                description=row["description"],
                language=row["language"],
                chat_id=int(row["chat_id"]),
                created_at=_from_db(row["created_at"]),
                updated_at=_from_db(row["updated_at"]),
                deleted_at=_from_db(row["deleted_at"]),
            )
            for row in rows
        ]

    def insert_help(
        self,
        help_id: UUID,
        creator_id: UUID,
        category_ids: Sequence[UUID],
        locality_id: int,
        description: str,
        created_at: datetime,
    ) -> None:
        """Insert the posting and its categories in one transaction."""

        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO help (id, creator_id, locality_id, description, created_at, updated_at, deleted_at)
                VALUES (?, ?, ?, ?, ?, NULL, NULL)
                """,
                (str(help_id), str(creator_id), locality_id, description, _to_db(created_at)),
            )
            conn.executemany(
                "INSERT INTO help_category (help_id, category_id, position) VALUES (?, ?, ?)",
                [(str(help_id), str(category_id), position) for position, category_id in enumerate(category_ids)],
            )

    def select_help(self, help_id: UUID) -> Optional[HelpPosting]:
        with self._session() as conn:
            helps = self._load_helps(conn, "h.id = ?", (str(help_id),))
        return helps[0] if helps else None

    def select_helps_by_user(self, user_id: UUID) -> list[HelpPosting]:
        with self._session() as conn:
            return self._load_helps(conn, "h.creator_id = ? AND h.deleted_at IS NULL", (str(user_id),))

    def select_helps_by_localities_category(
        self, locality_ids: Iterable[int], category_id: UUID
    ) -> list[HelpPosting]:
        ids = list(locality_ids)
        if not ids:
            return []
        with self._session() as conn:
            return self._load_helps(
                conn,
                f"""
                h.locality_id IN ({_placeholders(ids)})
                AND h.deleted_at IS NULL
                AND EXISTS (
                    SELECT 1 FROM help_category AS hc
                    WHERE hc.help_id = h.id AND hc.category_id = ?
                )
                """,
                (*ids, str(category_id)),
            )

    def count_helps_by_user(self, user_id: UUID) -> int:
        with self._session() as conn:
            row = conn.execute(
                "SELECT count(*) FROM help WHERE creator_id = ? AND deleted_at IS NULL",
                (str(user_id),),
            ).fetchone()
        return int(row[0])

    def mark_help_deleted(self, help_id: UUID, deleted_at: datetime) -> None:
        with self._session() as conn:
            conn.execute(
                "UPDATE help SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (_to_db(deleted_at), str(help_id)),
            )

    def mark_help_renewed(self, help_id: UUID, renewed_at: datetime) -> bool:
        with self._session() as conn:
            cur = conn.execute(
                "UPDATE help SET updated_at = ? WHERE id = ? AND deleted_at IS NULL",
                (_to_db(renewed_at), str(help_id)),
            )
            return cur.rowcount > 0

    def select_expired_helps(self, cutoff: datetime) -> list[HelpPosting]:
        with self._session() as conn:
            return self._load_helps(
                conn,
                "h.deleted_at IS NULL AND coalesce(h.updated_at, h.created_at) < ?",
                (_to_db(cutoff),),
            )

    # Subscriptions

    def insert_subscription(
        self,
        subscription_id: UUID,
        creator_id: UUID,
        category_id: UUID,
        locality_id: int,
        created_at: datetime,
    ) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO subscription (id, creator_id, category_id, locality_id, created_at, deleted_at)
                VALUES (?, ?, ?, ?, ?, NULL)
                """,
                (str(subscription_id), str(creator_id), str(category_id), locality_id, _to_db(created_at)),
            )

    def select_subscription(self, subscription_id: UUID) -> Optional[Subscription]:
        with self._session() as conn:
            row = conn.execute(f"{_SUBSCRIPTION_SELECT} WHERE s.id = ?", (str(subscription_id),)).fetchone()
        return _subscription(row) if row else None

    def select_subscriptions_by_user(self, user_id: UUID) -> list[Subscription]:
        with self._session() as conn:
            rows = conn.execute(
                f"{_SUBSCRIPTION_SELECT} WHERE s.creator_id = ? AND s.deleted_at IS NULL "
                "ORDER BY s.created_at, s.id",
                (str(user_id),),
            ).fetchall()
        return [_subscription(row) for row in rows]

    def select_subscriptions_by_localities_categories(
        self, locality_ids: Iterable[int], category_ids: Iterable[UUID]
    ) -> list[Subscription]:
        ids = list(locality_ids)
        categories = [str(category_id) for category_id in category_ids]
        if not ids or not categories:
            return []
        with self._session() as conn:
            rows = conn.execute(
                f"""
                {_SUBSCRIPTION_SELECT}
                WHERE s.deleted_at IS NULL
                  AND s.locality_id IN ({_placeholders(ids)})
                  AND s.category_id IN ({_placeholders(categories)})
                ORDER BY s.created_at, s.id
                """,
                (*ids, *categories),
            ).fetchall()
        return [_subscription(row) for row in rows]

    def count_subscriptions_by_user(self, user_id: UUID) -> int:
        with self._session() as conn:
            row = conn.execute(
                "SELECT count(*) FROM subscription WHERE creator_id = ? AND deleted_at IS NULL",
                (str(user_id),),
            ).fetchone()
        return int(row[0])

    def mark_subscription_deleted(self, subscription_id: UUID, deleted_at: datetime) -> None:
        with self._session() as conn:
            conn.execute(
                "UPDATE subscription SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (_to_db(deleted_at), str(subscription_id)),
            )

    def subscription_exists(self, subscription_id: UUID) -> bool:
        with self._session() as conn:
            row = conn.execute(
                "SELECT EXISTS(SELECT 1 FROM subscription WHERE id = ? AND deleted_at IS NULL)",
                (str(subscription_id),),
            ).fetchone()
        return bool(row[0])

    def select_activity_stats(self) -> ActivityStats:
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT count(*) FROM help WHERE deleted_at IS NULL) AS helps,
                    (SELECT count(*) FROM subscription WHERE deleted_at IS NULL) AS subs
                """
            ).fetchone()
        return ActivityStats(active_helps=int(row["helps"]), active_subscriptions=int(row["subs"]))
