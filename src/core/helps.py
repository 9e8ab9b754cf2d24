"""Help posting lifecycle: create, look up, renew, expire, soft-delete."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Union
from uuid import UUID, uuid4

from core.errors import NotFound, ValidationError
from core.localities import rollup_locality_ids
from core.models import HelpPosting
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]
IdLike = Union[UUID, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_id(value: IdLike, what: str = "id") -> UUID:
    """Coerce a caller-supplied identifier into a UUID."""

    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed {what}: {value!r}") from exc


def parse_category_ids(category_ids: Iterable[IdLike]) -> List[UUID]:
    """Parse, de-duplicate (keeping order), and require at least one id."""

    parsed: List[UUID] = []
    for raw in category_ids:
        category_id = parse_id(raw, "category id")
        if category_id not in parsed:
            parsed.append(category_id)
    if not parsed:
        raise ValidationError("A help posting needs at least one category")
    return parsed


def parse_locality_id(value: Union[int, str]) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Malformed locality id: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed locality id: {value!r}") from exc


class HelpService:
    """Help Lifecycle Manager.

    Every operation is one storage call executed off the event loop, so the
    caller can cancel or time out any call with plain asyncio cancellation.
    """

    def __init__(self, storage: StoragePort, clock: Clock = utc_now) -> None:
        self._storage = storage
        self._clock = clock

    async def create(
        self,
        creator_id: IdLike,
        category_ids: Iterable[IdLike],
        locality_id: Union[int, str],
        description: str,
    ) -> UUID:
        creator = parse_id(creator_id, "creator id")
        categories = parse_category_ids(category_ids)
        locality = parse_locality_id(locality_id)
        if not description or not description.strip():
            raise ValidationError("A help posting needs a description")
        help_id = uuid4()

        await asyncio.to_thread(
            self._storage.insert_help,
            help_id,
            creator,
            categories,
            locality,
            description,
            self._clock(),
        )
        LOGGER.info("Help %s created by %s at locality %s", help_id, creator, locality)
        return help_id

    async def get_by_id(self, help_id: IdLike) -> HelpPosting:
        uid = parse_id(help_id, "help id")
        posting = await asyncio.to_thread(self._storage.select_help, uid)
        if posting is None or posting.deleted_at is not None:
            raise NotFound(f"Help {uid} not found")
        return posting

    async def list_by_user(self, user_id: IdLike) -> List[HelpPosting]:
        return await asyncio.to_thread(self._storage.select_helps_by_user, parse_id(user_id, "user id"))

    async def list_by_locality_and_category(
        self, locality_id: Union[int, str], category_id: IdLike
    ) -> List[HelpPosting]:
        """Active postings at the locality or its rollup siblings in the category."""

        locality = parse_locality_id(locality_id)
        category = parse_id(category_id, "category id")
        locality_ids = await asyncio.to_thread(rollup_locality_ids, self._storage, locality)
        return await asyncio.to_thread(
            self._storage.select_helps_by_localities_category, locality_ids, category
        )

    async def count_active_by_user(self, user_id: IdLike) -> int:
        return await asyncio.to_thread(self._storage.count_helps_by_user, parse_id(user_id, "user id"))

    async def delete(self, help_id: IdLike) -> None:
        """Soft-delete; repeating the call keeps the first deletion timestamp."""

        uid = parse_id(help_id, "help id")
        await asyncio.to_thread(self._storage.mark_help_deleted, uid, self._clock())
        LOGGER.info("Help %s deleted", uid)

    async def renew(self, help_id: IdLike) -> None:
        """Keep a posting alive by resetting its staleness clock."""

        uid = parse_id(help_id, "help id")
        renewed = await asyncio.to_thread(self._storage.mark_help_renewed, uid, self._clock())
        if not renewed:
            raise NotFound(f"Help {uid} not found")
        LOGGER.info("Help %s renewed", uid)

    async def list_expired(self, cutoff: datetime) -> List[HelpPosting]:
        """Active postings whose last activity is strictly older than cutoff."""

        if cutoff.tzinfo is None:
            cutoff = cutoff.replace(tzinfo=timezone.utc)
        return await asyncio.to_thread(self._storage.select_expired_helps, cutoff)
