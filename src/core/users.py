"""User registration on first contact."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from core.helps import Clock, utc_now
from core.models import DEFAULT_LANGUAGE, ActivityStats, Category, User, UserContact
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)


class UserService:
    """Upserts users and exposes reference lookups needed by the dialog layer."""

    def __init__(
        self,
        storage: StoragePort,
        default_language: str = DEFAULT_LANGUAGE,
        clock: Clock = utc_now,
    ) -> None:
        self._storage = storage
        self._default_language = default_language
        self._clock = clock

    async def register(self, contact: UserContact) -> User:
        """Create the user, or refresh the display name of a known handle."""

        language = (contact.language or self._default_language).upper()
        user = await asyncio.to_thread(self._storage.upsert_user, contact, language, self._clock())
        LOGGER.debug("User %s registered for handle %s", user.id, contact.tg_id)
        return user

    async def list_categories(self) -> List[Category]:
        return await asyncio.to_thread(self._storage.select_categories)

    async def activity_stats(self) -> ActivityStats:
        return await asyncio.to_thread(self._storage.select_activity_stats)
