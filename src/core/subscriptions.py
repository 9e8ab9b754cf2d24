"""Subscription registry (core domain)."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Union
from uuid import UUID, uuid4

from core.helps import Clock, IdLike, parse_id, parse_locality_id, utc_now
from core.models import Subscription
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)


class SubscriptionService:
    """Creates, lists, and removes a seeker's standing subscriptions."""

    def __init__(self, storage: StoragePort, clock: Clock = utc_now) -> None:
        self._storage = storage
        self._clock = clock

    async def create(
        self, creator_id: IdLike, category_id: IdLike, locality_id: Union[int, str]
    ) -> UUID:
        creator = parse_id(creator_id, "creator id")
        category = parse_id(category_id, "category id")
        locality = parse_locality_id(locality_id)
        subscription_id = uuid4()

        await asyncio.to_thread(
            self._storage.insert_subscription,
            subscription_id,
            creator,
            category,
            locality,
            self._clock(),
        )
        LOGGER.info("Subscription %s created by %s at locality %s", subscription_id, creator, locality)
        return subscription_id

    async def list_by_user(self, user_id: IdLike) -> List[Subscription]:
        return await asyncio.to_thread(
            self._storage.select_subscriptions_by_user, parse_id(user_id, "user id")
        )

    async def count_by_user(self, user_id: IdLike) -> int:
        return await asyncio.to_thread(
            self._storage.count_subscriptions_by_user, parse_id(user_id, "user id")
        )

    async def delete(self, subscription_id: IdLike) -> None:
        """Soft-delete; idempotent."""

        uid = parse_id(subscription_id, "subscription id")
        await asyncio.to_thread(self._storage.mark_subscription_deleted, uid, self._clock())
        LOGGER.info("Subscription %s deleted", uid)
