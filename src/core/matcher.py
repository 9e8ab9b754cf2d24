"""Subscription matching (core domain).

A post at locality L satisfies a subscription at locality S when L == S, or
when both are fine-grained siblings under one parent (see localities.py).
The category of the subscription must be one of the post's categories.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List

from core.config import NotificationConfig
from core.errors import NotFound
from core.helps import IdLike, parse_id
from core.localities import rollup_locality_ids
from core.models import HelpPosting, Notification, Subscription
from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)


def distinct_by_creator(subscriptions: Iterable[Subscription]) -> List[Subscription]:
    """Keep the first subscription per creator so each user is notified once."""

    seen = set()
    distinct: List[Subscription] = []
    for subscription in subscriptions:
        if subscription.creator_id in seen:
            continue
        seen.add(subscription.creator_id)
        distinct.append(subscription)
    return distinct


def build_notifications(
    posting: HelpPosting,
    subscriptions: Iterable[Subscription],
    config: NotificationConfig,
) -> List[Notification]:
    """Render one notification record per subscription in the subscriber's language."""

    notifications: List[Notification] = []
    for subscription in subscriptions:
        language = subscription.language
        notifications.append(
            Notification(
                chat_id=subscription.chat_id,
                language=language,
                header=config.header_for(language),
                locality_name=posting.locality.name(language),
                created_at=posting.created_at,
                category_names=tuple(category.name(language) for category in posting.categories),
                description=posting.description,
                help_id=posting.id,
                subscription_id=subscription.id,
            )
        )
    return notifications


class SubscriptionMatcher:
    """Computes which subscriptions a posting satisfies, and the inverse."""

    def __init__(self, storage: StoragePort) -> None:
        self._storage = storage

    async def subscriptions_for(self, posting: HelpPosting) -> List[Subscription]:
        if posting.deleted_at is not None:
            return []

        locality_ids = await asyncio.to_thread(rollup_locality_ids, self._storage, posting.locality.id)
        # One statement, so the result reflects a single point in time.
        matched = await asyncio.to_thread(
            self._storage.select_subscriptions_by_localities_categories,
            locality_ids,
            posting.category_ids,
        )
        distinct = distinct_by_creator(matched)
        LOGGER.info(
            "Help %s matched %s subscription(s) from %s user(s)",
            posting.id,
            len(matched),
            len(distinct),
        )
        return distinct

    async def postings_for(self, subscription_id: IdLike) -> List[HelpPosting]:
        uid = parse_id(subscription_id, "subscription id")
        subscription = await asyncio.to_thread(self._storage.select_subscription, uid)
        if subscription is None or subscription.deleted_at is not None:
            raise NotFound(f"Subscription {uid} not found")

        locality_ids = await asyncio.to_thread(
            rollup_locality_ids, self._storage, subscription.locality.id
        )
        return await asyncio.to_thread(
            self._storage.select_helps_by_localities_category,
            locality_ids,
            subscription.category.id,
        )

    async def exists_by_id(self, subscription_id: IdLike) -> bool:
        return await asyncio.to_thread(
            self._storage.subscription_exists, parse_id(subscription_id, "subscription id")
        )
