"""Help publishing flow.

This module is integration-agnostic. It only relies on the core services and
the dispatcher queue, enabling the dialog layer or any other frontend to
publish help without knowing how notifications are delivered.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple, Union
from uuid import UUID

from core.config import NotificationConfig
from core.dispatcher import NotificationDispatcher
from core.helps import HelpService, IdLike
from core.matcher import SubscriptionMatcher, build_notifications
from core.models import HelpPosting
from core.subscriptions import SubscriptionService

LOGGER = logging.getLogger(__name__)


class HelpProcessor:
    """Orchestrates persistence, matching, and notification hand-off."""

    def __init__(
        self,
        helps: HelpService,
        subscriptions: SubscriptionService,
        matcher: SubscriptionMatcher,
        dispatcher: NotificationDispatcher,
        notification_config: NotificationConfig,
    ) -> None:
        self._helps = helps
        self._subscriptions = subscriptions
        self._matcher = matcher
        self._dispatcher = dispatcher
        self._notification_config = notification_config

    async def publish_help(
        self,
        creator_id: IdLike,
        category_ids: Iterable[IdLike],
        locality_id: Union[int, str],
        description: str,
    ) -> HelpPosting:
        """Persist a posting and queue one notification per interested user."""

        help_id = await self._helps.create(creator_id, category_ids, locality_id, description)
        posting = await self._helps.get_by_id(help_id)

        subscriptions = await self._matcher.subscriptions_for(posting)
        notifications = build_notifications(posting, subscriptions, self._notification_config)
        # Hand-off only: delivery happens on the dispatcher's worker.
        queued = await self._dispatcher.publish(notifications)
        LOGGER.info("Help %s published, %s notification(s) queued", posting.id, queued)
        return posting

    async def subscribe(
        self,
        creator_id: IdLike,
        category_id: IdLike,
        locality_id: Union[int, str],
    ) -> Tuple[UUID, List[HelpPosting]]:
        """Create a subscription and return the postings it already matches."""

        subscription_id = await self._subscriptions.create(creator_id, category_id, locality_id)
        existing = await self._matcher.postings_for(subscription_id)
        return subscription_id, existing
