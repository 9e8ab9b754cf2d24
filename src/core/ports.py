"""Ports (interfaces) used by the core services.

Ports define the minimal contracts for storage and notification adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence
from uuid import UUID

from core.models import (
    ActivityStats,
    Category,
    HelpPosting,
    Locality,
    LocalityCandidate,
    Notification,
    Subscription,
    User,
    UserContact,
)


class StoragePort(Protocol):
    """Storage operations required by the core.

    Every method is a single statement or a single transaction; soft-deleted
    rows are filtered by the adapter unless a method says otherwise.
    """

    def get_locality(self, locality_id: int) -> Optional[Locality]:
        ...

    def list_localities_by_parent(self, parent_id: int) -> list[Locality]:
        ...

    def select_locality_candidates(self, text: str, max_distance: int) -> list[LocalityCandidate]:
        ...

    def select_categories(self) -> list[Category]:
        ...

    def upsert_user(self, contact: UserContact, language: str, now: datetime) -> User:
        ...

    def insert_help(
        self,
        help_id: UUID,
        creator_id: UUID,
        category_ids: Sequence[UUID],
        locality_id: int,
        description: str,
        created_at: datetime,
    ) -> None:
        ...

    def select_help(self, help_id: UUID) -> Optional[HelpPosting]:
        """Return the posting even when soft-deleted."""
        ...

    def select_helps_by_user(self, user_id: UUID) -> list[HelpPosting]:
        ...

    def select_helps_by_localities_category(
        self, locality_ids: Iterable[int], category_id: UUID
    ) -> list[HelpPosting]:
        ...

    def count_helps_by_user(self, user_id: UUID) -> int:
        ...

    def mark_help_deleted(self, help_id: UUID, deleted_at: datetime) -> None:
        ...

    def mark_help_renewed(self, help_id: UUID, renewed_at: datetime) -> bool:
        ...

    def select_expired_helps(self, cutoff: datetime) -> list[HelpPosting]:
        ...

    def insert_subscription(
        self,
        subscription_id: UUID,
        creator_id: UUID,
        category_id: UUID,
        locality_id: int,
        created_at: datetime,
    ) -> None:
        ...

    def select_subscription(self, subscription_id: UUID) -> Optional[Subscription]:
        """Return the subscription even when soft-deleted."""
        ...

    def select_subscriptions_by_user(self, user_id: UUID) -> list[Subscription]:
        ...

    def select_subscriptions_by_localities_categories(
        self, locality_ids: Iterable[int], category_ids: Iterable[UUID]
    ) -> list[Subscription]:
        """Return matching subscriptions ordered by creation time."""
        ...

    def count_subscriptions_by_user(self, user_id: UUID) -> int:
        ...

    def mark_subscription_deleted(self, subscription_id: UUID, deleted_at: datetime) -> None:
        ...

    def subscription_exists(self, subscription_id: UUID) -> bool:
        ...

    def select_activity_stats(self) -> ActivityStats:
        ...


class NotifierPort(Protocol):
    """Delivery of one subscription notification to the presentation layer."""

    async def send(self, notification: Notification) -> None:
        ...


class RenewalPromptPort(Protocol):
    """Asks the owner of a stale posting to keep it alive."""

    async def prompt_renewal(self, posting: HelpPosting) -> None:
        ...
