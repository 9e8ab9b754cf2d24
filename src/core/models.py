"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any storage or Telegram-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional, Tuple
from uuid import UUID

DEFAULT_LANGUAGE = "UA"


class LocalityType(str, Enum):
    """Administrative level of a locality."""

    COUNTRY = "COUNTRY"
    STATE = "STATE"
    DISTRICT = "DISTRICT"
    CITY = "CITY"
    URBAN = "URBAN"
    SETTLEMENT = "SETTLEMENT"
    VILLAGE = "VILLAGE"


def localized(names: Mapping[str, str], language: str) -> str:
    """Return the name in the requested language, falling back to UA."""

    return names.get(language) or names.get(DEFAULT_LANGUAGE) or next(iter(names.values()), "")


@dataclass(frozen=True)
class Locality:
    """Immutable reference locality with a parent link."""

    id: int
    type: LocalityType
    parent_id: Optional[int]
    names: Mapping[str, str] = field(default_factory=dict)

    def name(self, language: str = DEFAULT_LANGUAGE) -> str:
        return localized(self.names, language)


@dataclass(frozen=True)
class Category:
    """Immutable help category."""

    id: UUID
    names: Mapping[str, str] = field(default_factory=dict)

    def name(self, language: str = DEFAULT_LANGUAGE) -> str:
        return localized(self.names, language)


@dataclass(frozen=True)
class LocalityCandidate:
    """A locality admitted by the resolver, with its region for display."""

    locality: Locality
    region: Optional[Locality]
    distance: int

    def region_name(self, language: str = DEFAULT_LANGUAGE) -> Optional[str]:
        return self.region.name(language) if self.region else None


@dataclass(frozen=True)
class User:
    id: UUID
    tg_id: int
    chat_id: int
    name: str
    language: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserContact:
    """Identity of a messaging user as seen on first contact."""

    tg_id: int
    chat_id: int
    name: str
    language: Optional[str] = None


@dataclass(frozen=True)
class HelpPosting:
    """A volunteer's offer, resolved with categories and locality."""

    id: UUID
    creator_id: UUID
    categories: Tuple[Category, ...]
    locality: Locality
    description: str
    language: str
    chat_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def category_ids(self) -> Tuple[UUID, ...]:
        return tuple(category.id for category in self.categories)

    @property
    def last_activity(self) -> datetime:
        """Renewal timestamp if the post was kept alive, else creation time."""

        return self.updated_at or self.created_at


@dataclass(frozen=True)
class Subscription:
    """A seeker's standing interest in one category at one locality."""

    id: UUID
    creator_id: UUID
    category: Category
    locality: Locality
    chat_id: int
    language: str
    created_at: datetime
    deleted_at: Optional[datetime] = None


@dataclass(frozen=True)
class Notification:
    """Structured record handed to the presentation layer for delivery."""

    chat_id: int
    language: str
    header: str
    locality_name: str
    created_at: datetime
    category_names: Tuple[str, ...]
    description: str
    help_id: UUID
    subscription_id: UUID


@dataclass(frozen=True)
class ActivityStats:
    active_helps: int
    active_subscriptions: int
