"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping

RETENTION_POLICIES = ("delete", "prompt", "escalate")


@dataclass(frozen=True)
class ResolverConfig:
    """Locality resolver settings."""

    max_distance: int = 1


@dataclass(frozen=True)
class RetentionConfig:
    """Expiry policy applied by the reaper.

    - delete: soft-delete posts idle longer than stale_after_days
    - prompt: ask owners of such posts to renew them
    - escalate: prompt after stale_after_days, delete after delete_after_days
    """

    policy: str = "prompt"
    stale_after_days: int = 7
    delete_after_days: int = 14
    interval_seconds: float = 3600.0

    def __post_init__(self) -> None:
        if self.policy not in RETENTION_POLICIES:
            raise ValueError(f"Unsupported retention policy: {self.policy}")
        if self.stale_after_days < 1:
            raise ValueError("stale_after_days must be at least 1")
        if self.delete_after_days < self.stale_after_days:
            raise ValueError("delete_after_days must not be shorter than stale_after_days")

    @property
    def stale_after(self) -> timedelta:
        return timedelta(days=self.stale_after_days)

    @property
    def delete_after(self) -> timedelta:
        return timedelta(days=self.delete_after_days)


@dataclass(frozen=True)
class DispatchConfig:
    """Notification queue and delivery retry settings."""

    queue_size: int = 1000
    max_retries: int = 2
    retry_delay: float = 1.0
    dead_letter_limit: int = 500


@dataclass(frozen=True)
class NotificationConfig:
    """Notification headers per language consumed by the matcher flow."""

    headers: Mapping[str, str] = field(default_factory=dict)
    default_header: str = "New help is available"

    def header_for(self, language: str) -> str:
        return self.headers.get(language) or self.default_header
