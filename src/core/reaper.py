"""Expiry reaper for stale help postings.

The scan and the follow-up actions are separate statements: a post renewed
between the two may still be deleted. Callers needing stricter guarantees
must re-check before deleting.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from core.config import RetentionConfig
from core.helps import Clock, HelpService, utc_now
from core.ports import RenewalPromptPort

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReapReport:
    prompted: Tuple[UUID, ...] = ()
    deleted: Tuple[UUID, ...] = ()


class ExpiryReaper:
    """Applies the configured retention policy to idle postings."""

    def __init__(
        self,
        helps: HelpService,
        config: RetentionConfig,
        prompter: Optional[RenewalPromptPort] = None,
        clock: Clock = utc_now,
    ) -> None:
        if config.policy in ("prompt", "escalate") and prompter is None:
            raise ValueError(f"Retention policy '{config.policy}' needs a renewal prompter")
        self._helps = helps
        self._config = config
        self._prompter = prompter
        self._clock = clock

    async def run_once(self, now: Optional[datetime] = None) -> ReapReport:
        """Run one scan at `now` and return what was prompted and deleted."""

        now = now or self._clock()
        policy = self._config.policy
        deleted: List[UUID] = []
        prompted: List[UUID] = []

        if policy in ("delete", "escalate"):
            horizon = self._config.stale_after if policy == "delete" else self._config.delete_after
            for posting in await self._helps.list_expired(now - horizon):
                await self._helps.delete(posting.id)
                deleted.append(posting.id)

        if policy in ("prompt", "escalate"):
            for posting in await self._helps.list_expired(now - self._config.stale_after):
                try:
                    await self._prompter.prompt_renewal(posting)
                except Exception:
                    LOGGER.exception("Renewal prompt for help %s failed", posting.id)
                    continue
                prompted.append(posting.id)

        if deleted or prompted:
            LOGGER.info(
                "Expiry scan (%s): prompted=%s, deleted=%s", policy, len(prompted), len(deleted)
            )
        return ReapReport(prompted=tuple(prompted), deleted=tuple(deleted))

    async def run_forever(self) -> None:
        """Scan on a fixed interval until cancelled."""

        LOGGER.info(
            "Expiry reaper started: policy=%s, every %ss",
            self._config.policy,
            self._config.interval_seconds,
        )
        while True:
            try:
                await self.run_once()
            except Exception:
                LOGGER.exception("Expiry scan failed")
            await asyncio.sleep(self._config.interval_seconds)
