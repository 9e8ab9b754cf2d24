"""Notification dispatcher.

A bounded asyncio queue consumed by a single background worker. Publishers
only wait when the queue is full; delivery failures are retried with
exponential backoff, then parked in a dead-letter buffer while the worker
keeps consuming.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Iterable, Optional

from core.config import DispatchConfig
from core.models import Notification
from core.ports import NotifierPort

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class DeadLetter:
    """A notification that exhausted its delivery attempts."""

    notification: Notification
    error: str
    attempts: int


class NotificationDispatcher:
    """Single-consumer outbound channel towards the presentation layer."""

    def __init__(
        self,
        notifier: NotifierPort,
        config: DispatchConfig = DispatchConfig(),
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._notifier = notifier
        self._config = config
        self._sleep = sleep
        self._queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=config.queue_size)
        self._worker: Optional[asyncio.Task] = None
        self.dead_letters: Deque[DeadLetter] = deque(maxlen=config.dead_letter_limit)
        self.delivered = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the background worker on the running event loop."""

        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
        LOGGER.info("Notification dispatcher started (queue size %s)", self._config.queue_size)

    async def publish(self, notifications: Iterable[Notification]) -> int:
        """Enqueue a batch; returns the number of notifications handed off."""

        count = 0
        for notification in notifications:
            await self._queue.put(notification)
            count += 1
        if count:
            LOGGER.debug("Queued %s notification(s)", count)
        return count

    async def join(self) -> None:
        """Wait until every queued notification has been processed."""

        await self._queue.join()

    async def stop(self) -> None:
        """Drain the queue, then stop the worker."""

        if self._worker is None:
            return
        if self.running:
            await self._queue.join()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        LOGGER.info(
            "Notification dispatcher stopped: delivered=%s, dead_letters=%s",
            self.delivered,
            len(self.dead_letters),
        )

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self._deliver(notification)
            finally:
                self._queue.task_done()

    async def _deliver(self, notification: Notification) -> None:
        attempts = self._config.max_retries + 1
        last_error = ""
        for attempt in range(attempts):
            try:
                await self._notifier.send(notification)
            except Exception as exc:
                last_error = str(exc) or type(exc).__name__
                LOGGER.warning(
                    "Delivery to chat %s failed (attempt %s/%s): %s",
                    notification.chat_id,
                    attempt + 1,
                    attempts,
                    last_error,
                )
                if attempt < attempts - 1:
                    await self._sleep(self._config.retry_delay * (2**attempt))
                continue
            self.delivered += 1
            return

        LOGGER.error(
            "Giving up on notification for help %s to chat %s after %s attempt(s)",
            notification.help_id,
            notification.chat_id,
            attempts,
        )
        self.dead_letters.append(DeadLetter(notification, last_error, attempts))
