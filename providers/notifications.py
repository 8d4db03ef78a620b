"""Live unread-notification counters for the signed-in user."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from marketplace import notifications
from marketplace.notifications import NotificationCounts

logger = logging.getLogger(__name__)


class NotificationCounterProvider:
    """
    Keeps four badge counters in sync with the store.

    Every insert event for the user triggers a full recount rather than
    an increment, so counts always match the store after the last refresh.
    """

    def __init__(self, user_id: str | None = None) -> None:
        self.user_id = user_id
        self.counts = NotificationCounts()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    async def init(self) -> None:
        self._loop = asyncio.get_running_loop()
        await self.set_user(self.user_id)

    async def close(self) -> None:
        self._stop_listening()
        self._loop = None

    async def set_user(self, user_id: str | None) -> None:
        self._stop_listening()
        self.user_id = user_id
        await self.refresh()
        if user_id and self._loop is not None:
            self._unsubscribe = notifications.subscribe_to_notifications(user_id, self._on_insert)

    async def refresh(self) -> None:
        if not self.user_id:
            self.counts = NotificationCounts()
            return
        counts = await asyncio.to_thread(notifications.get_unread_counts, self.user_id)
        if counts is not None:
            self.counts = counts

    async def mark_as_read(self, notification_id: str) -> None:
        if not self.user_id:
            return
        await asyncio.to_thread(notifications.mark_as_read, self.user_id, notification_id)
        await self.refresh()

    async def mark_all_as_read(self) -> None:
        """Zero the counters now, then persist; recount if persisting fails."""
        if not self.user_id:
            return
        self.counts = NotificationCounts()
        ok = await asyncio.to_thread(notifications.mark_all_as_read, self.user_id)
        if not ok:
            logger.warning("Mark-all-read failed for %s, recounting", self.user_id)
            await self.refresh()

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _stop_listening(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_insert(self, _record: dict[str, Any]) -> None:
        loop = self._loop
        if loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._schedule_refresh()
        else:
            loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self) -> None:
        if self._loop is None:
            return
        task = self._loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
