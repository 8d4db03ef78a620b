"""Change feed for row inserts and updates, fanned out over Redis pub/sub."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import redis

from core.cache import create_cache
from core.config import settings

if TYPE_CHECKING:
    from redis.client import PubSub, PubSubWorkerThread

    from core.cache import RedisCache

logger = logging.getLogger(__name__)

Callback = Callable[[dict[str, Any]], None]

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


@dataclass(slots=True, eq=False)
class Subscription:
    table: str
    event: str
    callback: Callback
    filters: dict[str, Any] = field(default_factory=dict)

    def matches(self, table: str, event: str, record: dict[str, Any]) -> bool:
        if table != self.table or event != self.event:
            return False
        return all(record.get(k) == v for k, v in self.filters.items())


class ChangeFeed:
    """
    Publish/subscribe hub keyed by table and event.

    With a cache, events go through a Redis channel so subscribers in other
    processes (API, outbox worker) see them; every process runs a listener
    thread that dispatches to its own subscriptions. Without one, events are
    dispatched in-process.

    Callbacks run on the publishing or listener thread; subscribers that own
    an event loop are responsible for marshalling onto it.
    """

    def __init__(self, cache: RedisCache | None = None, channel: str | None = None) -> None:
        self._cache = cache
        self._channel = channel or settings.realtime_channel
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self._pubsub: PubSub | None = None
        self._listener: PubSubWorkerThread | None = None

    @property
    def distributed(self) -> bool:
        return self._cache is not None

    def subscribe(
        self,
        table: str,
        callback: Callback,
        event: str = INSERT,
        **filters: Any,
    ) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        sub = Subscription(table=table, event=event, callback=callback, filters=filters)
        with self._lock:
            self._subscriptions.append(sub)
        self._ensure_listener()

        def unsubscribe() -> None:
            with self._lock:
                if sub in self._subscriptions:
                    self._subscriptions.remove(sub)

        return unsubscribe

    def publish(self, table: str, event: str, record: dict[str, Any]) -> None:
        if self._cache is not None:
            payload = json.dumps({"table": table, "event": event, "record": record}, default=str)
            try:
                self._cache.client.publish(self._channel, payload)
                return
            except redis.RedisError:
                logger.warning("Change feed publish failed, dispatching %s %s locally", event, table)
        self.dispatch(table, event, record)

    def dispatch(self, table: str, event: str, record: dict[str, Any]) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(table, event, record)]
        for sub in targets:
            try:
                sub.callback(record)
            except Exception:
                logger.exception("Change feed subscriber failed for %s %s", event, table)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def close(self) -> None:
        """Stop the listener thread and release the pub/sub connection."""
        with self._lock:
            listener, pubsub = self._listener, self._pubsub
            self._listener = self._pubsub = None
        if listener is not None:
            listener.stop()
        if pubsub is not None:
            pubsub.close()

    def _ensure_listener(self) -> None:
        if self._cache is None:
            return
        with self._lock:
            if self._listener is not None:
                return
            try:
                pubsub = self._cache.client.pubsub(ignore_subscribe_messages=True)
                pubsub.subscribe(**{self._channel: self._on_message})
                self._listener = pubsub.run_in_thread(sleep_time=0.05, daemon=True)
                self._pubsub = pubsub
            except redis.RedisError:
                logger.exception("Could not start change feed listener on %s", self._channel)

    def _on_message(self, message: dict[str, Any]) -> None:
        try:
            data = json.loads(message["data"])
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed change feed message on %s", self._channel)
            return
        self.dispatch(data["table"], data["event"], data["record"])


_feed: ChangeFeed | None = None


def get_feed() -> ChangeFeed:
    """Get or create the process-wide feed; in-process only when Redis is down."""
    global _feed
    if _feed is None:
        _feed = ChangeFeed(create_cache())
    return _feed
