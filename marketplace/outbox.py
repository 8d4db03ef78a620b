"""
Transactional notification outbox.

Writers call enqueue() inside the same session as their primary change, so
the intent commits or rolls back with it. deliver() turns intents into
notification rows after the commit; failures stay on the outbox row and are
retried by OutboxWorker, never touching the primary write.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_session, new_id
from core.models import Notification, NotificationOutbox, OutboxStatus
from core.realtime import get_feed
from marketplace.notifications import NotificationDraft, build_notification, publish_notification

logger = logging.getLogger(__name__)

# Retry configuration
RETRY_BACKOFF_MULTIPLIER = 2.0
MAX_RETRY_DELAY_SECONDS = 60.0


def enqueue(session: Session, draft: NotificationDraft) -> NotificationOutbox:
    """Add a notification intent to the caller's session (not committed here)."""
    intent = NotificationOutbox(
        id=new_id(),
        user_id=draft.user_id,
        type=draft.type,
        title=draft.title,
        message=draft.message,
        reference_id=draft.reference_id,
        reference_type=draft.reference_type,
        status=OutboxStatus.PENDING,
        attempts=0,
    )
    session.add(intent)
    return intent


def deliver(intent_ids: Iterable[str]) -> int:
    """Deliver the given intents; returns how many were delivered."""
    delivered = 0
    for intent_id in intent_ids:
        if _deliver_one(intent_id):
            delivered += 1
    return delivered


def deliver_pending(limit: int = 100) -> int:
    """Deliver every pending intent that still has attempts left."""
    try:
        with get_session() as session:
            stmt = (
                select(NotificationOutbox.id)
                .where(NotificationOutbox.status == OutboxStatus.PENDING)
                .order_by(NotificationOutbox.created_at)
                .limit(limit)
            )
            ids = list(session.scalars(stmt))
    except SQLAlchemyError:
        logger.exception("Failed to read notification outbox")
        return 0
    return deliver(ids)


def _deliver_one(intent_id: str) -> bool:
    notification: Notification | None = None
    try:
        with get_session() as session:
            intent = session.get(NotificationOutbox, intent_id)
            if intent is None or intent.status != OutboxStatus.PENDING:
                return False
            notification = build_notification(
                NotificationDraft(
                    user_id=intent.user_id,
                    type=intent.type,
                    title=intent.title,
                    message=intent.message,
                    reference_id=intent.reference_id,
                    reference_type=intent.reference_type,
                )
            )
            session.add(notification)
            intent.status = OutboxStatus.DELIVERED
            intent.attempts += 1
            intent.notification_id = notification.id
            intent.delivered_at = datetime.now(UTC)
            session.commit()
    except SQLAlchemyError as e:
        logger.warning("Notification delivery failed for intent %s: %s", intent_id, e)
        _record_failure(intent_id, str(e))
        return False

    publish_notification(notification)
    return True


def _record_failure(intent_id: str, error: str) -> None:
    try:
        with get_session() as session:
            intent = session.get(NotificationOutbox, intent_id)
            if intent is None:
                return
            intent.attempts += 1
            intent.last_error = error[:1000]
            if intent.attempts >= settings.outbox_max_attempts:
                intent.status = OutboxStatus.FAILED
                logger.error(
                    "Giving up on notification intent %s after %d attempts",
                    intent_id,
                    intent.attempts,
                )
            session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to record outbox failure for %s", intent_id)


class OutboxWorker:
    """Background loop that retries undelivered notification intents."""

    def __init__(self, poll_interval: float | None = None) -> None:
        self.poll_interval = poll_interval or settings.outbox_poll_interval_seconds
        self._stop = threading.Event()

    def run_once(self) -> int:
        return deliver_pending()

    def run_forever(self) -> None:
        delay = self.poll_interval
        while not self._stop.is_set():
            try:
                self.run_once()
                delay = self.poll_interval
            except Exception:
                logger.exception("Outbox worker iteration failed")
                delay = min(delay * RETRY_BACKOFF_MULTIPLIER, MAX_RETRY_DELAY_SECONDS)
            self._stop.wait(delay)

    def stop(self) -> None:
        self._stop.set()


def run_worker() -> None:
    """Entry point for a standalone outbox worker process."""
    logging.basicConfig(level=logging.INFO)
    worker = OutboxWorker()
    if not get_feed().distributed:
        logger.warning("Redis unavailable; delivered notifications stay local to this process")
    logger.info("Outbox worker started (poll every %.1fs)", worker.poll_interval)
    try:
        worker.run_forever()
    except KeyboardInterrupt:
        worker.stop()
