"""Notification rows, unread counters and message drafts."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from core.db import get_session, new_id
from core.models import Notification, NotificationType
from core.realtime import INSERT, get_feed
from core.utils import to_dict

logger = logging.getLogger(__name__)

MESSAGE_TYPES = frozenset({NotificationType.MESSAGE_RECEIVED})
APPLICATION_TYPES = frozenset(
    {
        NotificationType.NEW_APPLICATION,
        NotificationType.APPLICATION_ACCEPTED,
        NotificationType.APPLICATION_REJECTED,
    }
)
DELIVERABLE_TYPES = frozenset({NotificationType.DELIVERABLE_SUBMITTED})


@dataclass(frozen=True, slots=True)
class NotificationCounts:
    """Unread counters per badge bucket."""

    total: int = 0
    messages: int = 0
    applications: int = 0
    deliverables: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class NotificationDraft:
    """Notification content before it is stored."""

    user_id: str
    type: str
    title: str
    message: str
    reference_id: str | None = None
    reference_type: str | None = None


def compute_counts(types: Iterable[str]) -> NotificationCounts:
    """Bucket unread notification types into badge counters."""
    total = messages = applications = deliverables = 0
    for t in types:
        total += 1
        if t in MESSAGE_TYPES:
            messages += 1
        elif t in APPLICATION_TYPES:
            applications += 1
        elif t in DELIVERABLE_TYPES:
            deliverables += 1
    return NotificationCounts(total, messages, applications, deliverables)


def get_notifications(user_id: str, limit: int = 20) -> list[Notification]:
    try:
        with get_session() as session:
            stmt = (
                select(Notification)
                .where(Notification.user_id == user_id)
                .order_by(Notification.created_at.desc())
                .limit(limit)
            )
            return list(session.scalars(stmt))
    except SQLAlchemyError:
        logger.exception("Failed to fetch notifications for %s", user_id)
        return []


def get_unread_counts(user_id: str) -> NotificationCounts | None:
    """Count unread notifications by bucket; None when the store is unreachable."""
    try:
        with get_session() as session:
            stmt = select(Notification.type).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
            return compute_counts(session.scalars(stmt))
    except SQLAlchemyError:
        logger.exception("Failed to count notifications for %s", user_id)
        return None


def mark_as_read(user_id: str, notification_id: str) -> bool:
    """Mark one of the user's notifications read; False when it is not theirs."""
    try:
        with get_session() as session:
            result = session.execute(
                update(Notification)
                .where(Notification.id == notification_id, Notification.user_id == user_id)
                .values(is_read=True)
            )
            session.commit()
            return result.rowcount > 0
    except SQLAlchemyError:
        logger.exception("Failed to mark notification %s as read", notification_id)
        return False


def mark_all_as_read(user_id: str) -> bool:
    try:
        with get_session() as session:
            session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True)
            )
            session.commit()
            return True
    except SQLAlchemyError:
        logger.exception("Failed to mark all notifications as read for %s", user_id)
        return False


def build_notification(draft: NotificationDraft) -> Notification:
    return Notification(
        id=new_id(),
        user_id=draft.user_id,
        type=draft.type,
        title=draft.title,
        message=draft.message,
        reference_id=draft.reference_id,
        reference_type=draft.reference_type,
    )


def publish_notification(notification: Notification) -> None:
    get_feed().publish("notifications", INSERT, to_dict(notification))


def create_notification(draft: NotificationDraft) -> bool:
    """Insert a notification directly and announce it on the change feed."""
    try:
        with get_session() as session:
            notification = build_notification(draft)
            session.add(notification)
            session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to create notification for %s", draft.user_id)
        return False
    publish_notification(notification)
    return True


def subscribe_to_notifications(
    user_id: str, callback: Callable[[dict[str, Any]], None]
) -> Callable[[], None]:
    return get_feed().subscribe("notifications", callback, event=INSERT, user_id=user_id)


# Draft builders


def new_application(brand_id: str, creator_name: str, campaign_title: str, application_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=brand_id,
        type=NotificationType.NEW_APPLICATION,
        title="Nouvelle candidature",
        message=f'{creator_name} a postulé à "{campaign_title}"',
        reference_id=application_id,
        reference_type="application",
    )


def message_received(recipient_id: str, sender_name: str, preview: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=recipient_id,
        type=NotificationType.MESSAGE_RECEIVED,
        title=f"Nouveau message de {sender_name}",
        message=preview,
        reference_id=campaign_id,
        reference_type="campaign",
    )


def application_status(creator_id: str, accepted: bool, campaign_title: str, application_id: str) -> NotificationDraft:
    if accepted:
        return NotificationDraft(
            user_id=creator_id,
            type=NotificationType.APPLICATION_ACCEPTED,
            title="Candidature acceptée !",
            message=f'Votre candidature pour "{campaign_title}" a été acceptée',
            reference_id=application_id,
            reference_type="application",
        )
    return NotificationDraft(
        user_id=creator_id,
        type=NotificationType.APPLICATION_REJECTED,
        title="Candidature non retenue",
        message=f'Votre candidature pour "{campaign_title}" n\'a pas été retenue',
        reference_id=application_id,
        reference_type="application",
    )


def profiles_ready(brand_id: str, count: int, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=brand_id,
        type=NotificationType.NEW_APPLICATION,
        title="Profils disponibles",
        message=f'{count} profil(s) proposé(s) pour "{campaign_title}"',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def creator_proposed(creator_id: str, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=creator_id,
        type=NotificationType.APPLICATION_ACCEPTED,
        title="Vous avez été proposé(e)",
        message=f'Votre profil a été proposé pour "{campaign_title}"',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def profiles_rejected(admin_id: str, campaign_title: str, reason: str | None, campaign_id: str) -> NotificationDraft:
    message = f'Les profils proposés pour "{campaign_title}" ont été refusés'
    if reason:
        message = f"{message} : {reason}"
    return NotificationDraft(
        user_id=admin_id,
        type=NotificationType.APPLICATION_REJECTED,
        title="Profils refusés",
        message=message,
        reference_id=campaign_id,
        reference_type="campaign",
    )


def creator_selected_brand(brand_id: str, creator_name: str, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=brand_id,
        type=NotificationType.APPLICATION_ACCEPTED,
        title="Créateur confirmé",
        message=f'{creator_name} réalisera "{campaign_title}"',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def creator_assigned(creator_id: str, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=creator_id,
        type=NotificationType.APPLICATION_ACCEPTED,
        title="Nouvelle mission !",
        message=f'Vous avez été sélectionné(e) pour "{campaign_title}". Signez le contrat pour commencer.',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def script_ready(brand_id: str, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=brand_id,
        type=NotificationType.DELIVERABLE_SUBMITTED,
        title="Script à valider",
        message=f'Le script de "{campaign_title}" est prêt pour votre validation',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def script_approved(user_id: str, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=user_id,
        type=NotificationType.DELIVERABLE_APPROVED,
        title="Script validé",
        message=f'Le script de "{campaign_title}" a été validé. Place au tournage !',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def script_revision(user_id: str, campaign_title: str, notes: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=user_id,
        type=NotificationType.DELIVERABLE_REVISION,
        title="Modifications du script demandées",
        message=f'"{campaign_title}" : {notes}',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def deliverable_submitted(brand_id: str, creator_name: str, campaign_title: str, deliverable_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=brand_id,
        type=NotificationType.DELIVERABLE_SUBMITTED,
        title="Nouvelle vidéo reçue",
        message=f'{creator_name} a livré une vidéo pour "{campaign_title}"',
        reference_id=deliverable_id,
        reference_type="deliverable",
    )


def deliverable_approved(creator_id: str, campaign_title: str, deliverable_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=creator_id,
        type=NotificationType.DELIVERABLE_APPROVED,
        title="Vidéo approuvée !",
        message=f'Votre vidéo pour "{campaign_title}" a été approuvée',
        reference_id=deliverable_id,
        reference_type="deliverable",
    )


def deliverable_revision(
    creator_id: str, campaign_title: str, notes: str, round_number: int, max_rounds: int, deliverable_id: str
) -> NotificationDraft:
    return NotificationDraft(
        user_id=creator_id,
        type=NotificationType.DELIVERABLE_REVISION,
        title=f"Révision demandée ({round_number}/{max_rounds})",
        message=f'"{campaign_title}" : {notes}',
        reference_id=deliverable_id,
        reference_type="deliverable",
    )


def deliverable_rejected(creator_id: str, campaign_title: str, deliverable_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=creator_id,
        type=NotificationType.DELIVERABLE_REJECTED,
        title="Vidéo refusée",
        message=f'Votre vidéo pour "{campaign_title}" a été refusée',
        reference_id=deliverable_id,
        reference_type="deliverable",
    )


def mission_completed(creator_id: str, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=creator_id,
        type=NotificationType.MISSION_COMPLETED,
        title="Mission terminée",
        message=f'La mission "{campaign_title}" est terminée. Merci !',
        reference_id=campaign_id,
        reference_type="campaign",
    )


def contract_signed(brand_id: str, creator_name: str, campaign_title: str, contract_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=brand_id,
        type=NotificationType.APPLICATION_ACCEPTED,
        title="Contrat signé",
        message=f'{creator_name} a signé le contrat pour "{campaign_title}"',
        reference_id=contract_id,
        reference_type="contract",
    )


def campaign_cancelled(user_id: str, campaign_title: str, campaign_id: str) -> NotificationDraft:
    return NotificationDraft(
        user_id=user_id,
        type=NotificationType.APPLICATION_REJECTED,
        title="Campagne annulée",
        message=f'La campagne "{campaign_title}" a été annulée',
        reference_id=campaign_id,
        reference_type="campaign",
    )
