"""Campaign chat between a brand and its creator."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.db import get_session, new_id
from core.models import (
    Application,
    ApplicationStatus,
    Campaign,
    Conversation,
    Message,
    User,
    UserRole,
)
from core.realtime import INSERT, get_feed
from core.results import ErrorCode, Result
from core.utils import to_dict
from marketplace import notifications, outbox
from marketplace.applications import ensure_conversation

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    campaign_id: str
    campaign_title: str
    other_user_id: str | None
    other_user_name: str | None
    last_message: str | None
    last_message_at: datetime | None
    unread_count: int


def validate_content(content: str | None) -> str:
    """Return trimmed content; raises ValueError when empty or too long."""
    text = (content or "").strip()
    if not text:
        raise ValueError("Message cannot be empty")
    if len(text) > settings.message_max_length:
        raise ValueError(f"Message cannot exceed {settings.message_max_length} characters")
    return text


def preview(content: str) -> str:
    limit = settings.message_preview_length
    return content if len(content) <= limit else f"{content[:limit]}..."


def _creator_for(session, campaign: Campaign) -> str | None:
    if campaign.selected_creator_id:
        return campaign.selected_creator_id
    return session.scalar(
        select(Application.creator_id).where(
            Application.campaign_id == campaign.id,
            Application.status == ApplicationStatus.ACCEPTED,
        )
    )


def _participants(session, campaign: Campaign) -> set[str]:
    stmt = select(Conversation.creator_id).where(Conversation.campaign_id == campaign.id)
    participants = {campaign.brand_id, *session.scalars(stmt)}
    if campaign.selected_creator_id:
        participants.add(campaign.selected_creator_id)
    return participants


def is_participant(user_id: str, campaign_id: str) -> bool:
    """Brand owner, selected creator or a creator with a conversation on the campaign."""
    try:
        with get_session() as session:
            campaign = session.get(Campaign, campaign_id)
            return campaign is not None and user_id in _participants(session, campaign)
    except SQLAlchemyError:
        logger.exception("Failed to check participants of %s", campaign_id)
        return False


def send_message(sender_id: str, campaign_id: str, content: str | None) -> Result[Message]:
    """
    Post a message and notify the other party.

    Content is validated before anything is written. Brand messages go to
    the selected (or accepted) creator, creator messages go to the brand.
    """
    try:
        text = validate_content(content)
    except ValueError as e:
        return Result.fail(str(e), ErrorCode.VALIDATION_ERROR)

    intent_ids: list[str] = []
    try:
        with get_session() as session:
            sender = session.get(User, sender_id)
            campaign = session.get(Campaign, campaign_id)
            if sender is None or campaign is None:
                return Result.fail("Campaign not found", ErrorCode.NOT_FOUND)
            if sender.role != UserRole.ADMIN and sender_id not in _participants(session, campaign):
                return Result.fail("Not a participant of this campaign", ErrorCode.FORBIDDEN)

            message = Message(id=new_id(), campaign_id=campaign_id, sender_id=sender_id, content=text)
            session.add(message)

            recipient_id = (
                _creator_for(session, campaign)
                if sender_id == campaign.brand_id
                else campaign.brand_id
            )
            if recipient_id and recipient_id != sender_id:
                intent = outbox.enqueue(
                    session,
                    notifications.message_received(
                        recipient_id, sender.full_name, preview(text), campaign_id
                    ),
                )
                intent_ids.append(intent.id)
            session.commit()
            session.refresh(message)
    except SQLAlchemyError as e:
        logger.exception("Failed to send message on %s", campaign_id)
        return Result.fail(str(e))

    get_feed().publish("messages", INSERT, to_dict(message))
    outbox.deliver(intent_ids)
    return Result.ok(message)


def get_messages(campaign_id: str) -> list[Message]:
    try:
        with get_session() as session:
            stmt = (
                select(Message)
                .where(Message.campaign_id == campaign_id)
                .order_by(Message.created_at.asc())
            )
            return list(session.scalars(stmt))
    except SQLAlchemyError:
        logger.exception("Failed to load messages for %s", campaign_id)
        return []


def get_conversations(user_id: str) -> list[ConversationSummary]:
    """One summary per campaign the user chats on, most recent first."""
    try:
        with get_session() as session:
            stmt = (
                select(Conversation, Campaign)
                .join(Campaign, Campaign.id == Conversation.campaign_id)
                .where((Conversation.brand_id == user_id) | (Conversation.creator_id == user_id))
            )
            summaries = []
            for conversation, campaign in session.execute(stmt).unique():
                other_id = (
                    conversation.creator_id
                    if conversation.brand_id == user_id
                    else conversation.brand_id
                )
                other = session.get(User, other_id)
                thread = [
                    m
                    for m in session.scalars(
                        select(Message)
                        .where(
                            Message.campaign_id == campaign.id,
                            Message.sender_id.in_([user_id, other_id]),
                        )
                        .order_by(Message.created_at.asc())
                    )
                ]
                last = thread[-1] if thread else None
                summaries.append(
                    ConversationSummary(
                        campaign_id=campaign.id,
                        campaign_title=campaign.title,
                        other_user_id=other_id,
                        other_user_name=other.full_name if other else None,
                        last_message=last.content if last else None,
                        last_message_at=last.created_at if last else None,
                        unread_count=sum(
                            1 for m in thread if m.sender_id != user_id and not m.is_read
                        ),
                    )
                )
    except SQLAlchemyError:
        logger.exception("Failed to load conversations for %s", user_id)
        return []

    summaries.sort(
        key=lambda s: s.last_message_at or datetime.min, reverse=True
    )
    return summaries


def mark_messages_as_read(user_id: str, campaign_id: str) -> bool:
    """Mark messages from the other party as read."""
    try:
        with get_session() as session:
            session.execute(
                update(Message)
                .where(
                    Message.campaign_id == campaign_id,
                    Message.sender_id != user_id,
                    Message.is_read.is_(False),
                )
                .values(is_read=True)
            )
            session.commit()
            return True
    except SQLAlchemyError:
        logger.exception("Failed to mark messages read on %s", campaign_id)
        return False


def get_unread_count(user_id: str) -> int:
    """Unread messages from others across the user's conversations."""
    try:
        with get_session() as session:
            campaign_ids = select(Conversation.campaign_id).where(
                (Conversation.brand_id == user_id) | (Conversation.creator_id == user_id)
            )
            stmt = select(Message.id).where(
                Message.campaign_id.in_(campaign_ids),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            return len(list(session.scalars(stmt)))
    except SQLAlchemyError:
        logger.exception("Failed to count unread messages for %s", user_id)
        return 0


def subscribe_to_messages(
    campaign_id: str, callback: Callable[[dict[str, Any]], None]
) -> Callable[[], None]:
    return get_feed().subscribe("messages", callback, event=INSERT, campaign_id=campaign_id)


def start_conversation(
    brand_id: str,
    creator_id: str,
    campaign_id: str,
    initial_message: str | None = None,
) -> Result[Conversation]:
    """Open (or reuse) a brand/creator thread, optionally posting a first message."""
    if initial_message is not None:
        try:
            validate_content(initial_message)
        except ValueError as e:
            return Result.fail(str(e), ErrorCode.VALIDATION_ERROR)
    try:
        with get_session() as session:
            campaign = session.get(Campaign, campaign_id)
            if campaign is None or campaign.brand_id != brand_id:
                return Result.fail("Campaign not found", ErrorCode.NOT_FOUND)
            conversation = ensure_conversation(session, campaign, creator_id)
            session.commit()
    except SQLAlchemyError as e:
        logger.exception("Failed to start conversation on %s", campaign_id)
        return Result.fail(str(e))

    if initial_message is not None:
        sent = send_message(brand_id, campaign_id, initial_message)
        if not sent.success:
            return Result.fail(sent.error or "Failed to send message", sent.error_code)
    return Result.ok(conversation)
