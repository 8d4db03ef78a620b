"""Creator applications to campaigns."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.config import settings
from core.db import get_session, new_id
from core.models import (
    Application,
    ApplicationStatus,
    Campaign,
    CampaignStatus,
    Conversation,
    User,
    UserRole,
)
from core.results import ErrorCode, Result
from core.utils import parse_decimal
from marketplace import notifications, outbox

logger = logging.getLogger(__name__)

DUPLICATE_APPLICATION_MESSAGE = "You have already applied to this campaign"
# postgres names the constraint, sqlite names the columns
DUPLICATE_APPLICATION_MARKERS = (
    "uq_application_campaign_creator",
    "applications.campaign_id, applications.creator_id",
)


def is_duplicate_application(error: IntegrityError) -> bool:
    text = str(error.orig)
    return any(marker in text for marker in DUPLICATE_APPLICATION_MARKERS)


def _validate_rate(value: Any) -> Decimal | None | str:
    if value is None or value == "":
        return None
    rate = parse_decimal(value)
    if rate is None or rate <= 0 or rate > Decimal(str(settings.max_rate_chf)):
        return f"Proposed rate must be between 0 and {settings.max_rate_chf} CHF"
    return rate


def ensure_conversation(session, campaign: Campaign, creator_id: str) -> Conversation:
    conversation = session.scalar(
        select(Conversation).where(
            Conversation.campaign_id == campaign.id, Conversation.creator_id == creator_id
        )
    )
    if conversation is None:
        conversation = Conversation(
            id=new_id(), campaign_id=campaign.id, brand_id=campaign.brand_id, creator_id=creator_id
        )
        session.add(conversation)
    return conversation


def apply_to_campaign(
    creator_id: str,
    campaign_id: str,
    pitch_message: str | None = None,
    proposed_rate_chf: Any = None,
) -> Result[Application]:
    """
    Apply to an open campaign.

    A second application for the same campaign fails with
    DUPLICATE_APPLICATION and leaves the first one untouched.
    """
    rate = _validate_rate(proposed_rate_chf)
    if isinstance(rate, str):
        return Result.fail(rate, ErrorCode.VALIDATION_ERROR)

    intent_ids: list[str] = []
    try:
        with get_session() as session:
            creator = session.get(User, creator_id)
            if creator is None or creator.role != UserRole.CREATOR:
                return Result.fail("Only creators can apply", ErrorCode.FORBIDDEN)
            campaign = session.get(Campaign, campaign_id)
            if campaign is None:
                return Result.fail("Campaign not found", ErrorCode.NOT_FOUND)
            if campaign.status != CampaignStatus.OPEN:
                return Result.fail("Campaign is not open for applications", ErrorCode.VALIDATION_ERROR)

            application = Application(
                id=new_id(),
                campaign_id=campaign_id,
                creator_id=creator_id,
                pitch_message=(pitch_message or "").strip() or None,
                proposed_rate_chf=rate,
                status=ApplicationStatus.PENDING,
            )
            session.add(application)
            session.flush()
            ensure_conversation(session, campaign, creator_id)
            intent = outbox.enqueue(
                session,
                notifications.new_application(
                    campaign.brand_id, creator.full_name, campaign.title, application.id
                ),
            )
            intent_ids.append(intent.id)
            session.commit()
            session.refresh(application)
    except IntegrityError as e:
        if not is_duplicate_application(e):
            logger.exception("Integrity error applying %s to %s", creator_id, campaign_id)
            return Result.fail(str(e))
        logger.info("Duplicate application by %s to %s", creator_id, campaign_id)
        return Result.fail(DUPLICATE_APPLICATION_MESSAGE, ErrorCode.DUPLICATE_APPLICATION)
    except SQLAlchemyError as e:
        logger.exception("Failed to apply %s to %s", creator_id, campaign_id)
        return Result.fail(str(e))

    outbox.deliver(intent_ids)
    return Result.ok(application)


def get_campaign_applications(campaign_id: str, status: str | None = None) -> list[Application]:
    try:
        with get_session() as session:
            stmt = (
                select(Application)
                .where(Application.campaign_id == campaign_id)
                .order_by(Application.created_at.desc())
            )
            if status:
                stmt = stmt.where(Application.status == status)
            return list(session.scalars(stmt).unique())
    except SQLAlchemyError:
        logger.exception("Failed to list applications for %s", campaign_id)
        return []


def get_my_applications(creator_id: str, status: str | None = None) -> list[Application]:
    try:
        with get_session() as session:
            stmt = (
                select(Application)
                .where(Application.creator_id == creator_id)
                .order_by(Application.created_at.desc())
            )
            if status:
                stmt = stmt.where(Application.status == status)
            return list(session.scalars(stmt).unique())
    except SQLAlchemyError:
        logger.exception("Failed to list applications of %s", creator_id)
        return []


def update_application_status(application_id: str, status: str) -> Result[Application]:
    """Set an application status, notifying the creator on accept/reject."""
    if status not in set(ApplicationStatus):
        return Result.fail(f"Unknown application status '{status}'", ErrorCode.VALIDATION_ERROR)

    intent_ids: list[str] = []
    try:
        with get_session() as session:
            application = session.get(Application, application_id)
            if application is None:
                return Result.fail("Application not found", ErrorCode.NOT_FOUND)
            application.status = status
            if status in (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED):
                intent = outbox.enqueue(
                    session,
                    notifications.application_status(
                        application.creator_id,
                        status == ApplicationStatus.ACCEPTED,
                        application.campaign.title,
                        application.id,
                    ),
                )
                intent_ids.append(intent.id)
            session.commit()
    except SQLAlchemyError as e:
        logger.exception("Failed to update application %s", application_id)
        return Result.fail(str(e))

    outbox.deliver(intent_ids)
    return Result.ok(application)


def withdraw_application(creator_id: str, application_id: str) -> Result[Application]:
    try:
        with get_session() as session:
            application = session.get(Application, application_id)
            if application is None or application.creator_id != creator_id:
                return Result.fail("Application not found", ErrorCode.NOT_FOUND)
            if application.status != ApplicationStatus.PENDING:
                return Result.fail(
                    "Only pending applications can be withdrawn", ErrorCode.INVALID_TRANSITION
                )
            application.status = ApplicationStatus.WITHDRAWN
            session.commit()
            return Result.ok(application)
    except SQLAlchemyError as e:
        logger.exception("Failed to withdraw application %s", application_id)
        return Result.fail(str(e))


def has_applied(creator_id: str, campaign_id: str) -> bool:
    try:
        with get_session() as session:
            found = session.scalar(
                select(Application.id).where(
                    Application.campaign_id == campaign_id, Application.creator_id == creator_id
                )
            )
            return found is not None
    except SQLAlchemyError:
        logger.exception("Failed to check application of %s to %s", creator_id, campaign_id)
        return False


def get_application_count(campaign_id: str) -> int:
    try:
        with get_session() as session:
            return session.scalar(
                select(func.count(Application.id)).where(Application.campaign_id == campaign_id)
            ) or 0
    except SQLAlchemyError:
        logger.exception("Failed to count applications for %s", campaign_id)
        return 0
