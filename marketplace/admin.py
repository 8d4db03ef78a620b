"""Agency back-office queries."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from core.db import get_session
from core.models import (
    BrandProfile,
    Campaign,
    CampaignStatus,
    Deliverable,
    DeliverableStatus,
    User,
    UserRole,
)
from core.utils import to_dict
from marketplace.campaigns import get_campaigns
from marketplace.profiles import get_creators

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AdminStats:
    pending_briefs: int = 0
    active_missions: int = 0
    pending_videos: int = 0
    total_creators: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def get_admin_stats() -> AdminStats:
    try:
        with get_session() as session:

            def count(stmt) -> int:
                return session.scalar(stmt) or 0

            return AdminStats(
                pending_briefs=count(
                    select(func.count(Campaign.id)).where(Campaign.status == CampaignStatus.DRAFT)
                ),
                active_missions=count(
                    select(func.count(Campaign.id)).where(
                        Campaign.status.in_([CampaignStatus.OPEN, CampaignStatus.IN_PROGRESS])
                    )
                ),
                pending_videos=count(
                    select(func.count(Deliverable.id)).where(
                        Deliverable.status == DeliverableStatus.SUBMITTED
                    )
                ),
                total_creators=count(
                    select(func.count(User.id)).where(User.role == UserRole.CREATOR)
                ),
            )
    except SQLAlchemyError:
        logger.exception("Failed to compute admin stats")
        return AdminStats()


def get_all_campaigns(status: str | None = None, limit: int | None = None) -> list[Campaign]:
    return get_campaigns(status=status, limit=limit)


def get_all_creators(limit: int | None = None) -> list[dict[str, Any]]:
    return get_creators(limit=limit)


def get_all_brands() -> list[dict[str, Any]]:
    try:
        with get_session() as session:
            stmt = (
                select(User, BrandProfile)
                .outerjoin(BrandProfile, BrandProfile.user_id == User.id)
                .where(User.role == UserRole.BRAND)
                .order_by(User.created_at.desc())
            )
            return [
                {
                    **to_dict(user, exclude=("hashed_password",)),
                    "profile": to_dict(profile) if profile else None,
                }
                for user, profile in session.execute(stmt)
            ]
    except SQLAlchemyError:
        logger.exception("Failed to list brands")
        return []
