"""Campaign data access."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.db import get_session, new_id
from core.models import (
    Campaign,
    CampaignStatus,
    RightsUsage,
    ScriptType,
    User,
    UserRole,
    VideoFormat,
)
from core.results import ErrorCode, MarketplaceError, Result
from core.utils import parse_decimal
from workflow.machine import transition
from workflow.models import Action
from workflow.steps import apply_effects, load_steps

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "product_name",
        "product_description",
        "product_requires_shipping",
        "format",
        "script_type",
        "script_notes",
        "rights_usage",
        "budget_chf",
        "creator_amount_chf",
        "deadline",
    }
)
# brand_id/id/created_at never change; status and selection move through the workflow
PROTECTED_FIELDS = frozenset(
    {
        "id",
        "brand_id",
        "created_at",
        "status",
        "selected_creator_id",
        "assigned_admin_id",
        "invoice_number",
        "invoice_url",
        "invoice_generated_at",
    }
)


def validate_budget(value: Any, field: str = "budget_chf") -> Decimal:
    amount = parse_decimal(value)
    if amount is None:
        raise MarketplaceError(f"{field} must be a number")
    if amount < Decimal(str(settings.min_budget_chf)) or amount > Decimal(str(settings.max_budget_chf)):
        raise MarketplaceError(
            f"{field} must be between {settings.min_budget_chf} and {settings.max_budget_chf} CHF"
        )
    return amount


def _clean_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Validate editable campaign fields; raises MarketplaceError."""
    clean: dict[str, Any] = {}
    for key, value in data.items():
        if key in PROTECTED_FIELDS:
            raise MarketplaceError(f"Field '{key}' cannot be changed here")
        if key not in EDITABLE_FIELDS:
            raise MarketplaceError(f"Unknown campaign field '{key}'")
        if key == "title":
            value = (value or "").strip()
            if not value:
                raise MarketplaceError("Title is required")
        elif key == "format" and value not in set(VideoFormat):
            raise MarketplaceError(f"Unknown video format '{value}'")
        elif key == "script_type" and value not in set(ScriptType):
            raise MarketplaceError(f"Unknown script type '{value}'")
        elif key == "rights_usage" and value not in set(RightsUsage):
            raise MarketplaceError(f"Unknown rights usage '{value}'")
        elif key == "budget_chf":
            value = validate_budget(value)
        elif key == "creator_amount_chf" and value is not None:
            value = validate_budget(value, key)
        elif key == "deadline" and isinstance(value, str):
            try:
                value = date.fromisoformat(value)
            except ValueError as e:
                raise MarketplaceError("Deadline must be an ISO date") from e
        clean[key] = value
    return clean


def _apply_filters(
    stmt: Select,
    status: str | Sequence[str] | None,
    limit: int | None,
    offset: int,
) -> Select:
    if status:
        if isinstance(status, str):
            stmt = stmt.where(Campaign.status == status)
        else:
            stmt = stmt.where(Campaign.status.in_(list(status)))
    stmt = stmt.order_by(Campaign.created_at.desc())
    if offset:
        stmt = stmt.offset(offset).limit(limit or settings.default_page_size)
    elif limit:
        stmt = stmt.limit(limit)
    return stmt


def get_campaigns(
    status: str | Sequence[str] | None = None,
    brand_id: str | None = None,
    script_type: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Campaign]:
    try:
        with get_session() as session:
            stmt = select(Campaign)
            if brand_id:
                stmt = stmt.where(Campaign.brand_id == brand_id)
            if script_type:
                stmt = stmt.where(Campaign.script_type == script_type)
            return list(session.scalars(_apply_filters(stmt, status, limit, offset)))
    except SQLAlchemyError:
        logger.exception("Failed to list campaigns")
        return []


def get_my_campaigns(brand_id: str, status: str | Sequence[str] | None = None) -> list[Campaign]:
    return get_campaigns(status=status, brand_id=brand_id)


def get_campaign_by_id(campaign_id: str) -> Campaign | None:
    try:
        with get_session() as session:
            return session.get(Campaign, campaign_id)
    except SQLAlchemyError:
        logger.exception("Failed to fetch campaign %s", campaign_id)
        return None


def get_open_campaigns(
    script_type: str | None = None,
    min_budget: Any = None,
    max_budget: Any = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Campaign]:
    """Marketplace listing for creators."""
    try:
        with get_session() as session:
            stmt = select(Campaign)
            if script_type:
                stmt = stmt.where(Campaign.script_type == script_type)
            low = parse_decimal(min_budget)
            high = parse_decimal(max_budget)
            if low is not None:
                stmt = stmt.where(Campaign.budget_chf >= low)
            if high is not None:
                stmt = stmt.where(Campaign.budget_chf <= high)
            stmt = _apply_filters(stmt, CampaignStatus.OPEN, limit, offset)
            return list(session.scalars(stmt))
    except SQLAlchemyError:
        logger.exception("Failed to list open campaigns")
        return []


def create_campaign(brand_id: str, data: dict[str, Any]) -> Result[Campaign]:
    """Create a draft campaign and record its brief."""
    try:
        if "title" not in data or "budget_chf" not in data:
            raise MarketplaceError("title and budget_chf are required")
        fields = _clean_fields(data)
    except MarketplaceError as e:
        return Result.from_error(e)

    try:
        with get_session() as session:
            brand = session.get(User, brand_id)
            if brand is None:
                return Result.fail("Brand not found", ErrorCode.NOT_FOUND)
            if brand.role not in (UserRole.BRAND, UserRole.ADMIN):
                return Result.fail("Only brands can create campaigns", ErrorCode.FORBIDDEN)
            campaign = Campaign(
                id=new_id(), brand_id=brand_id, status=CampaignStatus.DRAFT, **fields
            )
            session.add(campaign)
            effects = transition({}, Action.RECORD_BRIEF, brand.role, CampaignStatus.DRAFT)
            apply_effects(session, campaign.id, {}, effects, brand_id)
            session.commit()
            session.refresh(campaign)
    except SQLAlchemyError as e:
        logger.exception("Failed to create campaign for %s", brand_id)
        return Result.fail(str(e))

    logger.info("Campaign %s created by %s", campaign.id, brand_id)
    return Result.ok(campaign)


def update_campaign(campaign_id: str, updates: dict[str, Any]) -> Result[Campaign]:
    try:
        fields = _clean_fields(updates)
    except MarketplaceError as e:
        return Result.from_error(e)

    try:
        with get_session() as session:
            campaign = session.get(Campaign, campaign_id)
            if campaign is None:
                return Result.fail("Campaign not found", ErrorCode.NOT_FOUND)
            for key, value in fields.items():
                setattr(campaign, key, value)
            session.commit()
            session.refresh(campaign)
            return Result.ok(campaign)
    except SQLAlchemyError as e:
        logger.exception("Failed to update campaign %s", campaign_id)
        return Result.fail(str(e))


def delete_campaign(campaign_id: str) -> Result[None]:
    """Delete a campaign; only drafts can be deleted."""
    try:
        with get_session() as session:
            campaign = session.get(Campaign, campaign_id)
            if campaign is None:
                return Result.fail("Campaign not found", ErrorCode.NOT_FOUND)
            if campaign.status != CampaignStatus.DRAFT:
                return Result.fail(
                    "Only draft campaigns can be deleted", ErrorCode.INVALID_TRANSITION
                )
            for step in load_steps(session, campaign_id).values():
                session.delete(step)
            session.delete(campaign)
            session.commit()
            return Result.ok()
    except SQLAlchemyError as e:
        logger.exception("Failed to delete campaign %s", campaign_id)
        return Result.fail(str(e))
