"""Agency invoices for completed missions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.db import get_session
from core.models import BrandProfile, Campaign, User
from core.results import ErrorCode, Result
from core.storage import get_storage
from marketplace.swiss import extract_tva, format_chf
from marketplace.templates import (
    MISSING_ADDRESS,
    InvoiceVariables,
    describe_deliverables,
    render_invoice,
)

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "MOSH"


@dataclass(frozen=True, slots=True)
class Invoice:
    invoice_number: str
    campaign_id: str
    url: str | None
    text: str


def invoice_number(year: int, sequence: int) -> str:
    return f"{INVOICE_PREFIX}-{year}-{sequence:04d}"


def _next_invoice_number(session, year: int) -> str:
    prefix = f"{INVOICE_PREFIX}-{year}-"
    count = session.scalar(
        select(func.count(Campaign.id)).where(Campaign.invoice_number.like(f"{prefix}%"))
    )
    return invoice_number(year, (count or 0) + 1)


def _render(session, campaign: Campaign) -> str:
    brand = session.get(User, campaign.brand_id)
    profile = session.scalar(select(BrandProfile).where(BrandProfile.user_id == campaign.brand_id))
    issued_at = campaign.invoice_generated_at or datetime.now(UTC)
    issued_on = issued_at.date()
    gross = campaign.creator_amount_chf if campaign.creator_amount_chf is not None else campaign.budget_chf
    net, tva, gross = extract_tva(Decimal(gross))
    return render_invoice(
        InvoiceVariables(
            invoice_number=campaign.invoice_number,
            issued_on=issued_on,
            due_on=issued_on + timedelta(days=int(settings.payment_terms_days)),
            agency_name=settings.agency_name,
            agency_address=settings.agency_address,
            agency_uid=settings.agency_uid,
            agency_email=settings.agency_email,
            client_company=profile.company_name if profile else brand.full_name,
            client_address=(profile.address if profile else None) or MISSING_ADDRESS,
            client_uid=(profile.uid_number if profile else None) or MISSING_ADDRESS,
            campaign_title=campaign.title,
            description=describe_deliverables(campaign.format, campaign.script_type),
            amount_net=format_chf(net),
            tva_rate=f"{settings.tva_rate_percent}%",
            amount_tva=format_chf(tva),
            amount_gross=format_chf(gross),
        )
    )


def generate_invoice(campaign_id: str) -> Result[Invoice]:
    """Number, render and store the invoice of a campaign (idempotent)."""
    try:
        with get_session() as session:
            campaign = session.get(Campaign, campaign_id)
            if campaign is None:
                return Result.fail("Campaign not found", ErrorCode.NOT_FOUND)
            if campaign.selected_creator_id is None:
                return Result.fail("No creator selected for this campaign", ErrorCode.INVALID_TRANSITION)
            if campaign.invoice_number is None:
                now = datetime.now(UTC)
                campaign.invoice_number = _next_invoice_number(session, now.year)
                campaign.invoice_generated_at = now
            text = _render(session, campaign)
            key = f"invoices/{campaign.invoice_number}.txt"
            campaign.invoice_url = key
            session.commit()
            number = campaign.invoice_number
    except SQLAlchemyError as e:
        logger.exception("Failed to generate invoice for %s", campaign_id)
        return Result.fail(str(e))

    try:
        get_storage().upload_bytes(
            bucket=settings.contracts_bucket,
            key=key,
            data=text.encode("utf-8"),
            content_type="text/plain; charset=utf-8",
        )
    except (BotoCoreError, ClientError):
        logger.exception("Invoice upload failed for %s", number)
        return Result.ok(Invoice(number, campaign_id, None, text))
    return Result.ok(Invoice(number, campaign_id, key, text))


def get_invoice_text(campaign_id: str) -> str | None:
    try:
        with get_session() as session:
            campaign = session.get(Campaign, campaign_id)
            if campaign is None or campaign.invoice_number is None:
                return None
            return _render(session, campaign)
    except SQLAlchemyError:
        logger.exception("Failed to render invoice for %s", campaign_id)
        return None
