"""Service contracts between a brand and the selected creator."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_session, new_id
from core.models import (
    Application,
    ApplicationStatus,
    BrandProfile,
    Campaign,
    Contract,
    ContractStatus,
    CreatorProfile,
    User,
)
from core.results import ErrorCode, Result
from core.storage import get_storage
from marketplace import notifications, outbox
from marketplace.swiss import format_chf
from marketplace.templates import (
    DEFAULT_DEADLINE,
    MISSING_ADDRESS,
    RIGHTS_LABELS,
    ContractVariables,
    describe_deliverables,
    format_date_ch,
    render_contract,
)

logger = logging.getLogger(__name__)


def contract_number(application_id: str, generated_at: datetime) -> str:
    return f"UGC-{int(generated_at.timestamp() * 1000)}-{application_id[:8].upper()}"


def new_contract(
    campaign: Campaign,
    creator_id: str,
    application_id: str | None,
    brand_ip: str | None = None,
) -> Contract:
    """Unsaved contract, signed by the brand and awaiting the creator."""
    now = datetime.now(UTC)
    return Contract(
        id=new_id(),
        contract_number=contract_number(application_id or campaign.id, now),
        campaign_id=campaign.id,
        application_id=application_id,
        brand_id=campaign.brand_id,
        creator_id=creator_id,
        status=ContractStatus.PENDING_CREATOR,
        generated_at=now,
        brand_signed_at=now,
        brand_sign_ip=brand_ip,
    )


def has_active_contract(session: Session, campaign_id: str, creator_id: str) -> bool:
    found = session.scalar(
        select(Contract.id).where(
            Contract.campaign_id == campaign_id,
            Contract.creator_id == creator_id,
            Contract.status == ContractStatus.ACTIVE,
        )
    )
    return found is not None


def cancel_open_contracts(session: Session, campaign_id: str) -> None:
    stmt = select(Contract).where(
        Contract.campaign_id == campaign_id, Contract.status == ContractStatus.PENDING_CREATOR
    )
    for contract in session.scalars(stmt):
        contract.status = ContractStatus.CANCELLED


def contract_variables(session: Session, contract: Contract) -> ContractVariables:
    campaign = session.get(Campaign, contract.campaign_id)
    brand = session.get(User, contract.brand_id)
    creator = session.get(User, contract.creator_id)
    brand_profile = session.scalar(select(BrandProfile).where(BrandProfile.user_id == contract.brand_id))
    creator_profile = session.scalar(
        select(CreatorProfile).where(CreatorProfile.user_id == contract.creator_id)
    )
    application = session.get(Application, contract.application_id) if contract.application_id else None

    amount = campaign.creator_amount_chf
    if amount is None and application is not None:
        amount = application.proposed_rate_chf
    if amount is None:
        amount = campaign.budget_chf

    return ContractVariables(
        contract_number=contract.contract_number,
        generated_at=contract.generated_at,
        brand_company=brand_profile.company_name if brand_profile else brand.full_name,
        brand_contact=brand.full_name,
        brand_address=(brand_profile.address if brand_profile else None) or MISSING_ADDRESS,
        brand_uid=(brand_profile.uid_number if brand_profile else None) or MISSING_ADDRESS,
        creator_name=creator.full_name,
        creator_address=(creator_profile.address if creator_profile else None) or MISSING_ADDRESS,
        campaign_title=campaign.title,
        deliverables=describe_deliverables(campaign.format, campaign.script_type),
        rights_usage=RIGHTS_LABELS.get(campaign.rights_usage, campaign.rights_usage),
        amount=format_chf(amount),
        deadline=format_date_ch(campaign.deadline) if campaign.deadline else DEFAULT_DEADLINE,
        revision_count=int(settings.contract_revision_count),
        payment_terms_days=int(settings.payment_terms_days),
        agency_name=settings.agency_name,
        brand_signed_at=contract.brand_signed_at,
        brand_sign_ip=contract.brand_sign_ip,
        creator_signed_at=contract.creator_signed_at,
        creator_sign_ip=contract.creator_sign_ip,
    )


def get_contract(contract_id: str) -> Contract | None:
    try:
        with get_session() as session:
            return session.get(Contract, contract_id)
    except SQLAlchemyError:
        logger.exception("Failed to fetch contract %s", contract_id)
        return None


def get_campaign_contract(campaign_id: str) -> Contract | None:
    """Most recent non-cancelled contract of a campaign."""
    try:
        with get_session() as session:
            return session.scalar(
                select(Contract)
                .where(
                    Contract.campaign_id == campaign_id,
                    Contract.status != ContractStatus.CANCELLED,
                )
                .order_by(Contract.generated_at.desc())
                .limit(1)
            )
    except SQLAlchemyError:
        logger.exception("Failed to fetch contract of campaign %s", campaign_id)
        return None


def get_contract_text(contract_id: str) -> str | None:
    """Render the contract from current data."""
    try:
        with get_session() as session:
            contract = session.get(Contract, contract_id)
            if contract is None:
                return None
            return render_contract(contract_variables(session, contract))
    except SQLAlchemyError:
        logger.exception("Failed to render contract %s", contract_id)
        return None


def store_contract_document(contract_id: str) -> str | None:
    """Upload the rendered contract and record its object key."""
    text = get_contract_text(contract_id)
    if text is None:
        return None
    contract = get_contract(contract_id)
    key = f"{contract.campaign_id}/{contract.contract_number}.txt"
    try:
        get_storage().upload_bytes(
            bucket=settings.contracts_bucket,
            key=key,
            data=text.encode("utf-8"),
            content_type="text/plain; charset=utf-8",
        )
    except (BotoCoreError, ClientError):
        logger.exception("Contract upload failed for %s", contract_id)
        return None
    try:
        with get_session() as session:
            row = session.get(Contract, contract_id)
            row.url = key
            session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to record contract document for %s", contract_id)
        return None
    return key


def create_contract(application_id: str, brand_ip: str | None = None) -> Result[Contract]:
    """Generate the contract for an accepted application (idempotent)."""
    try:
        with get_session() as session:
            application = session.get(Application, application_id)
            if application is None:
                return Result.fail("Application not found", ErrorCode.NOT_FOUND)
            if application.status != ApplicationStatus.ACCEPTED:
                return Result.fail(
                    "A contract needs an accepted application", ErrorCode.INVALID_TRANSITION
                )
            existing = session.scalar(
                select(Contract).where(
                    Contract.application_id == application_id,
                    Contract.status != ContractStatus.CANCELLED,
                )
            )
            if existing is not None:
                return Result.ok(existing)
            contract = new_contract(
                application.campaign, application.creator_id, application_id, brand_ip
            )
            session.add(contract)
            session.commit()
    except SQLAlchemyError as e:
        logger.exception("Failed to create contract for %s", application_id)
        return Result.fail(str(e))

    store_contract_document(contract.id)
    return Result.ok(contract)


def sign_contract_as_creator(
    creator_id: str, contract_id: str, creator_ip: str | None = None
) -> Result[Contract]:
    """Creator signature; only valid while the contract awaits the creator."""
    intent_ids: list[str] = []
    try:
        with get_session() as session:
            contract = session.get(Contract, contract_id)
            if contract is None or contract.creator_id != creator_id:
                return Result.fail("Contract not found", ErrorCode.NOT_FOUND)
            if contract.status != ContractStatus.PENDING_CREATOR:
                return Result.fail(
                    f"Contract is {contract.status}, not awaiting signature",
                    ErrorCode.INVALID_TRANSITION,
                )
            contract.status = ContractStatus.ACTIVE
            contract.creator_signed_at = datetime.now(UTC)
            contract.creator_sign_ip = creator_ip
            campaign = session.get(Campaign, contract.campaign_id)
            creator = session.get(User, creator_id)
            intent = outbox.enqueue(
                session,
                notifications.contract_signed(
                    contract.brand_id, creator.full_name, campaign.title, contract.id
                ),
            )
            intent_ids.append(intent.id)
            session.commit()
    except SQLAlchemyError as e:
        logger.exception("Failed to sign contract %s", contract_id)
        return Result.fail(str(e))

    logger.info("Contract %s signed by creator %s", contract_id, creator_id)
    outbox.deliver(intent_ids)
    store_contract_document(contract_id)
    return Result.ok(contract)
