"""SQLAlchemy models for marketplace entities."""

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UserRole(StrEnum):
    BRAND = "brand"
    CREATOR = "creator"
    ADMIN = "admin"


class CampaignStatus(StrEnum):
    DRAFT = "draft"
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VideoFormat(StrEnum):
    VERTICAL = "9_16"
    HORIZONTAL = "16_9"
    SQUARE = "1_1"
    PORTRAIT = "4_5"


class ScriptType(StrEnum):
    TESTIMONIAL = "testimonial"
    UNBOXING = "unboxing"
    ASMR = "asmr"
    TUTORIAL = "tutorial"
    LIFESTYLE = "lifestyle"
    REVIEW = "review"


class RightsUsage(StrEnum):
    ORGANIC = "organic"
    PAID_3M = "paid_3m"
    PAID_6M = "paid_6m"
    PAID_12M = "paid_12m"
    PERPETUAL = "perpetual"


class ApplicationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    COMPLETED = "completed"


class DeliverableStatus(StrEnum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"
    REJECTED = "rejected"


class ContractStatus(StrEnum):
    PENDING_CREATOR = "pending_creator"
    ACTIVE = "active"
    CANCELLED = "cancelled"


class NotificationType(StrEnum):
    NEW_APPLICATION = "new_application"
    MESSAGE_RECEIVED = "message_received"
    DELIVERABLE_SUBMITTED = "deliverable_submitted"
    DELIVERABLE_APPROVED = "deliverable_approved"
    DELIVERABLE_REVISION = "deliverable_revision"
    DELIVERABLE_REJECTED = "deliverable_rejected"
    APPLICATION_ACCEPTED = "application_accepted"
    APPLICATION_REJECTED = "application_rejected"
    MISSION_COMPLETED = "mission_completed"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class Base(DeclarativeBase):
    """Base class for all models."""

    type_annotation_map = {dict[str, Any]: JSON, list[str]: JSON}


class User(Base):
    """Account shared by brands, creators and admins."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20))
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class BrandProfile(Base):
    """Company details for a brand account."""

    __tablename__ = "profiles_brand"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), unique=True)
    company_name: Mapped[str] = mapped_column(String(255))
    uid_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class CreatorProfile(Base):
    """Portfolio and availability for a creator account."""

    __tablename__ = "profiles_creator"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), unique=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    portfolio_video_urls: Mapped[list[str]] = mapped_column(default=list)
    location_canton: Mapped[str | None] = mapped_column(String(2), nullable=True)
    languages: Mapped[list[str]] = mapped_column(default=list)
    specialties: Mapped[list[str]] = mapped_column(default=list)
    rating_avg: Mapped[float] = mapped_column(Float, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)
    hourly_rate_chf: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class Campaign(Base):
    """Brand brief for a UGC video."""

    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint(
            "(status IN ('draft', 'open') AND selected_creator_id IS NULL)"
            " OR (status IN ('in_progress', 'completed') AND selected_creator_id IS NOT NULL)"
            " OR status = 'cancelled'",
            name="ck_campaign_selected_creator",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    brand_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_requires_shipping: Mapped[bool] = mapped_column(Boolean, default=False)
    format: Mapped[str] = mapped_column(String(10), default=VideoFormat.VERTICAL)
    script_type: Mapped[str] = mapped_column(String(20), default=ScriptType.TESTIMONIAL)
    script_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rights_usage: Mapped[str] = mapped_column(String(20), default=RightsUsage.ORGANIC)
    budget_chf: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    creator_amount_chf: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=CampaignStatus.DRAFT)
    selected_creator_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    assigned_admin_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    invoice_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    invoice_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    invoice_generated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    brand: Mapped[User] = relationship(foreign_keys=[brand_id], lazy="joined")


class MissionStep(Base):
    """Checkpoint of a campaign's mission workflow."""

    __tablename__ = "mission_steps"
    __table_args__ = (UniqueConstraint("campaign_id", "step_type", name="uq_mission_step"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id"))
    step_type: Mapped[str] = mapped_column(String(30))
    status: Mapped[str] = mapped_column(String(20))
    payload: Mapped[dict[str, Any]] = mapped_column(default=dict)
    completed_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class Application(Base):
    """Creator's application to a campaign."""

    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("campaign_id", "creator_id", name="uq_application_campaign_creator"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id"))
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    pitch_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    proposed_rate_chf: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ApplicationStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    campaign: Mapped[Campaign] = relationship(lazy="joined")
    creator: Mapped[User] = relationship(lazy="joined")


class Deliverable(Base):
    """Video submitted by a creator for review."""

    __tablename__ = "deliverables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id"))
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    video_url: Mapped[str] = mapped_column(Text)
    video_duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_watermarked: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(20), default=DeliverableStatus.SUBMITTED)
    revision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rights_transferred_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class Conversation(Base):
    """Brand/creator thread attached to a campaign."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("campaign_id", "creator_id", name="uq_conversation_campaign_creator"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id"))
    brand_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class Message(Base):
    """Chat message within a campaign."""

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id"))
    sender_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    content: Mapped[str] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    sender: Mapped[User] = relationship(lazy="joined")


class Notification(Base):
    """Per-user notification."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    type: Mapped[str] = mapped_column(String(30))
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class NotificationOutbox(Base):
    """Notification intent written alongside the change that caused it."""

    __tablename__ = "notification_outbox"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    type: Mapped[str] = mapped_column(String(30))
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=OutboxStatus.PENDING)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    notification_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Contract(Base):
    """Service contract between brand and selected creator."""

    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    contract_number: Mapped[str] = mapped_column(String(50), unique=True)
    campaign_id: Mapped[str] = mapped_column(ForeignKey("campaigns.id"))
    application_id: Mapped[str | None] = mapped_column(
        ForeignKey("applications.id"), nullable=True
    )
    brand_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    status: Mapped[str] = mapped_column(String(20), default=ContractStatus.PENDING_CREATOR)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    brand_signed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    brand_sign_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    creator_signed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    creator_sign_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
