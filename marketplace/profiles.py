"""User and role-profile data access."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.db import get_session, new_id
from core.models import BrandProfile, CreatorProfile, User, UserRole
from core.results import ErrorCode, Result
from core.utils import to_dict
from marketplace.swiss import format_swiss_uid, is_valid_canton, is_valid_swiss_uid

logger = logging.getLogger(__name__)

USER_FIELDS = ("full_name", "avatar_url")
BRAND_FIELDS = (
    "company_name",
    "uid_number",
    "website",
    "industry",
    "description",
    "logo_url",
    "address",
)
CREATOR_FIELDS = (
    "bio",
    "portfolio_video_urls",
    "location_canton",
    "languages",
    "specialties",
    "hourly_rate_chf",
    "is_available",
    "address",
)


@dataclass(frozen=True, slots=True)
class FullProfile:
    """User row plus the profile row matching their role, as plain data."""

    user: dict[str, Any]
    brand_profile: dict[str, Any] | None = None
    creator_profile: dict[str, Any] | None = None

    @property
    def user_id(self) -> str:
        return self.user["id"]

    @property
    def role(self) -> str:
        return self.user["role"]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "user": self.user,
            "brandProfile": self.brand_profile,
            "creatorProfile": self.creator_profile,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FullProfile:
        """Deserialize from dictionary."""
        return cls(
            user=data["user"],
            brand_profile=data.get("brandProfile"),
            creator_profile=data.get("creatorProfile"),
        )


def _user_dict(user: User) -> dict[str, Any]:
    return to_dict(user, exclude=("hashed_password",))


def get_profile_by_user_id(user_id: str) -> FullProfile | None:
    """Load the user and only the profile table matching their role."""
    try:
        with get_session() as session:
            user = session.get(User, user_id)
            if user is None:
                return None
            brand = creator = None
            if user.role == UserRole.BRAND:
                row = session.scalar(select(BrandProfile).where(BrandProfile.user_id == user_id))
                brand = to_dict(row) if row else None
            elif user.role == UserRole.CREATOR:
                row = session.scalar(
                    select(CreatorProfile).where(CreatorProfile.user_id == user_id)
                )
                creator = to_dict(row) if row else None
            return FullProfile(user=_user_dict(user), brand_profile=brand, creator_profile=creator)
    except SQLAlchemyError:
        logger.exception("Failed to load profile for %s", user_id)
        return None


def get_user_by_id(user_id: str) -> FullProfile | None:
    return get_profile_by_user_id(user_id)


def _validate_extended(role: str, data: dict[str, Any]) -> str | None:
    if role == UserRole.BRAND:
        uid = data.get("uid_number")
        if uid and not is_valid_swiss_uid(format_swiss_uid(uid)):
            return "Invalid Swiss UID (expected CHE-xxx.xxx.xxx)"
    if role == UserRole.CREATOR:
        if not is_valid_canton(data.get("location_canton")):
            return "Unknown canton"
    return None


def _apply_extended(session, user: User, data: dict[str, Any]) -> None:
    if user.role == UserRole.BRAND:
        profile = session.scalar(select(BrandProfile).where(BrandProfile.user_id == user.id))
        if profile is None:
            profile = BrandProfile(
                id=new_id(), user_id=user.id, company_name=data.get("company_name") or user.full_name
            )
            session.add(profile)
        for key in BRAND_FIELDS:
            if key in data:
                value = data[key]
                if key == "uid_number" and value:
                    value = format_swiss_uid(value)
                setattr(profile, key, value)
    elif user.role == UserRole.CREATOR:
        profile = session.scalar(select(CreatorProfile).where(CreatorProfile.user_id == user.id))
        if profile is None:
            profile = CreatorProfile(id=new_id(), user_id=user.id)
            session.add(profile)
        for key in CREATOR_FIELDS:
            if key in data:
                setattr(profile, key, data[key])


def create_user_profile(
    user_id: str,
    full_name: str,
    role: str,
    extended: dict[str, Any] | None = None,
) -> Result[FullProfile]:
    """Create or complete the role profile of an existing account."""
    extended = extended or {}
    error = _validate_extended(role, extended)
    if error:
        return Result.fail(error, ErrorCode.VALIDATION_ERROR)
    try:
        with get_session() as session:
            user = session.get(User, user_id)
            if user is None:
                return Result.fail("User not found", ErrorCode.NOT_FOUND)
            user.full_name = full_name
            _apply_extended(session, user, extended)
            session.commit()
    except SQLAlchemyError as e:
        logger.exception("Failed to create profile for %s", user_id)
        return Result.fail(str(e))
    return Result.ok(get_profile_by_user_id(user_id))


def update_user_profile(
    user_id: str,
    user_data: dict[str, Any] | None = None,
    extended_data: dict[str, Any] | None = None,
) -> Result[FullProfile]:
    user_data = user_data or {}
    extended_data = extended_data or {}
    try:
        with get_session() as session:
            user = session.get(User, user_id)
            if user is None:
                return Result.fail("User not found", ErrorCode.NOT_FOUND)
            error = _validate_extended(user.role, extended_data)
            if error:
                return Result.fail(error, ErrorCode.VALIDATION_ERROR)
            for key in USER_FIELDS:
                if key in user_data:
                    setattr(user, key, user_data[key])
            _apply_extended(session, user, extended_data)
            session.commit()
    except SQLAlchemyError as e:
        logger.exception("Failed to update profile for %s", user_id)
        return Result.fail(str(e))
    return Result.ok(get_profile_by_user_id(user_id))


def get_creators(
    canton: str | None = None,
    is_available: bool | None = None,
    specialty: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Creator directory: user fields merged with their creator profile."""
    try:
        with get_session() as session:
            stmt = (
                select(User, CreatorProfile)
                .join(CreatorProfile, CreatorProfile.user_id == User.id)
                .where(User.role == UserRole.CREATOR)
                .order_by(CreatorProfile.rating_avg.desc(), User.created_at.desc())
            )
            if canton:
                stmt = stmt.where(CreatorProfile.location_canton == canton)
            if is_available is not None:
                stmt = stmt.where(CreatorProfile.is_available.is_(is_available))
            if offset:
                stmt = stmt.offset(offset).limit(limit or settings.default_page_size)
            elif limit:
                stmt = stmt.limit(limit)
            rows = session.execute(stmt).all()
    except SQLAlchemyError:
        logger.exception("Failed to list creators")
        return []

    creators = []
    for user, profile in rows:
        # specialties is a JSON list, filtered here to stay portable across backends
        if specialty and specialty not in (profile.specialties or []):
            continue
        creators.append({**_user_dict(user), "profile": to_dict(profile)})
    return creators
