"""Video deliverables and their private storage."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.db import get_session, new_id
from core.models import Deliverable, DeliverableStatus
from core.results import ErrorCode, Result
from core.storage import get_storage, sanitize_filename

logger = logging.getLogger(__name__)


def build_video_key(campaign_id: str, creator_id: str, filename: str) -> str:
    return f"{campaign_id}/{creator_id}/{int(time.time() * 1000)}_{sanitize_filename(filename)}"


def upload_video(data: bytes, filename: str, campaign_id: str, creator_id: str) -> str | None:
    """Upload to the private bucket; returns the object key."""
    key = build_video_key(campaign_id, creator_id, filename)
    try:
        get_storage().upload_bytes(
            bucket=settings.deliverables_bucket, key=key, data=data, content_type="video/mp4"
        )
    except (BotoCoreError, ClientError):
        logger.exception("Video upload failed for %s", key)
        return None
    return key


def own_video_key(path: str, campaign_id: str, creator_id: str) -> str | None:
    """Object key for a creator's own upload on a campaign, None for anything else."""
    key = get_storage().key_from_url(bucket=settings.deliverables_bucket, url=path)
    parts = key.split("/")
    if len(parts) < 3 or parts[:2] != [campaign_id, creator_id] or any(p in ("", ".", "..") for p in parts):
        return None
    return key


def download_video(key: str) -> bytes | None:
    try:
        return get_storage().download_bytes(bucket=settings.deliverables_bucket, key=key)
    except (BotoCoreError, ClientError):
        logger.exception("Video download failed for %s", key)
        return None


def get_video_signed_url(path: str) -> str | None:
    """Short-lived URL for a stored video; accepts a key or a legacy public URL."""
    storage = get_storage()
    key = storage.key_from_url(bucket=settings.deliverables_bucket, url=path)
    try:
        return storage.presign_get(bucket=settings.deliverables_bucket, key=key)
    except (BotoCoreError, ClientError):
        logger.exception("Could not sign URL for %s", key)
        return None


def get_download_url(video_url: str) -> str | None:
    return get_video_signed_url(video_url)


def new_deliverable(
    campaign_id: str,
    creator_id: str,
    video_url: str,
    video_duration_seconds: float | None = None,
    thumbnail_url: str | None = None,
) -> Deliverable:
    """Unsaved deliverable awaiting review; watermarked until approved."""
    return Deliverable(
        id=new_id(),
        campaign_id=campaign_id,
        creator_id=creator_id,
        video_url=video_url,
        video_duration_seconds=video_duration_seconds,
        thumbnail_url=thumbnail_url,
        is_watermarked=True,
        status=DeliverableStatus.SUBMITTED,
    )


def apply_review(deliverable: Deliverable, status: str, revision_notes: str | None = None) -> None:
    """Apply a review outcome to a deliverable row."""
    deliverable.status = status
    if status == DeliverableStatus.APPROVED:
        deliverable.is_watermarked = False
        deliverable.rights_transferred_at = datetime.now(UTC)
    elif status == DeliverableStatus.REVISION_REQUESTED:
        deliverable.revision_notes = revision_notes


def create_deliverable(
    campaign_id: str,
    creator_id: str,
    video_url: str,
    video_duration_seconds: float | None = None,
    thumbnail_url: str | None = None,
) -> Result[Deliverable]:
    try:
        with get_session() as session:
            deliverable = new_deliverable(
                campaign_id, creator_id, video_url, video_duration_seconds, thumbnail_url
            )
            session.add(deliverable)
            session.commit()
            return Result.ok(deliverable)
    except SQLAlchemyError as e:
        logger.exception("Failed to create deliverable for %s", campaign_id)
        return Result.fail(str(e))


def get_deliverables(campaign_id: str, creator_id: str | None = None) -> list[Deliverable]:
    try:
        with get_session() as session:
            stmt = (
                select(Deliverable)
                .where(Deliverable.campaign_id == campaign_id)
                .order_by(Deliverable.created_at.desc())
            )
            if creator_id:
                stmt = stmt.where(Deliverable.creator_id == creator_id)
            return list(session.scalars(stmt))
    except SQLAlchemyError:
        logger.exception("Failed to list deliverables for %s", campaign_id)
        return []


def get_deliverable(deliverable_id: str) -> Deliverable | None:
    try:
        with get_session() as session:
            return session.get(Deliverable, deliverable_id)
    except SQLAlchemyError:
        logger.exception("Failed to fetch deliverable %s", deliverable_id)
        return None


def latest_submitted(session, campaign_id: str) -> Deliverable | None:
    stmt = (
        select(Deliverable)
        .where(
            Deliverable.campaign_id == campaign_id,
            Deliverable.status == DeliverableStatus.SUBMITTED,
        )
        .order_by(Deliverable.created_at.desc())
        .limit(1)
    )
    return session.scalar(stmt)


def update_deliverable_status(
    deliverable_id: str, status: str, revision_notes: str | None = None
) -> Result[Deliverable]:
    if status not in set(DeliverableStatus):
        return Result.fail(f"Unknown deliverable status '{status}'", ErrorCode.VALIDATION_ERROR)
    try:
        with get_session() as session:
            deliverable = session.get(Deliverable, deliverable_id)
            if deliverable is None:
                return Result.fail("Deliverable not found", ErrorCode.NOT_FOUND)
            apply_review(deliverable, status, revision_notes)
            session.commit()
            return Result.ok(deliverable)
    except SQLAlchemyError as e:
        logger.exception("Failed to update deliverable %s", deliverable_id)
        return Result.fail(str(e))
