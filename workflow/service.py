"""
Mission workflow actions.

Every action runs in one transaction: the transition guard, the step and
campaign status writes, and the notification intents for the other party
commit together. Intents are delivered after the commit; a delivery problem
is logged and retried, and never undoes the action.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_session, new_id
from core.models import (
    Application,
    ApplicationStatus,
    Campaign,
    CampaignStatus,
    Deliverable,
    DeliverableStatus,
    MissionStep,
    User,
    UserRole,
)
from core.results import ErrorCode, MarketplaceError, Result
from marketplace import notifications, outbox
from marketplace.applications import ensure_conversation
from marketplace.contracts import (
    cancel_open_contracts,
    has_active_contract,
    new_contract,
    store_contract_document,
)
from marketplace.deliverables import apply_review, latest_submitted, new_deliverable
from marketplace.invoices import generate_invoice
from marketplace.notifications import NotificationDraft
from workflow.machine import TransitionError, allowed_actions, next_campaign_status, transition
from workflow.models import Action, StepType
from workflow.steps import apply_effects, load_steps, step_states

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROPOSED_PITCH = "Proposé par l'agence"


@dataclass
class ActionContext:
    """State shared by one workflow action inside its transaction."""

    session: Session
    actor: User
    campaign: Campaign
    steps: dict[str, MissionStep]
    intent_ids: list[str] = field(default_factory=list)
    after_commit: list[Callable[[], Any]] = field(default_factory=list)

    def advance(self, action: Action, payload: dict[str, Any] | None = None) -> list[MissionStep]:
        effects = transition(step_states(self.steps), action, self.actor.role, self.campaign.status)
        return apply_effects(
            self.session, self.campaign.id, self.steps, effects, self.actor.id, payload
        )

    def move_campaign(self, target: str) -> None:
        self.campaign.status = next_campaign_status(self.campaign.status, target)

    def notify(self, draft: NotificationDraft) -> None:
        if draft.user_id == self.actor.id:
            return
        intent = outbox.enqueue(self.session, draft)
        self.intent_ids.append(intent.id)

    def payload_of(self, step_type: StepType) -> dict[str, Any]:
        step = self.steps.get(step_type)
        return dict(step.payload or {}) if step else {}


def _load(session: Session, actor_id: str, campaign_id: str) -> ActionContext:
    actor = session.get(User, actor_id)
    if actor is None:
        raise MarketplaceError("Not authenticated", ErrorCode.NOT_AUTHENTICATED)
    campaign = session.get(Campaign, campaign_id)
    if campaign is None:
        raise MarketplaceError("Campaign not found", ErrorCode.NOT_FOUND)
    if actor.role == UserRole.BRAND and campaign.brand_id != actor.id:
        raise MarketplaceError("Campaign belongs to another brand", ErrorCode.FORBIDDEN)
    return ActionContext(session, actor, campaign, load_steps(session, campaign_id))


def _run(
    name: str,
    actor_id: str,
    campaign_id: str,
    body: Callable[[ActionContext], T],
) -> Result[T]:
    try:
        with get_session() as session:
            ctx = _load(session, actor_id, campaign_id)
            data = body(ctx)
            session.commit()
    except MarketplaceError as e:
        logger.info("Workflow %s rejected on %s: %s", name, campaign_id, e)
        return Result.from_error(e)
    except SQLAlchemyError as e:
        logger.exception("Workflow %s failed on %s", name, campaign_id)
        return Result.fail(str(e))

    logger.info("Workflow %s done on %s by %s", name, campaign_id, actor_id)
    outbox.deliver(ctx.intent_ids)
    for hook in ctx.after_commit:
        try:
            hook()
        except Exception:
            logger.exception("Post-commit hook failed for %s on %s", name, campaign_id)
    return Result.ok(data)


def _require_creator_access(ctx: ActionContext) -> None:
    """Creators act only on their own mission, and only once the contract is signed."""
    if ctx.actor.role != UserRole.CREATOR:
        return
    if ctx.campaign.selected_creator_id != ctx.actor.id:
        raise MarketplaceError("Only the selected creator can do this", ErrorCode.FORBIDDEN)
    if not has_active_contract(ctx.session, ctx.campaign.id, ctx.actor.id):
        raise MarketplaceError(
            "The contract must be signed before starting the mission", ErrorCode.CONTRACT_REQUIRED
        )


def _require_text(value: str | None, what: str) -> str:
    text = (value or "").strip()
    if not text:
        raise MarketplaceError(f"{what} is required", ErrorCode.VALIDATION_ERROR)
    return text


def _submitters(ctx: ActionContext, step_type: StepType) -> Iterable[str]:
    ids = {ctx.payload_of(step_type).get("submitted_by"), ctx.campaign.selected_creator_id}
    return sorted(i for i in ids if i)


# Profiles


def propose_creators(actor_id: str, campaign_id: str, creator_ids: list[str]) -> Result[Campaign]:
    """Attach candidate creators to a campaign and open it."""

    def body(ctx: ActionContext) -> Campaign:
        ids = list(dict.fromkeys(creator_ids or []))
        if not ids:
            raise MarketplaceError("At least one creator is required", ErrorCode.VALIDATION_ERROR)
        creators = [ctx.session.get(User, i) for i in ids]
        if any(c is None or c.role != UserRole.CREATOR for c in creators):
            raise MarketplaceError("Unknown creator in proposal", ErrorCode.VALIDATION_ERROR)

        existing = {
            a.creator_id: a
            for a in ctx.session.scalars(
                select(Application).where(Application.campaign_id == ctx.campaign.id)
            ).unique()
        }
        for creator in creators:
            application = existing.get(creator.id)
            if application is None:
                ctx.session.add(
                    Application(
                        id=new_id(),
                        campaign_id=ctx.campaign.id,
                        creator_id=creator.id,
                        pitch_message=PROPOSED_PITCH,
                        status=ApplicationStatus.PENDING,
                    )
                )
            elif application.status in (ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN):
                application.status = ApplicationStatus.PENDING
            ensure_conversation(ctx.session, ctx.campaign, creator.id)
            ctx.notify(notifications.creator_proposed(creator.id, ctx.campaign.title, ctx.campaign.id))

        previous = ctx.payload_of(StepType.PROFILES_PROPOSED).get("candidate_ids", [])
        candidates = list(dict.fromkeys([*previous, *ids]))
        ctx.advance(
            Action.PROPOSE_PROFILES,
            {"candidate_ids": candidates, "rejection_reason": None},
        )
        ctx.move_campaign(CampaignStatus.OPEN)
        ctx.campaign.assigned_admin_id = ctx.actor.id
        ctx.notify(
            notifications.profiles_ready(
                ctx.campaign.brand_id, len(ids), ctx.campaign.title, ctx.campaign.id
            )
        )
        return ctx.campaign

    return _run("propose_creators", actor_id, campaign_id, body)


def reject_profiles(actor_id: str, campaign_id: str, reason: str | None = None) -> Result[Campaign]:
    """Brand turns down the proposed profiles; the agency re-proposes by hand."""

    def body(ctx: ActionContext) -> Campaign:
        ctx.advance(Action.REJECT_PROFILES, {"rejection_reason": reason})
        pending = ctx.session.scalars(
            select(Application).where(
                Application.campaign_id == ctx.campaign.id,
                Application.status == ApplicationStatus.PENDING,
            )
        ).unique()
        for application in pending:
            application.status = ApplicationStatus.REJECTED
        if ctx.campaign.assigned_admin_id:
            ctx.notify(
                notifications.profiles_rejected(
                    ctx.campaign.assigned_admin_id, ctx.campaign.title, reason, ctx.campaign.id
                )
            )
        else:
            logger.warning("Profiles rejected on %s with no assigned admin", ctx.campaign.id)
        return ctx.campaign

    return _run("reject_profiles", actor_id, campaign_id, body)


def select_creator(
    actor_id: str,
    campaign_id: str,
    creator_id: str,
    brand_ip: str | None = None,
) -> Result[Campaign]:
    """Pick the creator, start the mission and issue the contract."""

    def body(ctx: ActionContext) -> Campaign:
        ctx.advance(Action.SELECT_CREATOR, {"creator_id": creator_id})
        applications = list(
            ctx.session.scalars(
                select(Application).where(Application.campaign_id == ctx.campaign.id)
            ).unique()
        )
        chosen = next(
            (
                a
                for a in applications
                if a.creator_id == creator_id
                and a.status in (ApplicationStatus.PENDING, ApplicationStatus.ACCEPTED)
            ),
            None,
        )
        if chosen is None:
            raise MarketplaceError(
                "Creator was not proposed and has not applied", ErrorCode.VALIDATION_ERROR
            )
        creator = ctx.session.get(User, creator_id)

        # status and selected creator are flushed together
        ctx.campaign.status = next_campaign_status(ctx.campaign.status, CampaignStatus.IN_PROGRESS)
        ctx.campaign.selected_creator_id = creator_id

        chosen.status = ApplicationStatus.ACCEPTED
        for application in applications:
            if application is not chosen and application.status == ApplicationStatus.PENDING:
                application.status = ApplicationStatus.REJECTED
                ctx.notify(
                    notifications.application_status(
                        application.creator_id, False, ctx.campaign.title, application.id
                    )
                )

        contract = new_contract(ctx.campaign, creator_id, chosen.id, brand_ip)
        ctx.session.add(contract)
        ctx.after_commit.append(lambda: store_contract_document(contract.id))

        ctx.notify(
            notifications.creator_selected_brand(
                ctx.campaign.brand_id, creator.full_name, ctx.campaign.title, ctx.campaign.id
            )
        )
        ctx.notify(notifications.creator_assigned(creator_id, ctx.campaign.title, ctx.campaign.id))
        return ctx.campaign

    return _run("select_creator", actor_id, campaign_id, body)


# Script


def submit_script(actor_id: str, campaign_id: str, script: str) -> Result[MissionStep]:
    def body(ctx: ActionContext) -> MissionStep:
        text = _require_text(script, "Script")
        _require_creator_access(ctx)
        (step,) = ctx.advance(
            Action.SUBMIT_SCRIPT, {"script": text, "submitted_by": ctx.actor.id}
        )
        ctx.notify(
            notifications.script_ready(ctx.campaign.brand_id, ctx.campaign.title, ctx.campaign.id)
        )
        return step

    return _run("submit_script", actor_id, campaign_id, body)


def approve_script(actor_id: str, campaign_id: str) -> Result[MissionStep]:
    def body(ctx: ActionContext) -> MissionStep:
        recipients = _submitters(ctx, StepType.SCRIPT_SUBMITTED)
        steps = ctx.advance(Action.APPROVE_SCRIPT)
        for user_id in recipients:
            ctx.notify(notifications.script_approved(user_id, ctx.campaign.title, ctx.campaign.id))
        return steps[-1]

    return _run("approve_script", actor_id, campaign_id, body)


def request_script_revision(actor_id: str, campaign_id: str, notes: str) -> Result[MissionStep]:
    """Send the script back; the step stays open and the campaign status is unchanged."""

    def body(ctx: ActionContext) -> MissionStep:
        text = _require_text(notes, "Revision notes")
        count = ctx.payload_of(StepType.SCRIPT_SUBMITTED).get("revision_count", 0)
        recipients = _submitters(ctx, StepType.SCRIPT_SUBMITTED)
        (step,) = ctx.advance(
            Action.REQUEST_SCRIPT_REVISION,
            {"revision_notes": text, "revision_count": count + 1},
        )
        for user_id in recipients:
            ctx.notify(
                notifications.script_revision(user_id, ctx.campaign.title, text, ctx.campaign.id)
            )
        return step

    return _run("request_script_revision", actor_id, campaign_id, body)


# Video


def submit_video(
    actor_id: str,
    campaign_id: str,
    video_url: str,
    video_duration_seconds: float | None = None,
    thumbnail_url: str | None = None,
) -> Result[Deliverable]:
    """Record a delivered video (watermarked) and hand it to the brand for review."""

    def body(ctx: ActionContext) -> Deliverable:
        key = _require_text(video_url, "Video")
        _require_creator_access(ctx)
        creator_id = ctx.campaign.selected_creator_id
        deliverable = new_deliverable(
            ctx.campaign.id, creator_id, key, video_duration_seconds, thumbnail_url
        )
        ctx.advance(
            Action.SUBMIT_VIDEO,
            {"deliverable_id": deliverable.id, "video_url": key, "submitted_by": ctx.actor.id},
        )
        ctx.session.add(deliverable)
        creator = ctx.session.get(User, creator_id)
        ctx.notify(
            notifications.deliverable_submitted(
                ctx.campaign.brand_id, creator.full_name, ctx.campaign.title, deliverable.id
            )
        )
        return deliverable

    return _run("submit_video", actor_id, campaign_id, body)


def _submitted_video(ctx: ActionContext) -> Deliverable:
    deliverable = latest_submitted(ctx.session, ctx.campaign.id)
    if deliverable is None:
        raise TransitionError("No video awaiting review")
    return deliverable


def approve_video(actor_id: str, campaign_id: str) -> Result[Deliverable]:
    """Approve the video: watermark off, rights transferred, creator's work completed."""

    def body(ctx: ActionContext) -> Deliverable:
        ctx.advance(Action.APPROVE_VIDEO)
        deliverable = _submitted_video(ctx)
        apply_review(deliverable, DeliverableStatus.APPROVED)
        application = ctx.session.scalar(
            select(Application).where(
                Application.campaign_id == ctx.campaign.id,
                Application.creator_id == ctx.campaign.selected_creator_id,
            )
        )
        if application is not None:
            application.status = ApplicationStatus.COMPLETED
        ctx.notify(
            notifications.deliverable_approved(
                deliverable.creator_id, ctx.campaign.title, deliverable.id
            )
        )
        return deliverable

    return _run("approve_video", actor_id, campaign_id, body)


def request_video_revision(actor_id: str, campaign_id: str, notes: str) -> Result[Deliverable]:
    def body(ctx: ActionContext) -> Deliverable:
        text = _require_text(notes, "Revision notes")
        limit = int(settings.max_video_revisions)
        count = ctx.payload_of(StepType.VIDEO_SUBMITTED).get("revision_count", 0)
        if count >= limit:
            raise TransitionError(f"Revision limit reached ({count}/{limit})")
        ctx.advance(
            Action.REQUEST_VIDEO_REVISION,
            {"revision_notes": text, "revision_count": count + 1},
        )
        deliverable = _submitted_video(ctx)
        apply_review(deliverable, DeliverableStatus.REVISION_REQUESTED, text)
        ctx.notify(
            notifications.deliverable_revision(
                deliverable.creator_id, ctx.campaign.title, text, count + 1, limit, deliverable.id
            )
        )
        return deliverable

    return _run("request_video_revision", actor_id, campaign_id, body)


def reject_video(actor_id: str, campaign_id: str, reason: str | None = None) -> Result[Deliverable]:
    """Reject the video for good; the mission can no longer complete."""

    def body(ctx: ActionContext) -> Deliverable:
        ctx.advance(Action.REJECT_VIDEO, {"rejection_reason": reason})
        deliverable = _submitted_video(ctx)
        apply_review(deliverable, DeliverableStatus.REJECTED)
        ctx.notify(
            notifications.deliverable_rejected(
                deliverable.creator_id, ctx.campaign.title, deliverable.id
            )
        )
        return deliverable

    return _run("reject_video", actor_id, campaign_id, body)


# Campaign


def complete_mission(actor_id: str, campaign_id: str) -> Result[Campaign]:
    def body(ctx: ActionContext) -> Campaign:
        ctx.advance(Action.COMPLETE_MISSION)
        ctx.move_campaign(CampaignStatus.COMPLETED)
        ctx.notify(
            notifications.mission_completed(
                ctx.campaign.selected_creator_id, ctx.campaign.title, ctx.campaign.id
            )
        )
        ctx.after_commit.append(lambda: generate_invoice(ctx.campaign.id))
        return ctx.campaign

    return _run("complete_mission", actor_id, campaign_id, body)


def cancel_campaign(actor_id: str, campaign_id: str) -> Result[Campaign]:
    def body(ctx: ActionContext) -> Campaign:
        if ctx.actor.role not in (UserRole.BRAND, UserRole.ADMIN):
            raise TransitionError("Only the brand or the agency can cancel", ErrorCode.FORBIDDEN)
        ctx.move_campaign(CampaignStatus.CANCELLED)
        cancel_open_contracts(ctx.session, ctx.campaign.id)
        if ctx.campaign.selected_creator_id:
            ctx.notify(
                notifications.campaign_cancelled(
                    ctx.campaign.selected_creator_id, ctx.campaign.title, ctx.campaign.id
                )
            )
        return ctx.campaign

    return _run("cancel_campaign", actor_id, campaign_id, body)


def get_allowed_actions(actor_id: str, campaign_id: str) -> list[str]:
    """Actions the user may take on the campaign right now."""
    try:
        with get_session() as session:
            ctx = _load(session, actor_id, campaign_id)
            return [
                str(a)
                for a in allowed_actions(step_states(ctx.steps), ctx.actor.role, ctx.campaign.status)
            ]
    except MarketplaceError:
        return []
    except SQLAlchemyError:
        logger.exception("Failed to compute actions on %s", campaign_id)
        return []
