"""Persistence of mission step rows."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import get_session, new_id
from core.models import MissionStep
from workflow.machine import Effect
from workflow.models import StepStatus, StepType, step_index

logger = logging.getLogger(__name__)


def load_steps(session: Session, campaign_id: str) -> dict[str, MissionStep]:
    stmt = select(MissionStep).where(MissionStep.campaign_id == campaign_id)
    return {step.step_type: step for step in session.scalars(stmt)}


def step_states(steps: dict[str, MissionStep]) -> dict[str, str]:
    return {step_type: step.status for step_type, step in steps.items()}


def apply_effects(
    session: Session,
    campaign_id: str,
    steps: dict[str, MissionStep],
    effects: Iterable[Effect],
    actor_id: str,
    payload: dict[str, Any] | None = None,
) -> list[MissionStep]:
    """
    Write step status changes into the session.

    The payload is merged into every touched step; one row per
    (campaign, step type) is kept and updated in place.
    """
    now = datetime.now(UTC)
    touched = []
    for step_type, status in effects:
        step = steps.get(step_type)
        if step is None:
            step = MissionStep(
                id=new_id(), campaign_id=campaign_id, step_type=step_type, payload={}
            )
            session.add(step)
            steps[step_type] = step
        step.status = status
        if payload:
            # reassign so the JSON column registers the change
            step.payload = {**(step.payload or {}), **payload}
        if status == StepStatus.DONE:
            step.completed_by = actor_id
            step.completed_at = now
        touched.append(step)
    return touched


def get_mission_steps(campaign_id: str) -> list[MissionStep]:
    """Steps recorded so far, in workflow order."""
    try:
        with get_session() as session:
            steps = load_steps(session, campaign_id)
    except SQLAlchemyError:
        logger.exception("Failed to load mission steps for %s", campaign_id)
        return []
    return sorted(steps.values(), key=lambda s: step_index(StepType(s.step_type)))
