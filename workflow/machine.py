"""
Explicit transition rules for the mission workflow.

transition() is pure: given the current step statuses, the campaign status,
an action and the actor's role, it either returns the step status changes to
apply or raises TransitionError. It checks, in order:

1. the role may perform the action,
2. the campaign is in a status where the action makes sense,
3. the step the action works on is in an accepted status,
4. the logical predecessor step is done,
5. no later step is already done.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from core.models import CampaignStatus, UserRole
from core.results import ErrorCode, MarketplaceError
from workflow.models import STEP_ORDER, Action, StepStatus, StepType, step_index

Effect = tuple[StepType, StepStatus]

BRAND_OR_ADMIN = frozenset({UserRole.BRAND, UserRole.ADMIN})
CREATOR_OR_ADMIN = frozenset({UserRole.CREATOR, UserRole.ADMIN})
ADMIN_ONLY = frozenset({UserRole.ADMIN})

TERMINAL_CAMPAIGN_STATUSES = frozenset({CampaignStatus.COMPLETED, CampaignStatus.CANCELLED})

CAMPAIGN_TRANSITIONS: dict[str, frozenset[str]] = {
    CampaignStatus.DRAFT: frozenset({CampaignStatus.OPEN, CampaignStatus.CANCELLED}),
    CampaignStatus.OPEN: frozenset({CampaignStatus.IN_PROGRESS, CampaignStatus.CANCELLED}),
    CampaignStatus.IN_PROGRESS: frozenset({CampaignStatus.COMPLETED, CampaignStatus.CANCELLED}),
    CampaignStatus.COMPLETED: frozenset(),
    CampaignStatus.CANCELLED: frozenset(),
}


class TransitionError(MarketplaceError):
    """Rejected workflow action."""

    def __init__(self, message: str, error_code: str = ErrorCode.INVALID_TRANSITION) -> None:
        super().__init__(message, error_code)


@dataclass(frozen=True, slots=True)
class Rule:
    step: StepType
    roles: frozenset[str]
    accepts: frozenset[StepStatus | None]
    campaign_statuses: frozenset[str]
    effects: tuple[Effect, ...]


_IN_PROGRESS = frozenset({CampaignStatus.IN_PROGRESS})

RULES: dict[Action, Rule] = {
    Action.RECORD_BRIEF: Rule(
        step=StepType.BRIEF_RECEIVED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({None}),
        campaign_statuses=frozenset({CampaignStatus.DRAFT}),
        effects=((StepType.BRIEF_RECEIVED, StepStatus.DONE),),
    ),
    Action.PROPOSE_PROFILES: Rule(
        step=StepType.PROFILES_PROPOSED,
        roles=ADMIN_ONLY,
        accepts=frozenset({None, StepStatus.DONE, StepStatus.REJECTED}),
        campaign_statuses=frozenset({CampaignStatus.DRAFT, CampaignStatus.OPEN}),
        effects=((StepType.PROFILES_PROPOSED, StepStatus.DONE),),
    ),
    Action.REJECT_PROFILES: Rule(
        step=StepType.PROFILES_PROPOSED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({StepStatus.DONE}),
        campaign_statuses=frozenset({CampaignStatus.OPEN}),
        effects=((StepType.PROFILES_PROPOSED, StepStatus.REJECTED),),
    ),
    Action.SELECT_CREATOR: Rule(
        step=StepType.CREATOR_SELECTED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({None}),
        campaign_statuses=frozenset({CampaignStatus.OPEN}),
        effects=((StepType.CREATOR_SELECTED, StepStatus.DONE),),
    ),
    Action.SUBMIT_SCRIPT: Rule(
        step=StepType.SCRIPT_SUBMITTED,
        roles=CREATOR_OR_ADMIN,
        accepts=frozenset({None, StepStatus.SUBMITTED, StepStatus.REVISION_REQUESTED}),
        campaign_statuses=_IN_PROGRESS,
        effects=((StepType.SCRIPT_SUBMITTED, StepStatus.SUBMITTED),),
    ),
    Action.APPROVE_SCRIPT: Rule(
        step=StepType.SCRIPT_SUBMITTED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({StepStatus.SUBMITTED}),
        campaign_statuses=_IN_PROGRESS,
        effects=(
            (StepType.SCRIPT_SUBMITTED, StepStatus.DONE),
            (StepType.SCRIPT_APPROVED, StepStatus.DONE),
        ),
    ),
    Action.REQUEST_SCRIPT_REVISION: Rule(
        step=StepType.SCRIPT_SUBMITTED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({StepStatus.SUBMITTED}),
        campaign_statuses=_IN_PROGRESS,
        effects=((StepType.SCRIPT_SUBMITTED, StepStatus.REVISION_REQUESTED),),
    ),
    Action.SUBMIT_VIDEO: Rule(
        step=StepType.VIDEO_SUBMITTED,
        roles=CREATOR_OR_ADMIN,
        accepts=frozenset({None, StepStatus.REVISION_REQUESTED}),
        campaign_statuses=_IN_PROGRESS,
        effects=((StepType.VIDEO_SUBMITTED, StepStatus.SUBMITTED),),
    ),
    Action.APPROVE_VIDEO: Rule(
        step=StepType.VIDEO_SUBMITTED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({StepStatus.SUBMITTED}),
        campaign_statuses=_IN_PROGRESS,
        effects=(
            (StepType.VIDEO_SUBMITTED, StepStatus.DONE),
            (StepType.VIDEO_APPROVED, StepStatus.DONE),
        ),
    ),
    Action.REQUEST_VIDEO_REVISION: Rule(
        step=StepType.VIDEO_SUBMITTED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({StepStatus.SUBMITTED}),
        campaign_statuses=_IN_PROGRESS,
        effects=((StepType.VIDEO_SUBMITTED, StepStatus.REVISION_REQUESTED),),
    ),
    Action.REJECT_VIDEO: Rule(
        step=StepType.VIDEO_SUBMITTED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({StepStatus.SUBMITTED}),
        campaign_statuses=_IN_PROGRESS,
        effects=(
            (StepType.VIDEO_SUBMITTED, StepStatus.REJECTED),
            (StepType.VIDEO_APPROVED, StepStatus.REJECTED),
        ),
    ),
    Action.COMPLETE_MISSION: Rule(
        step=StepType.MISSION_COMPLETED,
        roles=BRAND_OR_ADMIN,
        accepts=frozenset({None}),
        campaign_statuses=_IN_PROGRESS,
        effects=((StepType.MISSION_COMPLETED, StepStatus.DONE),),
    ),
}


def transition(
    states: Mapping[str, str],
    action: Action,
    role: str,
    campaign_status: str,
) -> tuple[Effect, ...]:
    """Validate an action and return the step status changes it causes."""
    rule = RULES[action]

    if role not in rule.roles:
        raise TransitionError(f"Role '{role}' cannot {action}", ErrorCode.FORBIDDEN)

    if campaign_status not in rule.campaign_statuses:
        raise TransitionError(f"Cannot {action} while campaign is {campaign_status}")

    current = states.get(rule.step)
    if current not in rule.accepts:
        raise TransitionError(f"Cannot {action}: {rule.step} is {current or 'not started'}")

    index = step_index(rule.step)
    if index > 0:
        predecessor = STEP_ORDER[index - 1]
        if states.get(predecessor) != StepStatus.DONE:
            raise TransitionError(f"Cannot {action} before {predecessor} is done")

    for later in STEP_ORDER[index + 1 :]:
        if states.get(later) == StepStatus.DONE:
            raise TransitionError(f"Cannot {action}: {later} is already done")

    return rule.effects


def next_campaign_status(current: str, target: str) -> str:
    """Validate a campaign status move; staying in a non-terminal status is allowed."""
    if current == target and current not in TERMINAL_CAMPAIGN_STATUSES:
        return current
    if target not in CAMPAIGN_TRANSITIONS.get(current, frozenset()):
        raise TransitionError(f"Campaign cannot move from {current} to {target}")
    return target


def allowed_actions(states: Mapping[str, str], role: str, campaign_status: str) -> list[Action]:
    """Actions the role could take right now, in workflow order."""
    allowed = []
    for action in RULES:
        try:
            transition(states, action, role, campaign_status)
        except TransitionError:
            continue
        allowed.append(action)
    return allowed
