"""Tests for workflow transition rules."""

import pytest

from core.models import CampaignStatus, UserRole
from core.results import ErrorCode
from workflow.machine import (
    TransitionError,
    allowed_actions,
    next_campaign_status,
    transition,
)
from workflow.models import Action, StepStatus, StepType

BRIEF_DONE = {StepType.BRIEF_RECEIVED: StepStatus.DONE}
PROPOSED = {**BRIEF_DONE, StepType.PROFILES_PROPOSED: StepStatus.DONE}
SELECTED = {**PROPOSED, StepType.CREATOR_SELECTED: StepStatus.DONE}


class TestTransition:
    def test_record_brief(self):
        effects = transition({}, Action.RECORD_BRIEF, UserRole.BRAND, CampaignStatus.DRAFT)

        assert effects == ((StepType.BRIEF_RECEIVED, StepStatus.DONE),)

    def test_brief_recorded_once(self):
        with pytest.raises(TransitionError):
            transition(BRIEF_DONE, Action.RECORD_BRIEF, UserRole.BRAND, CampaignStatus.DRAFT)

    def test_role_checked_first(self):
        with pytest.raises(TransitionError) as exc:
            transition(BRIEF_DONE, Action.PROPOSE_PROFILES, UserRole.BRAND, CampaignStatus.DRAFT)

        assert exc.value.error_code == ErrorCode.FORBIDDEN

    def test_campaign_status_checked(self):
        with pytest.raises(TransitionError) as exc:
            transition(SELECTED, Action.SUBMIT_SCRIPT, UserRole.CREATOR, CampaignStatus.OPEN)

        assert exc.value.error_code == ErrorCode.INVALID_TRANSITION

    def test_predecessor_must_be_done(self):
        with pytest.raises(TransitionError, match="profiles_proposed"):
            transition(BRIEF_DONE, Action.SELECT_CREATOR, UserRole.BRAND, CampaignStatus.OPEN)

    def test_later_step_done_blocks(self):
        with pytest.raises(TransitionError, match="creator_selected"):
            transition(SELECTED, Action.PROPOSE_PROFILES, UserRole.ADMIN, CampaignStatus.OPEN)

    def test_script_cycle(self):
        states = dict(SELECTED)
        for action, expected in (
            (Action.SUBMIT_SCRIPT, StepStatus.SUBMITTED),
            (Action.REQUEST_SCRIPT_REVISION, StepStatus.REVISION_REQUESTED),
            (Action.SUBMIT_SCRIPT, StepStatus.SUBMITTED),
        ):
            role = UserRole.CREATOR if action == Action.SUBMIT_SCRIPT else UserRole.BRAND
            ((step, status),) = transition(states, action, role, CampaignStatus.IN_PROGRESS)
            states[step] = status
            assert status == expected

        effects = transition(states, Action.APPROVE_SCRIPT, UserRole.BRAND, CampaignStatus.IN_PROGRESS)
        assert dict(effects) == {
            StepType.SCRIPT_SUBMITTED: StepStatus.DONE,
            StepType.SCRIPT_APPROVED: StepStatus.DONE,
        }

    def test_approve_requires_submission(self):
        with pytest.raises(TransitionError):
            transition(SELECTED, Action.APPROVE_SCRIPT, UserRole.BRAND, CampaignStatus.IN_PROGRESS)

    def test_rejected_video_blocks_completion(self):
        states = {
            **SELECTED,
            StepType.SCRIPT_SUBMITTED: StepStatus.DONE,
            StepType.SCRIPT_APPROVED: StepStatus.DONE,
            StepType.VIDEO_SUBMITTED: StepStatus.REJECTED,
            StepType.VIDEO_APPROVED: StepStatus.REJECTED,
        }

        with pytest.raises(TransitionError):
            transition(states, Action.COMPLETE_MISSION, UserRole.BRAND, CampaignStatus.IN_PROGRESS)


class TestCampaignStatus:
    def test_forward_moves(self):
        assert next_campaign_status(CampaignStatus.DRAFT, CampaignStatus.OPEN) == CampaignStatus.OPEN
        assert next_campaign_status(CampaignStatus.OPEN, CampaignStatus.OPEN) == CampaignStatus.OPEN

    def test_terminal_statuses_are_final(self):
        for current in (CampaignStatus.COMPLETED, CampaignStatus.CANCELLED):
            for target in CampaignStatus:
                with pytest.raises(TransitionError):
                    next_campaign_status(current, target)

    def test_no_skipping(self):
        with pytest.raises(TransitionError):
            next_campaign_status(CampaignStatus.DRAFT, CampaignStatus.COMPLETED)


class TestAllowedActions:
    def test_brand_after_proposal(self):
        actions = allowed_actions(PROPOSED, UserRole.BRAND, CampaignStatus.OPEN)

        assert actions == [Action.REJECT_PROFILES, Action.SELECT_CREATOR]

    def test_admin_on_fresh_brief(self):
        assert allowed_actions(BRIEF_DONE, UserRole.ADMIN, CampaignStatus.DRAFT) == [
            Action.PROPOSE_PROFILES
        ]
