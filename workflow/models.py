"""Mission workflow vocabulary."""

from enum import StrEnum


class StepType(StrEnum):
    BRIEF_RECEIVED = "brief_received"
    PROFILES_PROPOSED = "profiles_proposed"
    CREATOR_SELECTED = "creator_selected"
    SCRIPT_SUBMITTED = "script_submitted"
    SCRIPT_APPROVED = "script_approved"
    VIDEO_SUBMITTED = "video_submitted"
    VIDEO_APPROVED = "video_approved"
    MISSION_COMPLETED = "mission_completed"


STEP_ORDER: tuple[StepType, ...] = tuple(StepType)


class StepStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    REVISION_REQUESTED = "revision_requested"
    DONE = "done"
    REJECTED = "rejected"


OPEN_STATUSES = frozenset(
    {
        StepStatus.PENDING,
        StepStatus.IN_PROGRESS,
        StepStatus.SUBMITTED,
        StepStatus.REVISION_REQUESTED,
    }
)


class Action(StrEnum):
    RECORD_BRIEF = "record_brief"
    PROPOSE_PROFILES = "propose_profiles"
    REJECT_PROFILES = "reject_profiles"
    SELECT_CREATOR = "select_creator"
    SUBMIT_SCRIPT = "submit_script"
    APPROVE_SCRIPT = "approve_script"
    REQUEST_SCRIPT_REVISION = "request_script_revision"
    SUBMIT_VIDEO = "submit_video"
    APPROVE_VIDEO = "approve_video"
    REQUEST_VIDEO_REVISION = "request_video_revision"
    REJECT_VIDEO = "reject_video"
    COMPLETE_MISSION = "complete_mission"


def step_index(step: StepType) -> int:
    return STEP_ORDER.index(step)


def is_open(status: str | None) -> bool:
    return status in OPEN_STATUSES
