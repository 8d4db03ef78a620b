"""Flask JSON API over the marketplace, workflow and media modules."""

import dataclasses
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import Flask, Response, g, request

from core.db import init_db
from core.models import CampaignStatus, UserRole
from core.results import ErrorCode, Result
from core.utils import json_response, to_dict
from marketplace import (
    applications,
    campaigns,
    contracts,
    deliverables,
    messages,
    notifications,
    profiles,
)
from media.handler import handler as export_handler
from providers.auth import AuthClient, session_from_token
from providers.session import redirect_for
from workflow import service as workflow
from workflow.steps import get_mission_steps

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)


def serialize(data: Any) -> Any:
    if data is None:
        return None
    if isinstance(data, list):
        return [serialize(item) for item in data]
    if hasattr(data, "__table__"):
        return to_dict(data, exclude=("hashed_password",))
    if hasattr(data, "to_dict"):
        return data.to_dict()
    if dataclasses.is_dataclass(data):
        return {k: serialize(v) for k, v in dataclasses.asdict(data).items()}
    return data


def result_response(result: Result[Any]) -> Response:
    if result.success:
        return json_response({"data": serialize(result.data)})
    return json_response({"error": result.error_code, "message": result.error}, result.http_status)


def _body() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


def _not_found(message: str) -> Response:
    return json_response({"error": ErrorCode.NOT_FOUND, "message": message}, 404)


def _can_view(campaign_id: str) -> bool:
    return g.auth.role == UserRole.ADMIN or messages.is_participant(g.auth.user_id, campaign_id)


def _owns(campaign_id: str) -> bool:
    if g.auth.role == UserRole.ADMIN:
        return True
    campaign = campaigns.get_campaign_by_id(campaign_id)
    return campaign is not None and campaign.brand_id == g.auth.user_id


def require_role(*roles: str) -> Callable:
    """Bearer-token guard; stores the session on flask.g."""

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            header = request.headers.get("Authorization", "")
            token = header.removeprefix("Bearer ").strip()
            session = session_from_token(token) if token else None
            if session is None:
                return json_response({"error": ErrorCode.NOT_AUTHENTICATED, "message": "Invalid credentials"}, 401)
            if roles and session.role not in roles:
                return json_response({"error": ErrorCode.FORBIDDEN, "message": "Insufficient permissions"}, 403)
            g.auth = session
            return view(*args, **kwargs)

        return wrapper

    return decorator


@app.before_request
def ensure_db() -> None:
    if not getattr(app, "_db_initialized", False):
        init_db()
        app._db_initialized = True  # type: ignore[attr-defined]


# Auth


@app.route("/auth/sign-up", methods=["POST"])
def sign_up_endpoint() -> Response:
    data = _body()
    result = AuthClient().sign_up(
        data.get("email", ""), data.get("password", ""), data.get("full_name", ""), data.get("role", "")
    )
    if not result.success:
        return result_response(result)
    created = profiles.create_user_profile(
        result.data.user_id, data["full_name"], data["role"], data.get("profile")
    )
    if not created.success:
        return result_response(created)
    return json_response(
        {
            "access_token": result.data.access_token,
            "profile": created.data.to_dict(),
            "redirect": redirect_for(data["role"]),
        },
        201,
    )


@app.route("/auth/sign-in", methods=["POST"])
def sign_in_endpoint() -> Response:
    data = _body()
    result = AuthClient().sign_in_with_password(data.get("email", ""), data.get("password", ""))
    if not result.success:
        return result_response(result)
    profile = profiles.get_profile_by_user_id(result.data.user_id)
    if profile is None:
        return json_response(
            {"error": ErrorCode.NOT_FOUND, "message": "User profile not found. Please recreate your account."},
            404,
        )
    return json_response(
        {
            "access_token": result.data.access_token,
            "profile": profile.to_dict(),
            "redirect": redirect_for(profile.role, request.args.get("redirect")),
        }
    )


@app.route("/me", methods=["GET"])
@require_role()
def me_endpoint() -> Response:
    profile = profiles.get_profile_by_user_id(g.auth.user_id)
    if profile is None:
        return json_response({"error": ErrorCode.NOT_FOUND, "message": "Profile not found"}, 404)
    return json_response(profile.to_dict())


@app.route("/me", methods=["PATCH"])
@require_role()
def update_me_endpoint() -> Response:
    data = _body()
    return result_response(
        profiles.update_user_profile(g.auth.user_id, data.get("user"), data.get("profile"))
    )


@app.route("/creators", methods=["GET"])
@require_role(UserRole.BRAND, UserRole.ADMIN)
def list_creators_endpoint() -> Response:
    available = request.args.get("available")
    return json_response(
        profiles.get_creators(
            canton=request.args.get("canton"),
            is_available=None if available is None else available == "true",
            specialty=request.args.get("specialty"),
            limit=request.args.get("limit", type=int),
            offset=request.args.get("offset", 0, type=int),
        )
    )


# Campaigns


@app.route("/campaigns", methods=["GET"])
@require_role()
def list_campaigns_endpoint() -> Response:
    if g.auth.role == UserRole.BRAND:
        rows = campaigns.get_my_campaigns(g.auth.user_id, request.args.getlist("status") or None)
    else:
        rows = campaigns.get_open_campaigns(
            script_type=request.args.get("script_type"),
            min_budget=request.args.get("min_budget"),
            max_budget=request.args.get("max_budget"),
            limit=request.args.get("limit", type=int),
            offset=request.args.get("offset", 0, type=int),
        )
    return json_response(serialize(rows))


@app.route("/campaigns", methods=["POST"])
@require_role(UserRole.BRAND)
def create_campaign_endpoint() -> Response:
    result = campaigns.create_campaign(g.auth.user_id, _body())
    if result.success:
        return json_response({"data": serialize(result.data)}, 201)
    return result_response(result)


@app.route("/campaigns/<campaign_id>", methods=["GET"])
@require_role()
def get_campaign_endpoint(campaign_id: str) -> Response:
    campaign = campaigns.get_campaign_by_id(campaign_id)
    if not campaign or (campaign.status != CampaignStatus.OPEN and not _can_view(campaign_id)):
        return _not_found("Campaign not found")
    return json_response(
        {
            **to_dict(campaign),
            "steps": serialize(get_mission_steps(campaign_id)),
            "allowed_actions": workflow.get_allowed_actions(g.auth.user_id, campaign_id),
        }
    )


@app.route("/campaigns/<campaign_id>", methods=["PATCH"])
@require_role(UserRole.BRAND, UserRole.ADMIN)
def update_campaign_endpoint(campaign_id: str) -> Response:
    campaign = campaigns.get_campaign_by_id(campaign_id)
    if campaign and g.auth.role == UserRole.BRAND and campaign.brand_id != g.auth.user_id:
        return json_response({"error": ErrorCode.FORBIDDEN, "message": "Not your campaign"}, 403)
    return result_response(campaigns.update_campaign(campaign_id, _body()))


@app.route("/campaigns/<campaign_id>", methods=["DELETE"])
@require_role(UserRole.BRAND, UserRole.ADMIN)
def delete_campaign_endpoint(campaign_id: str) -> Response:
    campaign = campaigns.get_campaign_by_id(campaign_id)
    if campaign and g.auth.role == UserRole.BRAND and campaign.brand_id != g.auth.user_id:
        return json_response({"error": ErrorCode.FORBIDDEN, "message": "Not your campaign"}, 403)
    return result_response(campaigns.delete_campaign(campaign_id))


# Applications


@app.route("/campaigns/<campaign_id>/applications", methods=["POST"])
@require_role(UserRole.CREATOR)
def apply_endpoint(campaign_id: str) -> Response:
    data = _body()
    result = applications.apply_to_campaign(
        g.auth.user_id, campaign_id, data.get("pitch_message"), data.get("proposed_rate_chf")
    )
    if result.success:
        return json_response({"data": serialize(result.data)}, 201)
    return result_response(result)


@app.route("/campaigns/<campaign_id>/applications", methods=["GET"])
@require_role(UserRole.BRAND, UserRole.ADMIN)
def list_applications_endpoint(campaign_id: str) -> Response:
    if not _owns(campaign_id):
        return _not_found("Campaign not found")
    return json_response(
        serialize(applications.get_campaign_applications(campaign_id, request.args.get("status")))
    )


@app.route("/applications", methods=["GET"])
@require_role(UserRole.CREATOR)
def my_applications_endpoint() -> Response:
    return json_response(
        serialize(applications.get_my_applications(g.auth.user_id, request.args.get("status")))
    )


@app.route("/applications/<application_id>/withdraw", methods=["POST"])
@require_role(UserRole.CREATOR)
def withdraw_endpoint(application_id: str) -> Response:
    return result_response(applications.withdraw_application(g.auth.user_id, application_id))


# Messages


@app.route("/conversations", methods=["GET"])
@require_role()
def conversations_endpoint() -> Response:
    return json_response(serialize(messages.get_conversations(g.auth.user_id)))


@app.route("/campaigns/<campaign_id>/messages", methods=["GET"])
@require_role()
def list_messages_endpoint(campaign_id: str) -> Response:
    if not _can_view(campaign_id):
        return _not_found("Campaign not found")
    rows = messages.get_messages(campaign_id)
    messages.mark_messages_as_read(g.auth.user_id, campaign_id)
    return json_response(serialize(rows))


@app.route("/campaigns/<campaign_id>/messages", methods=["POST"])
@require_role()
def send_message_endpoint(campaign_id: str) -> Response:
    result = messages.send_message(g.auth.user_id, campaign_id, _body().get("content"))
    if result.success:
        return json_response({"data": serialize(result.data)}, 201)
    return result_response(result)


# Notifications


@app.route("/notifications", methods=["GET"])
@require_role()
def list_notifications_endpoint() -> Response:
    limit = request.args.get("limit", 20, type=int)
    return json_response(serialize(notifications.get_notifications(g.auth.user_id, limit)))


@app.route("/notifications/counts", methods=["GET"])
@require_role()
def notification_counts_endpoint() -> Response:
    counts = notifications.get_unread_counts(g.auth.user_id)
    if counts is None:
        return json_response({"error": ErrorCode.DB_ERROR, "message": "Counts unavailable"}, 503)
    return json_response(counts.to_dict())


@app.route("/notifications/<notification_id>/read", methods=["POST"])
@require_role()
def read_notification_endpoint(notification_id: str) -> Response:
    if not notifications.mark_as_read(g.auth.user_id, notification_id):
        return _not_found("Notification not found")
    return json_response({"success": True})


@app.route("/notifications/read-all", methods=["POST"])
@require_role()
def read_all_endpoint() -> Response:
    return json_response({"success": notifications.mark_all_as_read(g.auth.user_id)})


# Workflow

WORKFLOW_ACTIONS: dict[str, Callable[[str, str, dict[str, Any]], Result[Any]]] = {
    "propose_profiles": lambda u, c, d: workflow.propose_creators(u, c, d.get("creator_ids") or []),
    "reject_profiles": lambda u, c, d: workflow.reject_profiles(u, c, d.get("reason")),
    "select_creator": lambda u, c, d: workflow.select_creator(
        u, c, d.get("creator_id", ""), request.remote_addr
    ),
    "submit_script": lambda u, c, d: workflow.submit_script(u, c, d.get("script", "")),
    "approve_script": lambda u, c, d: workflow.approve_script(u, c),
    "request_script_revision": lambda u, c, d: workflow.request_script_revision(u, c, d.get("notes", "")),
    "submit_video": lambda u, c, d: workflow.submit_video(
        u, c, d.get("video_url", ""), d.get("video_duration_seconds"), d.get("thumbnail_url")
    ),
    "approve_video": lambda u, c, d: workflow.approve_video(u, c),
    "request_video_revision": lambda u, c, d: workflow.request_video_revision(u, c, d.get("notes", "")),
    "reject_video": lambda u, c, d: workflow.reject_video(u, c, d.get("reason")),
    "complete_mission": lambda u, c, d: workflow.complete_mission(u, c),
    "cancel": lambda u, c, d: workflow.cancel_campaign(u, c),
}


@app.route("/campaigns/<campaign_id>/workflow/<action>", methods=["POST"])
@require_role()
def workflow_endpoint(campaign_id: str, action: str) -> Response:
    run_action = WORKFLOW_ACTIONS.get(action)
    if run_action is None:
        return json_response({"error": ErrorCode.NOT_FOUND, "message": f"Unknown action '{action}'"}, 404)
    return result_response(run_action(g.auth.user_id, campaign_id, _body()))


@app.route("/campaigns/<campaign_id>/steps", methods=["GET"])
@require_role()
def steps_endpoint(campaign_id: str) -> Response:
    if not _can_view(campaign_id):
        return _not_found("Campaign not found")
    return json_response(serialize(get_mission_steps(campaign_id)))


# Deliverables and contracts


@app.route("/deliverables/<deliverable_id>/url", methods=["GET"])
@require_role()
def deliverable_url_endpoint(deliverable_id: str) -> Response:
    deliverable = deliverables.get_deliverable(deliverable_id)
    if deliverable is None or (
        deliverable.creator_id != g.auth.user_id and not _owns(deliverable.campaign_id)
    ):
        return _not_found("Deliverable not found")
    url = deliverables.get_video_signed_url(deliverable.video_url)
    if url is None:
        return json_response({"error": ErrorCode.STORAGE_ERROR, "message": "Could not sign URL"}, 502)
    return json_response({"url": url, "is_watermarked": deliverable.is_watermarked})


@app.route("/contracts/<contract_id>", methods=["GET"])
@require_role()
def contract_endpoint(contract_id: str) -> Response:
    contract = contracts.get_contract(contract_id)
    if contract is None or g.auth.user_id not in (contract.brand_id, contract.creator_id):
        if g.auth.role != UserRole.ADMIN:
            return json_response({"error": ErrorCode.NOT_FOUND, "message": "Contract not found"}, 404)
    text = contracts.get_contract_text(contract_id)
    if text is None:
        return json_response({"error": ErrorCode.NOT_FOUND, "message": "Contract not found"}, 404)
    return json_response({**to_dict(contract), "text": text})


@app.route("/contracts/<contract_id>/sign", methods=["POST"])
@require_role(UserRole.CREATOR)
def sign_contract_endpoint(contract_id: str) -> Response:
    return result_response(
        contracts.sign_contract_as_creator(g.auth.user_id, contract_id, request.remote_addr)
    )


@app.route("/media/export", methods=["POST"])
@require_role(UserRole.CREATOR, UserRole.ADMIN)
def export_endpoint() -> Response:
    response = export_handler({**_body(), "actor_id": g.auth.user_id})
    return Response(response["body"], status=response["statusCode"], mimetype="application/json")


@app.route("/health", methods=["GET"])
def health() -> Response:
    return json_response({"status": "ok"})


def run() -> None:
    app.run(host="0.0.0.0", port=5000, debug=True)


if __name__ == "__main__":
    run()
