"""Tests for the Flask API."""

import pytest

from core.api import app
from core.models import UserRole
from marketplace import deliverables, notifications
from providers.auth import AuthClient


@pytest.fixture
def client(db):
    app.config["TESTING"] = True
    app._db_initialized = False
    with app.test_client() as client:
        yield client


def _auth_header(email: str, password: str = "secret-pass") -> dict:
    session = AuthClient().sign_in_with_password(email, password).data
    return {"Authorization": f"Bearer {session.access_token}"}


def _sign_up(client, email: str, role: str, profile: dict | None = None):
    return client.post(
        "/auth/sign-up",
        json={
            "email": email,
            "password": "secret-pass",
            "full_name": "Camille Test",
            "role": role,
            "profile": profile or {},
        },
    )


class TestApi:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json() == {"status": "ok"}

    def test_sign_up_redirects_to_role_home(self, client):
        response = _sign_up(client, "brand@example.ch", UserRole.BRAND, {"company_name": "Fromagerie SA"})

        assert response.status_code == 201
        body = response.get_json()
        assert body["redirect"] == "/brand"
        assert body["profile"]["brandProfile"]["company_name"] == "Fromagerie SA"
        assert "hashed_password" not in body["profile"]["user"]

    def test_sign_in_honours_redirect(self, client):
        _sign_up(client, "creator@example.ch", UserRole.CREATOR)

        response = client.post(
            "/auth/sign-in?redirect=/creator/missions",
            json={"email": "creator@example.ch", "password": "secret-pass"},
        )

        assert response.status_code == 200
        assert response.get_json()["redirect"] == "/creator/missions"

    def test_sign_in_bad_password(self, client):
        _sign_up(client, "creator@example.ch", UserRole.CREATOR)

        response = client.post(
            "/auth/sign-in", json={"email": "creator@example.ch", "password": "wrong-pass"}
        )

        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid login credentials"

    def test_requires_token(self, client):
        response = client.get("/campaigns")

        assert response.status_code == 401

    def test_creator_cannot_create_campaign(self, client):
        _sign_up(client, "creator@example.ch", UserRole.CREATOR)

        response = client.post(
            "/campaigns",
            json={"title": "Spot", "budget_chf": 500},
            headers=_auth_header("creator@example.ch"),
        )

        assert response.status_code == 403

    def test_brand_creates_and_lists_campaign(self, client):
        _sign_up(client, "brand@example.ch", UserRole.BRAND, {"company_name": "Fromagerie SA"})
        headers = _auth_header("brand@example.ch")

        created = client.post(
            "/campaigns", json={"title": "Spot raclette", "budget_chf": 500}, headers=headers
        )
        listed = client.get("/campaigns", headers=headers)

        assert created.status_code == 201
        assert created.get_json()["data"]["status"] == "draft"
        assert [c["title"] for c in listed.get_json()] == ["Spot raclette"]

    def test_invalid_budget_is_400(self, client):
        _sign_up(client, "brand@example.ch", UserRole.BRAND, {"company_name": "Fromagerie SA"})

        response = client.post(
            "/campaigns",
            json={"title": "Spot", "budget_chf": 0},
            headers=_auth_header("brand@example.ch"),
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "VALIDATION_ERROR"

    def test_unknown_workflow_action(self, client):
        _sign_up(client, "brand@example.ch", UserRole.BRAND, {"company_name": "Fromagerie SA"})

        response = client.post(
            "/campaigns/abc/workflow/teleport", headers=_auth_header("brand@example.ch")
        )

        assert response.status_code == 404


class TestRowAccess:
    @pytest.fixture
    def two_brands(self, client):
        owner = _sign_up(client, "owner@example.ch", UserRole.BRAND, {"company_name": "Chocolats SA"})
        _sign_up(client, "rival@example.ch", UserRole.BRAND, {"company_name": "Cacao Sàrl"})
        owner_headers = _auth_header("owner@example.ch")
        created = client.post(
            "/campaigns", json={"title": "Lancement praliné", "budget_chf": 800}, headers=owner_headers
        )
        client.post(
            f"/campaigns/{created.get_json()['data']['id']}/messages",
            json={"content": "brief confidentiel"},
            headers=owner_headers,
        )
        return {
            "owner_id": owner.get_json()["profile"]["user"]["id"],
            "campaign_id": created.get_json()["data"]["id"],
            "owner": owner_headers,
            "rival": _auth_header("rival@example.ch"),
        }

    def test_other_brand_cannot_read_messages(self, client, two_brands):
        url = f"/campaigns/{two_brands['campaign_id']}/messages"

        denied = client.get(url, headers=two_brands["rival"])
        allowed = client.get(url, headers=two_brands["owner"])

        assert denied.status_code == 404
        assert [m["content"] for m in allowed.get_json()] == ["brief confidentiel"]

    def test_other_brand_cannot_list_applications(self, client, two_brands):
        url = f"/campaigns/{two_brands['campaign_id']}/applications"

        assert client.get(url, headers=two_brands["rival"]).status_code == 404
        assert client.get(url, headers=two_brands["owner"]).status_code == 200

    def test_other_brand_cannot_see_draft_or_steps(self, client, two_brands):
        campaign_id = two_brands["campaign_id"]

        assert client.get(f"/campaigns/{campaign_id}", headers=two_brands["rival"]).status_code == 404
        assert client.get(f"/campaigns/{campaign_id}/steps", headers=two_brands["rival"]).status_code == 404
        assert client.get(f"/campaigns/{campaign_id}", headers=two_brands["owner"]).status_code == 200

    def test_other_brand_cannot_mark_notification_read(self, client, two_brands):
        owner_id = two_brands["owner_id"]
        notifications.create_notification(
            notifications.new_application(owner_id, "Noé", "Lancement praliné", "app-1")
        )
        notification_id = notifications.get_notifications(owner_id)[0].id

        response = client.post(f"/notifications/{notification_id}/read", headers=two_brands["rival"])

        assert response.status_code == 404
        assert notifications.get_unread_counts(owner_id).total == 1

        response = client.post(f"/notifications/{notification_id}/read", headers=two_brands["owner"])

        assert response.status_code == 200
        assert notifications.get_unread_counts(owner_id).total == 0

    def test_deliverable_url_limited_to_brand_and_creator(self, client, two_brands):
        creator = _sign_up(client, "creator@example.ch", UserRole.CREATOR)
        deliverable = deliverables.create_deliverable(
            two_brands["campaign_id"],
            creator.get_json()["profile"]["user"]["id"],
            "videos/praline/v1.mp4",
        ).data
        url = f"/deliverables/{deliverable.id}/url"

        assert client.get(url, headers=two_brands["rival"]).status_code == 404
        assert client.get(url, headers=two_brands["owner"]).status_code == 200
        assert client.get(url, headers=_auth_header("creator@example.ch")).status_code == 200
