"""Tests for campaign data access."""

from decimal import Decimal

from core.db import get_session
from core.models import Campaign, CampaignStatus
from core.results import ErrorCode
from marketplace import campaigns
from workflow.models import StepStatus, StepType
from workflow.steps import get_mission_steps


class TestCreateCampaign:
    def test_creates_draft_with_brief_step(self, brand):
        result = campaigns.create_campaign(
            brand.id, {"title": "Spot été", "budget_chf": 500, "script_type": "unboxing"}
        )

        assert result.success
        assert result.data.status == CampaignStatus.DRAFT
        assert result.data.budget_chf == Decimal("500")
        steps = get_mission_steps(result.data.id)
        assert [(s.step_type, s.status) for s in steps] == [
            (StepType.BRIEF_RECEIVED, StepStatus.DONE)
        ]

    def test_budget_bounds(self, brand):
        for budget in (0, -5, 100_001, "abc"):
            result = campaigns.create_campaign(brand.id, {"title": "Spot", "budget_chf": budget})
            assert not result.success
            assert result.error_code == ErrorCode.VALIDATION_ERROR

    def test_creator_cannot_create(self, creator):
        result = campaigns.create_campaign(creator.id, {"title": "Spot", "budget_chf": 500})

        assert result.error_code == ErrorCode.FORBIDDEN

    def test_unknown_enum_value(self, brand):
        result = campaigns.create_campaign(
            brand.id, {"title": "Spot", "budget_chf": 500, "format": "3_2"}
        )

        assert result.error_code == ErrorCode.VALIDATION_ERROR


class TestUpdateCampaign:
    def test_updates_editable_fields(self, campaign):
        result = campaigns.update_campaign(
            campaign.id, {"title": "Spot hiver", "deadline": "2026-12-01"}
        )

        assert result.success
        assert result.data.title == "Spot hiver"
        assert result.data.deadline.isoformat() == "2026-12-01"

    def test_status_is_protected(self, campaign):
        result = campaigns.update_campaign(campaign.id, {"status": "completed"})

        assert not result.success
        assert campaigns.get_campaign_by_id(campaign.id).status == CampaignStatus.DRAFT


class TestListCampaigns:
    def test_open_filters(self, brand):
        cheap = campaigns.create_campaign(brand.id, {"title": "A", "budget_chf": 200}).data
        pricey = campaigns.create_campaign(brand.id, {"title": "B", "budget_chf": 2000}).data
        campaigns.create_campaign(brand.id, {"title": "C", "budget_chf": 300})
        with get_session() as session:
            for campaign_id in (cheap.id, pricey.id):
                session.get(Campaign, campaign_id).status = CampaignStatus.OPEN
            session.commit()

        assert {c.title for c in campaigns.get_open_campaigns()} == {"A", "B"}
        assert [c.title for c in campaigns.get_open_campaigns(min_budget=1000)] == ["B"]
        assert [c.title for c in campaigns.get_open_campaigns(max_budget="250")] == ["A"]

    def test_my_campaigns_by_status_list(self, brand, campaign):
        assert len(campaigns.get_my_campaigns(brand.id, ["draft", "open"])) == 1
        assert campaigns.get_my_campaigns(brand.id, "completed") == []

    def test_offset_pages(self, brand):
        for i in range(3):
            campaigns.create_campaign(brand.id, {"title": f"C{i}", "budget_chf": 100})

        assert len(campaigns.get_campaigns(brand_id=brand.id, limit=2, offset=2)) == 1


class TestDeleteCampaign:
    def test_deletes_draft(self, campaign):
        assert campaigns.delete_campaign(campaign.id).success
        assert campaigns.get_campaign_by_id(campaign.id) is None
        assert get_mission_steps(campaign.id) == []

    def test_refuses_open(self, campaign):
        with get_session() as session:
            session.get(Campaign, campaign.id).status = CampaignStatus.OPEN
            session.commit()

        result = campaigns.delete_campaign(campaign.id)

        assert result.error_code == ErrorCode.INVALID_TRANSITION
