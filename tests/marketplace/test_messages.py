"""Tests for campaign chat."""

from unittest.mock import patch

from sqlalchemy import func, select

from core.db import get_session
from core.models import Campaign, CampaignStatus, Message, NotificationOutbox
from core.results import ErrorCode
from marketplace import applications, messages, notifications


def _apply(creator_id: str, campaign_id: str) -> None:
    with get_session() as session:
        session.get(Campaign, campaign_id).status = CampaignStatus.OPEN
        session.commit()
    applications.apply_to_campaign(creator_id, campaign_id)


def _row_counts() -> tuple[int, int]:
    with get_session() as session:
        return (
            session.scalar(select(func.count(Message.id))),
            session.scalar(select(func.count(NotificationOutbox.id))),
        )


class TestValidation:
    def test_preview_truncates(self):
        assert messages.preview("a" * 50) == "a" * 50
        assert messages.preview("a" * 51) == "a" * 50 + "..."

    def test_empty_rejected_before_any_write(self, brand, creator, campaign):
        _apply(creator.id, campaign.id)
        before = _row_counts()

        result = messages.send_message(brand.id, campaign.id, "   ")

        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert _row_counts() == before

    def test_too_long_rejected_before_any_write(self, brand, creator, campaign):
        _apply(creator.id, campaign.id)
        before = _row_counts()

        result = messages.send_message(brand.id, campaign.id, "x" * 2001)

        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert _row_counts() == before

    def test_outsider_forbidden(self, make_user, campaign):
        outsider = make_user("creator", "Outsider")

        result = messages.send_message(outsider.id, campaign.id, "Hello")

        assert result.error_code == ErrorCode.FORBIDDEN


class TestSendMessage:
    def test_creator_message_notifies_brand(self, brand, creator, campaign, feed):
        _apply(creator.id, campaign.id)
        published = []
        messages.subscribe_to_messages(campaign.id, published.append)

        result = messages.send_message(creator.id, campaign.id, "  Bonjour !  ")

        assert result.success
        assert result.data.content == "Bonjour !"
        assert [p["id"] for p in published] == [result.data.id]
        note = [n for n in notifications.get_notifications(brand.id) if n.type == "message_received"]
        assert note[0].title == "Nouveau message de Noé Creator"
        assert note[0].message == "Bonjour !"

    def test_brand_message_goes_to_accepted_creator(self, brand, creator, campaign):
        _apply(creator.id, campaign.id)
        application = applications.get_campaign_applications(campaign.id)[0]
        applications.update_application_status(application.id, "accepted")

        messages.send_message(brand.id, campaign.id, "Merci pour la candidature " + "!" * 60)

        note = [n for n in notifications.get_notifications(creator.id) if n.type == "message_received"]
        assert note[0].message.endswith("...")
        assert len(note[0].message) == 53

    def test_message_kept_when_notification_delivery_fails(self, brand, creator, campaign):
        _apply(creator.id, campaign.id)

        with patch("marketplace.messages.outbox.deliver", side_effect=lambda ids: 0):
            result = messages.send_message(creator.id, campaign.id, "Hello")

        assert result.success
        assert len(messages.get_messages(campaign.id)) == 1


class TestReading:
    def test_unread_and_mark_read(self, brand, creator, campaign):
        _apply(creator.id, campaign.id)
        messages.send_message(creator.id, campaign.id, "Un")
        messages.send_message(creator.id, campaign.id, "Deux")

        assert messages.get_unread_count(brand.id) == 2
        assert messages.get_unread_count(creator.id) == 0
        summary = messages.get_conversations(brand.id)[0]
        assert summary.unread_count == 2
        assert summary.other_user_name == "Noé Creator"

        assert messages.mark_messages_as_read(brand.id, campaign.id)
        assert messages.get_unread_count(brand.id) == 0

    def test_messages_in_send_order(self, brand, creator, campaign):
        _apply(creator.id, campaign.id)
        for text in ("Un", "Deux", "Trois"):
            messages.send_message(creator.id, campaign.id, text)

        assert [m.content for m in messages.get_messages(campaign.id)] == ["Un", "Deux", "Trois"]

    def test_start_conversation_with_first_message(self, brand, creator, campaign):
        result = messages.start_conversation(brand.id, creator.id, campaign.id, "Intéressé(e) ?")

        assert result.success
        assert messages.get_conversations(creator.id)[0].last_message == "Intéressé(e) ?"
