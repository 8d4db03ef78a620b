"""Tests for notification counters and rows."""

from core.models import NotificationType
from marketplace import notifications
from marketplace.notifications import NotificationCounts, compute_counts


class TestComputeCounts:
    def test_buckets(self):
        counts = compute_counts(
            [
                NotificationType.MESSAGE_RECEIVED,
                NotificationType.MESSAGE_RECEIVED,
                NotificationType.NEW_APPLICATION,
                NotificationType.APPLICATION_REJECTED,
                NotificationType.DELIVERABLE_SUBMITTED,
                NotificationType.MISSION_COMPLETED,
            ]
        )

        assert counts == NotificationCounts(total=6, messages=2, applications=2, deliverables=1)

    def test_empty(self):
        assert compute_counts([]).to_dict() == {
            "total": 0,
            "messages": 0,
            "applications": 0,
            "deliverables": 0,
        }


class TestNotificationRows:
    def test_create_count_and_mark_read(self, brand, feed):
        received = []
        notifications.subscribe_to_notifications(brand.id, received.append)

        assert notifications.create_notification(
            notifications.new_application(brand.id, "Noé", "Spot été", "app-1")
        )
        assert notifications.create_notification(
            notifications.message_received(brand.id, "Noé", "Salut", "camp-1")
        )

        counts = notifications.get_unread_counts(brand.id)
        assert (counts.total, counts.messages, counts.applications) == (2, 1, 1)
        assert len(received) == 2

        first = notifications.get_notifications(brand.id)[0]
        assert not notifications.mark_as_read("someone-else", first.id)
        assert notifications.get_unread_counts(brand.id).total == 2
        assert notifications.mark_as_read(brand.id, first.id)
        assert notifications.get_unread_counts(brand.id).total == 1

        assert notifications.mark_all_as_read(brand.id)
        assert notifications.get_unread_counts(brand.id).total == 0
