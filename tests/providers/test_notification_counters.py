"""Tests for the live notification counters."""

import asyncio
import threading
from unittest.mock import patch

from marketplace import notifications
from marketplace.notifications import NotificationCounts
from providers.notifications import NotificationCounterProvider


class TestNotificationCounterProvider:
    def test_mark_all_zeroes_before_remote_call_finishes(self):
        gate = threading.Event()
        observed = []

        def slow_mark_all(_user_id):
            gate.wait(5)
            return True

        async def scenario():
            provider = NotificationCounterProvider("user-1")
            provider.counts = NotificationCounts(total=5, messages=2, applications=2, deliverables=1)
            task = asyncio.create_task(provider.mark_all_as_read())
            await asyncio.sleep(0.05)
            observed.append(provider.counts)
            gate.set()
            await task
            return provider

        with patch("providers.notifications.notifications.mark_all_as_read", side_effect=slow_mark_all):
            provider = asyncio.run(scenario())

        assert observed == [NotificationCounts()]
        assert provider.counts == NotificationCounts()

    def test_mark_all_failure_recounts(self):
        async def scenario():
            provider = NotificationCounterProvider("user-1")
            provider.counts = NotificationCounts(total=3, messages=3)
            await provider.mark_all_as_read()
            return provider

        with (
            patch("providers.notifications.notifications.mark_all_as_read", return_value=False),
            patch(
                "providers.notifications.notifications.get_unread_counts",
                return_value=NotificationCounts(total=3, messages=3),
            ),
        ):
            provider = asyncio.run(scenario())

        assert provider.counts.total == 3

    def test_failed_refresh_keeps_previous_counts(self):
        async def scenario():
            provider = NotificationCounterProvider("user-1")
            provider.counts = NotificationCounts(total=2, applications=2)
            await provider.refresh()
            return provider

        with patch("providers.notifications.notifications.get_unread_counts", return_value=None):
            provider = asyncio.run(scenario())

        assert provider.counts.total == 2

    def test_no_user_means_zero(self):
        async def scenario():
            provider = NotificationCounterProvider()
            await provider.init()
            await provider.close()
            return provider

        assert asyncio.run(scenario()).counts == NotificationCounts()

    def test_insert_event_triggers_recount(self, brand):
        async def scenario():
            provider = NotificationCounterProvider(brand.id)
            await provider.init()
            assert provider.counts.total == 0
            notifications.create_notification(
                notifications.message_received(brand.id, "Noé", "Salut", "camp-1")
            )
            await provider.wait_idle()
            counts = provider.counts
            await provider.close()
            return counts

        counts = asyncio.run(scenario())

        assert counts == NotificationCounts(total=1, messages=1)

    def test_insert_from_another_thread(self, brand):
        async def scenario():
            provider = NotificationCounterProvider(brand.id)
            await provider.init()
            await asyncio.to_thread(
                notifications.create_notification,
                notifications.new_application(brand.id, "Noé", "Spot", "app-1"),
            )
            # let the marshalled callback schedule its refresh
            await asyncio.sleep(0.05)
            await provider.wait_idle()
            counts = provider.counts
            await provider.close()
            return counts

        counts = asyncio.run(scenario())

        assert counts.applications == 1
