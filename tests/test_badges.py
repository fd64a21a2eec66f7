"""Tests for badge counting and increase alerts."""

from datetime import timedelta

from supportdesk.notifications.application import BadgeAggregator
from supportdesk.notifications.domain import BadgeCounts

from conftest import T0


class TestBadgeAggregator:
    def test_first_observation_sets_baseline(self, clock):
        aggregator = BadgeAggregator(clock=clock)

        assert aggregator.observe(BadgeCounts(3, 2)) == []
        assert aggregator.current == BadgeCounts(3, 2)
        assert aggregator.polled_at == T0
        assert aggregator.last_sequence == 0

    def test_one_alert_per_strict_increase(self, clock):
        aggregator = BadgeAggregator(clock=clock)
        aggregator.observe(BadgeCounts(1, 1))

        clock.advance(seconds=15)
        alerts = aggregator.observe(BadgeCounts(2, 1))
        assert [(a.badge, a.previous, a.current) for a in alerts] == [("unread_conversations", 1, 2)]

        clock.advance(seconds=15)
        assert aggregator.observe(BadgeCounts(2, 1)) == []

        clock.advance(seconds=15)
        assert aggregator.observe(BadgeCounts(0, 0)) == []

        clock.advance(seconds=15)
        alerts = aggregator.observe(BadgeCounts(1, 3))
        assert [a.badge for a in alerts] == ["unread_conversations", "urgent_or_breached_tickets"]
        assert [a.sequence for a in alerts] == [2, 3]

    def test_alerts_after_sequence(self, clock):
        aggregator = BadgeAggregator(clock=clock)
        aggregator.observe(BadgeCounts(0, 0))
        for n in range(1, 4):
            aggregator.observe(BadgeCounts(n, 0))

        assert [a.sequence for a in aggregator.alerts_after(0)] == [1, 2, 3]
        assert [a.sequence for a in aggregator.alerts_after(2)] == [3]
        assert aggregator.alerts_after(3) == []

    def test_history_is_bounded(self, clock):
        aggregator = BadgeAggregator(clock=clock, history=2)
        aggregator.observe(BadgeCounts(0, 0))
        for n in range(1, 5):
            aggregator.observe(BadgeCounts(n, 0))

        assert [a.sequence for a in aggregator.alerts_after(0)] == [3, 4]

    def test_increase_is_logged(self, clock, caplog):
        aggregator = BadgeAggregator(clock=clock)
        aggregator.observe(BadgeCounts(0, 0))

        with caplog.at_level("INFO", logger="supportdesk.notifications.application.services"):
            aggregator.observe(BadgeCounts(0, 2))

        records = [r for r in caplog.records if r.getMessage() == "Badge count increased"]
        assert len(records) == 1
        assert records[0].badge == "urgent_or_breached_tickets"
        assert records[0].current == 2


class TestBadgeCounter:
    async def test_counts_unread_and_urgent_or_breached(
        self, lifecycle, badge_counter, add_conversation, clock
    ):
        await add_conversation("conv-1", unread_count=2)
        await add_conversation("conv-2", unread_count=0)
        await add_conversation("conv-3", unread_count=1)

        await lifecycle.create_ticket("conv-1", "Urgent one", priority="urgent")
        low = await lifecycle.create_ticket("conv-2", "Low one", priority="low")
        await lifecycle.create_ticket("conv-3", "Medium one", priority="medium")

        counts = await badge_counter.counts()
        assert counts == BadgeCounts(unread_conversations=2, urgent_or_breached_tickets=1)

        # Low first response breaches after 60 minutes
        clock.set(T0 + timedelta(minutes=61))
        counts = await badge_counter.counts()
        assert counts.urgent_or_breached_tickets == 3

        await lifecycle.record_first_response(low.id, "agent-1")
        for status in ("in_progress", "resolved"):
            await lifecycle.transition(low.id, status, "agent-1")

        counts = await badge_counter.counts()
        assert counts.urgent_or_breached_tickets == 2

    async def test_poll_through_aggregator(self, badge_counter, inbox, add_conversation, clock):
        aggregator = BadgeAggregator(clock=clock)
        await add_conversation("conv-1")

        assert await aggregator.poll(badge_counter) == []

        await inbox.record_inbound_message("conv-1", clock())
        alerts = await aggregator.poll(badge_counter)

        assert [a.badge for a in alerts] == ["unread_conversations"]

    async def test_marking_read_clears_unread(self, inbox, badge_counter, add_conversation):
        await add_conversation("conv-1", unread_count=4)

        await inbox.mark_read("conv-1")

        assert (await badge_counter.counts()).unread_conversations == 0
