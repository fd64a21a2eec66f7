"""Tests for SLA escalation dispatch and the notification bell."""

from datetime import timedelta

import pytest

from supportdesk.core import ResourceNotFoundException
from supportdesk.notifications.domain import Notification

from conftest import T0


async def sla_notifications(notification_service, user_id="agent-1"):
    notifications = await notification_service.get_notifications(user_id, limit=100)
    return [n for n in notifications if n.type in ("sla_warning", "urgent_ticket")]


class TestSLAEscalation:
    async def test_urgent_ticket_scenario(self, lifecycle, dispatcher, notification_service, conversation, clock):
        await lifecycle.create_ticket(conversation, "Withdrawal stuck", priority="urgent")

        result = await dispatcher.sweep(T0 + timedelta(minutes=47))
        assert result.evaluated == 1
        assert result.notifications == []

        result = await dispatcher.sweep(T0 + timedelta(minutes=48))
        assert [n.type for n in result.notifications] == ["sla_warning"]

        result = await dispatcher.sweep(T0 + timedelta(minutes=50))
        assert result.notifications == []

        result = await dispatcher.sweep(T0 + timedelta(minutes=61))
        assert [n.type for n in result.notifications] == ["urgent_ticket"]

        result = await dispatcher.sweep(T0 + timedelta(minutes=65))
        assert result.notifications == []

        stored = await sla_notifications(notification_service)
        assert sorted(n.type for n in stored) == ["sla_warning", "urgent_ticket"]

    async def test_unassigned_ticket_notifies_team(self, lifecycle, dispatcher, notification_service, conversation):
        ticket = await lifecycle.create_ticket(conversation, "Subject", priority="urgent")

        created = await dispatcher.evaluate_ticket(ticket, T0 + timedelta(minutes=50))

        assert len(created) == 1
        assert created[0].is_team_wide
        for user in ("agent-1", "agent-2"):
            assert len(await sla_notifications(notification_service, user)) == 1

    async def test_assigned_ticket_notifies_assignee_only(
        self, lifecycle, dispatcher, notification_service, conversation, clock
    ):
        ticket = await lifecycle.create_ticket(conversation, "Subject", priority="urgent")
        clock.advance(minutes=1)
        ticket = await lifecycle.assign(ticket.id, "agent-7", "lead-1")

        await dispatcher.evaluate_ticket(ticket, T0 + timedelta(minutes=50))

        assert len(await sla_notifications(notification_service, "agent-7")) == 1
        assert await sla_notifications(notification_service, "agent-2") == []

    async def test_direct_breach_emits_only_urgent(self, lifecycle, dispatcher, conversation):
        ticket = await lifecycle.create_ticket(conversation, "Subject", priority="urgent")

        created = await dispatcher.evaluate_ticket(ticket, T0 + timedelta(minutes=61))

        assert [n.type for n in created] == ["urgent_ticket"]

    async def test_deescalation_rearms_warning(
        self, lifecycle, dispatcher, config_provider, conversation
    ):
        from supportdesk.tickets.domain import SLAConfig

        ticket = await lifecycle.create_ticket(conversation, "Subject", priority="urgent")
        at = T0 + timedelta(minutes=40)

        # 40 min in: at risk with a 50% threshold, on track with 20%
        config_provider._config = SLAConfig(escalation_thresholds={"warning": 50})
        assert [n.type for n in await dispatcher.evaluate_ticket(ticket, at)] == ["sla_warning"]

        config_provider._config = SLAConfig()
        assert await dispatcher.evaluate_ticket(ticket, at) == []

        config_provider._config = SLAConfig(escalation_thresholds={"warning": 50})
        assert [n.type for n in await dispatcher.evaluate_ticket(ticket, at)] == ["sla_warning"]

    async def test_completed_metric_stops_escalating(self, lifecycle, dispatcher, conversation, clock):
        ticket = await lifecycle.create_ticket(conversation, "Subject", priority="urgent")
        clock.advance(minutes=5)
        ticket = await lifecycle.record_first_response(ticket.id, "agent-1")

        created = await dispatcher.evaluate_ticket(ticket, T0 + timedelta(minutes=61))

        assert created == []

    async def test_closed_tickets_are_not_swept(self, lifecycle, dispatcher, conversation, clock):
        ticket = await lifecycle.create_ticket(conversation, "Subject", priority="urgent")
        for status in ("in_progress", "resolved"):
            clock.advance(minutes=1)
            await lifecycle.transition(ticket.id, status, "agent-1")

        result = await dispatcher.sweep(T0 + timedelta(hours=5))

        assert result.evaluated == 0
        assert result.notifications == []


class TestNotificationService:
    async def _seed(self, notification_repo):
        own = await notification_repo.create(Notification(
            type="ticket_assigned", title="Assigned", message="m", created_at=T0, user_id="agent-1"
        ))
        team = await notification_repo.create(Notification(
            type="urgent_ticket", title="Breach", message="m",
            created_at=T0 + timedelta(minutes=1), user_id=None
        ))
        other = await notification_repo.create(Notification(
            type="ticket_assigned", title="Assigned", message="m",
            created_at=T0 + timedelta(minutes=2), user_id="agent-2"
        ))
        return own, team, other

    async def test_visible_set_is_own_plus_team(self, notification_repo, notification_service):
        own, team, _ = await self._seed(notification_repo)

        notifications = await notification_service.get_notifications("agent-1")

        assert [n.id for n in notifications] == [team.id, own.id]
        assert await notification_service.get_notification_count("agent-1") == 2

    async def test_mark_read_and_unread_filter(self, notification_repo, notification_service):
        own, team, _ = await self._seed(notification_repo)

        await notification_service.mark_notification_read("agent-1", own.id)

        unread = await notification_service.get_notifications("agent-1", unread_only=True)
        assert [n.id for n in unread] == [team.id]

    async def test_cannot_touch_other_users_notification(self, notification_repo, notification_service):
        _, _, other = await self._seed(notification_repo)

        with pytest.raises(ResourceNotFoundException):
            await notification_service.mark_notification_read("agent-1", other.id)
        with pytest.raises(ResourceNotFoundException):
            await notification_service.delete_notification("agent-1", other.id)

    async def test_mark_all_and_clear(self, notification_repo, notification_service):
        await self._seed(notification_repo)

        assert await notification_service.mark_all_read("agent-1") == 2
        assert await notification_service.get_notification_count("agent-1") == 0
        assert await notification_service.get_notification_count("agent-2") == 1

        assert await notification_service.clear_all("agent-1") == 2
        assert await notification_service.get_notifications("agent-2") != []

    async def test_delete_unknown_id(self, notification_service):
        with pytest.raises(ResourceNotFoundException):
            await notification_service.delete_notification("agent-1", "not-a-uuid")
