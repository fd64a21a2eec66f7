"""HTTP tests through the FastAPI app with the session dependency overridden."""

import pytest
from httpx import ASGITransport, AsyncClient

from supportdesk.config import settings
from supportdesk.infrastructure.database import get_session
from supportdesk.main import app
from supportdesk.notifications.application import BadgeAggregator

SUPPORT = {"X-User-Id": "agent-1", "X-User-Role": "support"}
AGENT_7 = {"X-User-Id": "agent-7", "X-User-Role": "support"}
MARKETING = {"X-User-Id": "mkt-1", "X-User-Role": "marketing"}


@pytest.fixture
async def client(session, config_provider, clock):
    app.state.sla_config = config_provider
    app.state.clock = clock
    app.state.badge_aggregator = BadgeAggregator(clock=clock)

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def open_ticket(client, conversation_id="conv-1", priority="urgent"):
    response = await client.post(
        "/tickets",
        json={"conversation_id": conversation_id, "subject": "Withdrawal stuck", "priority": priority},
        headers=SUPPORT,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestAccess:
    async def test_missing_identity_is_forbidden(self, client):
        response = await client.get("/tickets")

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    async def test_role_without_capability_is_forbidden(self, client):
        response = await client.get("/tickets", headers=MARKETING)

        assert response.status_code == 403
        assert response.json()["details"]["capability"] == "tickets"

    async def test_marketing_can_read_notifications(self, client):
        response = await client.get("/notifications", headers=MARKETING)

        assert response.status_code == 200
        assert response.json() == []

    async def test_correlation_id_is_echoed(self, client):
        response = await client.get("/tickets", headers={**SUPPORT, "X-Correlation-ID": "req-42"})

        assert response.headers["X-Correlation-ID"] == "req-42"
        assert "X-Response-Time" in response.headers


class TestTicketRoutes:
    async def test_create_returns_sla_fields(self, client, conversation):
        body = await open_ticket(client)

        assert body["status"] == "new"
        assert body["version"] == 1
        assert body["sla_first_response_status"] == "on_track"
        assert body["sla_overall_status"] == "on_track"
        assert body["sla_first_response_due"].startswith("2024-01-15T11:00:00")

    async def test_create_with_unknown_priority(self, client, conversation):
        response = await client.post(
            "/tickets",
            json={"conversation_id": conversation, "subject": "S", "priority": "critical"},
            headers=SUPPORT,
        )
        assert response.status_code == 422

    async def test_create_on_unknown_conversation(self, client):
        response = await client.post(
            "/tickets", json={"conversation_id": "nope", "subject": "S"}, headers=SUPPORT
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    async def test_invalid_transition_is_conflict(self, client, conversation):
        ticket = await open_ticket(client)

        response = await client.post(
            f"/tickets/{ticket['id']}/transition", json={"status": "closed"}, headers=SUPPORT
        )

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    async def test_stale_version_is_distinct_conflict(self, client, conversation, clock):
        ticket = await open_ticket(client)
        clock.advance(minutes=1)

        first = await client.post(
            f"/tickets/{ticket['id']}/assign",
            json={"user_id": "agent-7", "expected_version": 1},
            headers=SUPPORT,
        )
        second = await client.post(
            f"/tickets/{ticket['id']}/assign",
            json={"user_id": "agent-8", "expected_version": 1},
            headers=SUPPORT,
        )

        assert first.status_code == 200
        assert first.json()["version"] == 2
        assert second.status_code == 409
        assert second.json()["error"] == "concurrent_modification"

    async def test_detail_includes_activity(self, client, conversation, clock):
        ticket = await open_ticket(client)
        clock.advance(minutes=5)
        await client.post(f"/tickets/{ticket['id']}/first-response", headers=SUPPORT)
        clock.advance(minutes=5)
        note = await client.post(
            f"/tickets/{ticket['id']}/notes", json={"body": "Escalated to payments"}, headers=SUPPORT
        )
        assert note.status_code == 201

        response = await client.get(f"/tickets/{ticket['id']}", headers=SUPPORT)

        body = response.json()
        assert body["first_response_sla"]["state"] == "met"
        assert [a["kind"] for a in body["activity"]] == ["created", "first_response", "note_added"]
        assert body["activity"][2]["body"] == "Escalated to payments"

    async def test_update_priority_and_category(self, client, conversation, clock):
        ticket = await open_ticket(client, priority="low")
        clock.advance(minutes=1)

        response = await client.patch(
            f"/tickets/{ticket['id']}",
            json={"priority": "high", "category": "billing", "expected_version": 1},
            headers=SUPPORT,
        )

        body = response.json()
        assert response.status_code == 200
        assert (body["priority"], body["category"], body["version"]) == ("high", "billing", 3)
        assert body["sla_resolution_due"] == ticket["sla_resolution_due"]

    async def test_empty_update_rejected(self, client, conversation):
        ticket = await open_ticket(client)

        response = await client.patch(f"/tickets/{ticket['id']}", json={}, headers=SUPPORT)

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    async def test_list_filters_and_by_conversation(self, client, add_conversation, clock):
        await add_conversation("conv-1")
        await add_conversation("conv-2")
        urgent = await open_ticket(client, "conv-1", priority="urgent")
        clock.advance(minutes=1)
        await open_ticket(client, "conv-2", priority="low")

        response = await client.get("/tickets", params={"priority": "urgent"}, headers=SUPPORT)
        assert [t["id"] for t in response.json()] == [urgent["id"]]

        response = await client.get("/tickets", params={"sort": "oldest"}, headers=SUPPORT)
        assert [t["priority"] for t in response.json()] == ["urgent", "low"]

        response = await client.get("/tickets", params={"assigned": "unassigned"}, headers=SUPPORT)
        assert len(response.json()) == 2

        response = await client.get("/tickets/by-conversation/conv-1", headers=SUPPORT)
        assert response.json()["id"] == urgent["id"]

        response = await client.get("/tickets/by-conversation/conv-404", headers=SUPPORT)
        assert response.status_code == 200
        assert response.json() is None

    async def test_stats_without_concluded_instances(self, client, conversation):
        await open_ticket(client)

        response = await client.get("/tickets/stats", headers=SUPPORT)

        body = response.json()
        assert body["open_count"] == 1
        assert body["urgent_count"] == 1
        assert body["first_response_compliance"] == {"percentage": 100.0, "met": 0, "sample_size": 0}
        assert body["sla_policy"]["urgent"]["resolution"] == 120


class TestNotificationRoutes:
    async def test_assignment_reaches_the_bell(self, client, conversation, clock):
        ticket = await open_ticket(client)
        clock.advance(minutes=1)
        await client.post(f"/tickets/{ticket['id']}/assign", json={"user_id": "agent-7"}, headers=SUPPORT)

        listed = await client.get("/notifications", headers=AGENT_7)
        notifications = listed.json()
        assert [n["type"] for n in notifications] == ["ticket_assigned"]
        assert notifications[0]["team_wide"] is False

        count = await client.get("/notifications/count", headers=AGENT_7)
        assert count.json() == {"count": 1}

        response = await client.put(f"/notifications/{notifications[0]['id']}/read", headers=AGENT_7)
        assert response.status_code == 204
        assert (await client.get("/notifications/count", headers=AGENT_7)).json() == {"count": 0}

        # Not visible to another agent
        response = await client.delete(f"/notifications/{notifications[0]['id']}", headers=SUPPORT)
        assert response.status_code == 404

    async def test_read_all_and_clear(self, client, conversation, clock):
        ticket = await open_ticket(client)
        clock.advance(minutes=1)
        await client.post(f"/tickets/{ticket['id']}/assign", json={"user_id": "agent-7"}, headers=SUPPORT)

        response = await client.put("/notifications/read-all", headers=AGENT_7)
        assert response.json() == {"affected": 1}

        response = await client.delete("/notifications", headers=AGENT_7)
        assert response.json() == {"affected": 1}
        assert (await client.get("/notifications", headers=AGENT_7)).json() == []


class TestInboxAndBadges:
    async def test_inbound_message_flow(self, client, add_conversation, clock):
        await add_conversation("conv-1", assigned_to="agent-7")

        baseline = await client.get("/badges", headers=SUPPORT)
        assert baseline.json()["unread_conversations"] == 0

        response = await client.post(
            "/inbox/conversations/conv-1/inbound", json={"customer_name": "Alice"}, headers=SUPPORT
        )
        assert response.status_code == 200
        assert response.json()["conversation"]["unread_count"] == 1
        assert response.json()["ticket_id"] is None

        replies = (await client.get("/notifications", headers=AGENT_7)).json()
        assert [n["link"] for n in replies] == ["/inbox/conv-1"]

        clock.advance(seconds=60)
        badges = await client.get("/badges", headers=SUPPORT)
        assert badges.json()["unread_conversations"] == 1
        assert badges.json()["last_alert_sequence"] == 1

        alerts = await client.get("/badges/alerts", params={"after": 0}, headers=SUPPORT)
        assert [a["badge"] for a in alerts.json()["alerts"]] == ["unread_conversations"]

        response = await client.post("/inbox/conversations/conv-1/read", headers=SUPPORT)
        assert response.json()["unread_count"] == 0

    async def test_badges_recomputed_after_a_missed_poll(self, client, add_conversation, clock, monkeypatch):
        monkeypatch.setattr(settings, "badge_poll_interval", 15)
        await add_conversation("conv-1")
        await client.get("/badges", headers=SUPPORT)
        await client.post(
            "/inbox/conversations/conv-1/inbound", json={"customer_name": "Alice"}, headers=SUPPORT
        )

        clock.advance(seconds=30)
        badges = await client.get("/badges", headers=SUPPORT)
        assert badges.json()["unread_conversations"] == 0

        clock.advance(seconds=1)
        badges = await client.get("/badges", headers=SUPPORT)
        assert badges.json()["unread_conversations"] == 1

    async def test_inbound_creates_conversation_on_first_contact(self, client):
        response = await client.post(
            "/inbox/conversations/conv-new/inbound", json={"customer_name": "Bob"}, headers=SUPPORT
        )

        assert response.status_code == 200
        assert response.json()["conversation"]["customer_name"] == "Bob"

    async def test_inbox_requires_capability(self, client, conversation):
        response = await client.post("/inbox/conversations/conv-1/read", headers=MARKETING)

        assert response.status_code == 403

    async def test_assign_conversation(self, client, conversation):
        response = await client.post(
            "/inbox/conversations/conv-1/assign", json={"user_id": "agent-3"}, headers=SUPPORT
        )

        assert response.json()["assigned_to"] == "agent-3"


class TestHealth:
    async def test_health_and_root(self, client):
        health = await client.get("/health")
        assert health.json()["status"] == "healthy"
        assert health.json()["checks"]["sla_config"] == "loaded"

        root = await client.get("/")
        assert "/tickets" in [m["prefix"] for m in root.json()["modules"].values()]


class TestBackgroundJobs:
    async def test_sweep_job_without_webhook(self, session, client, conversation, clock, monkeypatch):
        from contextlib import asynccontextmanager

        import supportdesk.main as main_module

        @asynccontextmanager
        async def session_context():
            yield session

        monkeypatch.setattr(main_module, "get_session_context", session_context)
        app.state.alert_webhook = None

        await open_ticket(client)
        clock.advance(minutes=61)
        await main_module.run_sla_sweep(app)

        notifications = (await client.get("/notifications", headers=SUPPORT)).json()
        assert [n["type"] for n in notifications] == ["urgent_ticket"]
        assert notifications[0]["team_wide"] is True

        clock.advance(seconds=1)
        await main_module.run_badge_poll(app)
        assert app.state.badge_aggregator.current.urgent_or_breached_tickets == 1
