"""Tests for the Slack alert fan-out client."""

import json

import httpx

from supportdesk.notifications.domain import Notification
from supportdesk.notifications.infrastructure import AlertWebhookClient, CircuitBreaker

from conftest import T0

WEBHOOK_URL = "https://hooks.slack.test/services/T000/B000/XXXX"


def breach(ticket_id="123e4567-e89b-12d3-a456-426614174000", user_id=None):
    return Notification(
        id="n-1",
        type="urgent_ticket",
        title="SLA breached: first response",
        message="Withdrawal stuck missed its first response deadline",
        created_at=T0,
        user_id=user_id,
        link=f"/tickets/{ticket_id}",
        ticket_id=ticket_id,
    )


def make_client(handler, **kwargs):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AlertWebhookClient(
        webhook_url=WEBHOOK_URL,
        channel="#alerts",
        public_base_url="https://desk.test/",
        http_client=http_client,
        retry_base_delay=0,
        **kwargs,
    )


class TestAlertWebhookClient:
    async def test_posts_block_kit_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text="ok")

        client = make_client(handler)

        assert await client.publish(breach(user_id="agent-7")) is True

        payload = json.loads(requests[0].content)
        assert str(requests[0].url) == WEBHOOK_URL
        assert payload["channel"] == "#alerts"
        assert payload["text"].startswith("SLA Breach Alert")
        fields = [f["text"] for f in payload["blocks"][1]["fields"]]
        assert any("https://desk.test/tickets/" in text for text in fields)
        assert any("agent-7" in text for text in fields)

    async def test_only_sla_types_are_published(self):
        calls = []
        client = make_client(lambda request: calls.append(request) or httpx.Response(200))

        assigned = breach()
        assigned.type = "ticket_assigned"

        assert await client.publish(assigned) is False
        assert calls == []

    async def test_disabled_without_url(self):
        client = AlertWebhookClient(webhook_url="")

        assert client.enabled is False
        assert await client.publish(breach()) is False

    async def test_retries_then_gives_up(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500)

        client = make_client(handler)

        assert await client.publish(breach(), max_retries=3) is False
        assert len(attempts) == 3

    async def test_transport_errors_are_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200)

        client = make_client(handler)

        assert await client.publish(breach()) is True
        assert len(attempts) == 2

    async def test_open_circuit_skips_requests(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503)

        client = make_client(handler, circuit_breaker=CircuitBreaker(failure_threshold=1, recovery_timeout=60))

        await client.publish(breach(), max_retries=1)
        assert await client.publish(breach(), max_retries=1) is False
        assert len(attempts) == 1

    async def test_publish_all_counts_deliveries(self):
        client = make_client(lambda request: httpx.Response(200))
        warning = breach()
        warning.type = "sla_warning"
        reply = breach()
        reply.type = "ticket_reply"

        assert await client.publish_all([breach(), warning, reply]) == 2


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)

        breaker.record_failure()
        assert breaker.allow_request() is True

        breaker.record_failure()
        assert breaker.state == "open"
        assert breaker.allow_request() is False

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()

        assert breaker.state == "half_open"
        breaker.record_success()
        assert breaker.state == "closed"

    def test_success_resets_failures(self):
        breaker = CircuitBreaker(failure_threshold=2)
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()

        assert breaker.state == "closed"
