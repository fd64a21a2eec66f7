"""
Alert Webhook Fan-out
=====================

Posts SLA notifications to a Slack incoming webhook:
- CircuitBreaker: stops hammering a failing webhook
- AlertWebhookClient: Block Kit message, retry with exponential backoff

Delivery is best effort; notification records never depend on it.
"""

import asyncio
import time
from typing import Any, Dict, Iterable, Optional

import httpx

from supportdesk.config import settings, NotificationType
from supportdesk.notifications.domain import Notification
from supportdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

FANOUT_TYPES = (NotificationType.URGENT_TICKET, NotificationType.SLA_WARNING)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class AlertWebhookClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    Only `urgent_ticket` and `sla_warning` notifications are posted.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        public_base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        retry_base_delay: float = 1.0,
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._base_url = (public_base_url or settings.public_base_url).rstrip("/")
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._retry_base_delay = retry_base_delay

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_message(self, notification: Notification) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        is_breach = notification.type == NotificationType.URGENT_TICKET
        header_text = "SLA Breach Alert" if is_breach else "SLA Warning Alert"
        status_text = "BREACHED" if is_breach else "AT RISK"
        emoji = ":rotating_light:" if is_breach else ":warning:"

        fields = [
            {"type": "mrkdwn", "text": f"*Status:*\n{status_text}"},
            {"type": "mrkdwn", "text": f"*Assignee:*\n{notification.user_id or 'Unassigned'}"},
        ]
        if notification.link:
            fields.insert(0, {
                "type": "mrkdwn",
                "text": f"*Ticket:*\n<{self._base_url}{notification.link}|{notification.ticket_id}>"
            })

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{emoji} {header_text}",
                    "emoji": True
                }
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*{notification.title}*\n{notification.message}"},
                "fields": fields
            },
            {
                "type": "context",
                "elements": [
                    {"type": "mrkdwn", "text": f"Raised: {notification.created_at.isoformat()}"}
                ]
            }
        ]

        return {
            "channel": self._channel,
            "text": f"{header_text}: {notification.title}",
            "blocks": blocks
        }

    async def publish(self, notification: Notification, max_retries: int = 3) -> bool:
        """
        Send one notification to the webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if notification.type not in FANOUT_TYPES:
            return False

        if not self.enabled:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"notification_id": notification.id}
            )
            return False

        message = self._build_message(notification)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={
                            "notification_id": notification.id,
                            "type": notification.type
                        }
                    )
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1
                    }
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "notification_id": notification.id
                    }
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(self._retry_base_delay * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def publish_all(self, notifications: Iterable[Notification]) -> int:
        """Publish a batch; returns the number delivered."""
        delivered = 0
        for notification in notifications:
            if await self.publish(notification):
                delivered += 1
        return delivered

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None
