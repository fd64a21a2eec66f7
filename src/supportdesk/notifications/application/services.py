"""
Notification Application Services
=================================

- NotificationDispatcher: turns lifecycle events and SLA escalations into
  notification records, at most once per escalation
- NotificationService: the per-user read side of the notification bell
- BadgeCounter / BadgeAggregator: navigation badge counts and alerts
"""

from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from supportdesk.config import (
    NotificationType, SLAMetric, SLAState, Priority
)
from supportdesk.core import Clock, utc_now, ResourceNotFoundException
from supportdesk.inbox.domain import Conversation, ISupportInbox
from supportdesk.notifications.domain import (
    Notification, DispatchState, BadgeCounts, BadgeAlert, SweepResult
)
from supportdesk.shared.infrastructure.logging import get_logger, log_latency
from supportdesk.tickets.application.services import (
    ITicketEventListener, ITicketRepository, ISLAConfigProvider
)
from supportdesk.tickets.domain import Ticket, SLAEvaluator, SLACalculator, MetricEvaluation

logger = get_logger(__name__)


_METRIC_LABELS = {
    SLAMetric.FIRST_RESPONSE: "first response",
    SLAMetric.RESOLUTION: "resolution",
}


# ========== Repository Interfaces (Dependency Inversion) ==========

class INotificationRepository(ABC):
    """Interface for notification data access."""

    @abstractmethod
    async def create(self, notification: Notification) -> Notification:
        """Store a notification and return it with its ID."""

    @abstractmethod
    async def list_for_user(self, user_id: str, limit: int = 20, unread_only: bool = False) -> List[Notification]:
        """Notifications visible to a user (own and team-wide), newest first."""

    @abstractmethod
    async def count_unread(self, user_id: str) -> int:
        """Unread notifications visible to a user."""

    @abstractmethod
    async def mark_read(self, user_id: str, notification_id: str) -> bool:
        """Mark one visible notification read; False if not found."""

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> int:
        """Mark every visible notification read; returns rows changed."""

    @abstractmethod
    async def delete(self, user_id: str, notification_id: str) -> bool:
        """Delete one visible notification; False if not found."""

    @abstractmethod
    async def clear_all(self, user_id: str) -> int:
        """Delete every visible notification; returns rows deleted."""


class IDispatchStateRepository(ABC):
    """Interface for the per (ticket, metric) escalation dedup state."""

    @abstractmethod
    async def initialize(self, ticket_id: str) -> None:
        """Create level-0 rows for both metrics of a new ticket."""

    @abstractmethod
    async def ensure(self, ticket_id: str, metric: str) -> DispatchState:
        """Current state, creating a level-0 row when none exists."""

    @abstractmethod
    async def compare_and_set(self, state: DispatchState, new_level: int) -> bool:
        """
        Set the level if the stored level and version still match `state`.

        Returns:
            False when another dispatcher changed the row first
        """


class IBadgeCountSource(ABC):
    """Anything that can compute the current badge counts."""

    @abstractmethod
    async def counts(self) -> BadgeCounts:
        """Compute current counts."""


# ========== Notification Dispatcher ==========

class NotificationDispatcher(ITicketEventListener):
    """
    Creates notifications for lifecycle events and SLA escalations.

    SLA notifications are edge-triggered: for each (ticket, metric) the
    last notified level is stored, and only a strict rise on the ladder
    on_track -> at_risk -> breached produces a notification. A fall lowers
    the stored level without notifying, so a later rise notifies again.
    """

    def __init__(
        self,
        notification_repository: INotificationRepository,
        dispatch_state_repository: IDispatchStateRepository,
        ticket_repository: ITicketRepository,
        config_provider: ISLAConfigProvider,
        clock: Clock = utc_now,
    ):
        self._notification_repo = notification_repository
        self._state_repo = dispatch_state_repository
        self._ticket_repo = ticket_repository
        self._config_provider = config_provider
        self._clock = clock

    # ----- lifecycle events -----

    async def on_ticket_created(self, ticket: Ticket) -> None:
        await self._state_repo.initialize(ticket.id)

    async def on_ticket_assigned(self, ticket: Ticket, actor: str) -> None:
        if ticket.assigned_to is None:
            return

        await self._emit(Notification(
            type=NotificationType.TICKET_ASSIGNED,
            title="Ticket assigned to you",
            message=f"{ticket.subject} ({ticket.priority} priority)",
            created_at=self._clock(),
            user_id=ticket.assigned_to,
            link=f"/tickets/{ticket.id}",
            ticket_id=ticket.id,
        ))

    async def on_inbound_message(self, conversation: Conversation, ticket: Optional[Ticket]) -> None:
        recipient = (ticket.assigned_to if ticket else None) or conversation.assigned_to
        if recipient is None:
            logger.debug(
                "Inbound message without assignee, no reply notification",
                extra={"conversation_id": conversation.id}
            )
            return

        if ticket is not None:
            link, subject = f"/tickets/{ticket.id}", ticket.subject
        else:
            link, subject = f"/inbox/{conversation.id}", f"Conversation with {conversation.customer_name}"

        await self._emit(Notification(
            type=NotificationType.TICKET_REPLY,
            title=f"New message from {conversation.customer_name}",
            message=subject,
            created_at=self._clock(),
            user_id=recipient,
            link=link,
            ticket_id=ticket.id if ticket else None,
        ))

    # ----- SLA escalation -----

    async def evaluate_ticket(self, ticket: Ticket, now: Optional[datetime] = None) -> List[Notification]:
        """
        Evaluate one ticket and notify on strict escalations.

        Returns:
            Notifications created by this call (possibly none)
        """
        now = now or self._clock()
        evaluation = SLAEvaluator(self._config_provider.get_config()).evaluate(ticket, now)

        created = []
        for metric in evaluation.metrics:
            notification = await self._apply_metric(ticket, metric, now)
            if notification is not None:
                created.append(notification)
        return created

    async def _apply_metric(
        self,
        ticket: Ticket,
        metric: MetricEvaluation,
        now: datetime
    ) -> Optional[Notification]:
        new_level = SLACalculator.escalation_level(metric.state)
        state = await self._state_repo.ensure(ticket.id, metric.metric)

        if new_level == state.level:
            return None

        if not await self._state_repo.compare_and_set(state, new_level):
            # Another sweep handled this escalation
            logger.debug(
                "SLA dispatch state changed concurrently",
                extra={"ticket_id": ticket.id, "metric": metric.metric}
            )
            return None

        if new_level < state.level:
            return None

        return await self._emit(self._build_sla_notification(ticket, metric, now))

    def _build_sla_notification(self, ticket: Ticket, metric: MetricEvaluation, now: datetime) -> Notification:
        label = _METRIC_LABELS.get(metric.metric, metric.metric)

        if metric.state == SLAState.BREACHED:
            notification_type = NotificationType.URGENT_TICKET
            title = f"SLA breached: {label}"
            message = f"{ticket.subject} missed its {label} deadline"
        else:
            notification_type = NotificationType.SLA_WARNING
            minutes = int(metric.remaining_seconds // 60)
            title = f"SLA at risk: {label}"
            message = f"{ticket.subject} has {minutes} min left for {label}"

        return Notification(
            type=notification_type,
            title=title,
            message=message,
            created_at=now,
            user_id=ticket.assigned_to,
            link=f"/tickets/{ticket.id}",
            ticket_id=ticket.id,
        )

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Evaluate every open ticket once.

        Safe to overlap or skip: dedup state guarantees each escalation is
        notified once no matter how many sweeps observe it.
        """
        now = now or self._clock()
        result = SweepResult()

        with log_latency(logger, "sla_sweep"):
            for ticket in await self._ticket_repo.list_open():
                result.evaluated += 1
                result.notifications.extend(await self.evaluate_ticket(ticket, now))

        if result.notifications:
            logger.info(
                "SLA sweep raised notifications",
                extra={"evaluated": result.evaluated, "notifications": len(result.notifications)}
            )
        return result

    async def _emit(self, notification: Notification) -> Notification:
        notification = await self._notification_repo.create(notification)
        logger.info(
            "Notification dispatched",
            extra={
                "notification_id": notification.id,
                "type": notification.type,
                "user_id": notification.user_id,
                "ticket_id": notification.ticket_id,
            }
        )
        return notification


# ========== Notification read side ==========

class NotificationService:
    """Per-user operations behind the notification bell."""

    def __init__(self, notification_repository: INotificationRepository):
        self._repo = notification_repository

    async def get_notifications(self, user_id: str, limit: int = 20, unread_only: bool = False) -> List[Notification]:
        return await self._repo.list_for_user(user_id, limit=limit, unread_only=unread_only)

    async def get_notification_count(self, user_id: str) -> int:
        return await self._repo.count_unread(user_id)

    async def mark_notification_read(self, user_id: str, notification_id: str) -> None:
        if not await self._repo.mark_read(user_id, notification_id):
            raise ResourceNotFoundException("Notification", notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        return await self._repo.mark_all_read(user_id)

    async def delete_notification(self, user_id: str, notification_id: str) -> None:
        if not await self._repo.delete(user_id, notification_id):
            raise ResourceNotFoundException("Notification", notification_id)

    async def clear_all(self, user_id: str) -> int:
        return await self._repo.clear_all(user_id)


# ========== Badges ==========

class BadgeCounter(IBadgeCountSource):
    """Computes badge counts from the inbox and the ticket store."""

    def __init__(
        self,
        inbox: ISupportInbox,
        ticket_repository: ITicketRepository,
        config_provider: ISLAConfigProvider,
        clock: Clock = utc_now,
    ):
        self._inbox = inbox
        self._ticket_repo = ticket_repository
        self._config_provider = config_provider
        self._clock = clock

    async def counts(self) -> BadgeCounts:
        evaluator = SLAEvaluator(self._config_provider.get_config())
        now = self._clock()

        urgent_or_breached = 0
        for ticket in await self._ticket_repo.list_open():
            if ticket.priority == Priority.URGENT or evaluator.evaluate(ticket, now).is_any_breached:
                urgent_or_breached += 1

        return BadgeCounts(
            unread_conversations=await self._inbox.unread_count(),
            urgent_or_breached_tickets=urgent_or_breached,
        )


class BadgeAggregator:
    """
    Keeps the last observed badge counts and raises alerts on increases.

    One alert per count that went strictly up since the previous poll;
    decreases and ties are silent. The first poll only sets the baseline.
    Alerts carry increasing sequence numbers so clients can ask for
    everything after the last one they saw.
    """

    def __init__(self, clock: Clock = utc_now, history: int = 200):
        self._clock = clock
        self._current: Optional[BadgeCounts] = None
        self._polled_at: Optional[datetime] = None
        self._sequence = 0
        self._alerts: Deque[BadgeAlert] = deque(maxlen=history)

    @property
    def current(self) -> Optional[BadgeCounts]:
        return self._current

    @property
    def polled_at(self) -> Optional[datetime]:
        return self._polled_at

    @property
    def last_sequence(self) -> int:
        return self._sequence

    async def poll(self, source: IBadgeCountSource) -> List[BadgeAlert]:
        """Recompute counts and return the alerts raised by this poll."""
        return self.observe(await source.counts())

    def observe(self, counts: BadgeCounts) -> List[BadgeAlert]:
        """Record freshly computed counts and compare with the previous ones."""
        now = self._clock()
        previous = self._current
        self._current = counts
        self._polled_at = now

        if previous is None:
            return []

        raised = []
        old_values = previous.as_dict()
        for badge in counts.increases_over(previous):
            self._sequence += 1
            alert = BadgeAlert(
                sequence=self._sequence,
                badge=badge,
                previous=old_values[badge],
                current=counts.as_dict()[badge],
                raised_at=now,
            )
            self._alerts.append(alert)
            raised.append(alert)

            logger.info("Badge count increased", extra=alert.to_dict())

        return raised

    def alerts_after(self, sequence: int = 0) -> List[BadgeAlert]:
        """Alerts with a sequence number greater than `sequence`, oldest first."""
        return [alert for alert in self._alerts if alert.sequence > sequence]
