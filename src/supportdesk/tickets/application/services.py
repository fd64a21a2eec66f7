"""
Ticket Application Services
===========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: lifecycle commands and read queries live in
  separate services
- Dependency Inversion: depend on abstractions (repositories, the support
  inbox port, the event listener), not concrete implementations
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from statistics import mean
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from supportdesk.config import (
    settings, SLAMetric, TicketStatus, Priority, SYSTEM_ACTOR,
    VALID_PRIORITIES, VALID_STATUSES
)
from supportdesk.core import (
    Clock, utc_now,
    ValidationException, ResourceNotFoundException, ConcurrentModificationException
)
from supportdesk.inbox.domain import Conversation, ISupportInbox
from supportdesk.shared.infrastructure.logging import get_logger
from supportdesk.tickets.domain import (
    Ticket, SLAConfig, SLAEvaluation, SLAEvaluator, ComplianceResult,
    ActivityEntry, Creation, StatusChange, Assignment, PriorityChange,
    CategoryChange, FirstResponse, Note
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket."""

    @abstractmethod
    async def update(self, ticket: Ticket, expected_version: int) -> Ticket:
        """
        Write the ticket's mutable fields if the stored version still matches.

        Raises:
            ConcurrentModificationException: stored version differs
            ResourceNotFoundException: the row is gone
        """

    @abstractmethod
    async def stamp_first_response(self, ticket_id: str, timestamp: datetime) -> bool:
        """Set first_response_at if still null; False when it was already set."""

    @abstractmethod
    async def latest_for_conversation(self, conversation_id: str) -> Optional[Ticket]:
        """Most recently created ticket of a conversation."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        sort: str = "newest",
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Ticket]:
        """List tickets with filters."""

    @abstractmethod
    async def list_open(self) -> List[Ticket]:
        """All tickets that are neither resolved nor closed."""


class IActivityRepository(ABC):
    """Interface for the append-only ticket activity log."""

    @abstractmethod
    async def append(self, entry: ActivityEntry) -> ActivityEntry:
        """Store an entry and return it with its ID."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[ActivityEntry]:
        """Entries of a ticket, oldest first."""


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""


class ITicketEventListener(ABC):
    """Receives lifecycle events that may produce notifications."""

    @abstractmethod
    async def on_ticket_created(self, ticket: Ticket) -> None:
        """A ticket was opened."""

    @abstractmethod
    async def on_ticket_assigned(self, ticket: Ticket, actor: str) -> None:
        """A ticket got a new, non-empty assignee."""

    @abstractmethod
    async def on_inbound_message(self, conversation: Conversation, ticket: Optional[Ticket]) -> None:
        """A customer wrote into a conversation."""


# ========== Application Services ==========

class TicketLifecycleService:
    """
    Service for ticket commands.

    Validates and applies status transitions, stamps SLA timestamps at
    most once and writes an activity entry for every change. Mutations are
    optimistic: a stale `expected_version` or a concurrent writer raises
    ConcurrentModificationException and leaves the ticket untouched.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        activity_repository: IActivityRepository,
        inbox: ISupportInbox,
        config_provider: ISLAConfigProvider,
        listener: Optional[ITicketEventListener] = None,
        clock: Clock = utc_now,
        auto_create_tickets: Optional[bool] = None,
        default_priority: Optional[str] = None,
        default_category: Optional[str] = None,
    ):
        self._ticket_repo = ticket_repository
        self._activity_repo = activity_repository
        self._inbox = inbox
        self._config_provider = config_provider
        self._listener = listener
        self._clock = clock
        self._auto_create = (
            settings.auto_create_tickets if auto_create_tickets is None else auto_create_tickets
        )
        self._default_priority = default_priority or settings.default_ticket_priority
        self._default_category = default_category or settings.default_ticket_category

    async def create_ticket(
        self,
        conversation_id: str,
        subject: str,
        priority: str = Priority.MEDIUM,
        category: str = "support",
        actor: str = SYSTEM_ACTOR
    ) -> Ticket:
        """
        Open a ticket on a conversation.

        Deadlines are computed from the active policy at the creation
        instant and never change afterwards.

        Raises:
            ValidationException: unknown priority or blank subject
            ResourceNotFoundException: conversation does not exist
        """
        if priority not in VALID_PRIORITIES:
            raise ValidationException(
                f"Invalid priority: {priority}",
                {"priority": priority, "allowed": VALID_PRIORITIES}
            )
        if not subject or not subject.strip():
            raise ValidationException("Ticket subject must not be empty")

        conversation = await self._inbox.get_conversation(conversation_id)
        if conversation is None:
            raise ResourceNotFoundException("Conversation", conversation_id)

        now = self._clock()
        first_response_due, resolution_due = self._config_provider.get_config().due_times(priority, now)

        ticket = await self._ticket_repo.create(Ticket(
            id=str(uuid4()),
            conversation_id=conversation_id,
            subject=subject.strip(),
            priority=priority,
            category=category or "support",
            status=TicketStatus.NEW,
            created_at=now,
            updated_at=now,
            sla_first_response_due=first_response_due,
            sla_resolution_due=resolution_due,
        ))

        await self._activity_repo.append(
            Creation(ticket_id=ticket.id, actor=actor, created_at=now, subject=ticket.subject)
        )

        if self._listener is not None:
            await self._listener.on_ticket_created(ticket)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "conversation_id": conversation_id,
                "priority": priority,
                "actor": actor,
            }
        )
        return ticket

    async def transition(
        self,
        ticket_id: str,
        new_status: str,
        actor: str,
        expected_version: Optional[int] = None
    ) -> Ticket:
        """
        Move a ticket along one edge of the status graph.

        Entering `resolved` stamps resolved_at and entering `closed` stamps
        closed_at, each only once.

        Raises:
            ValidationException: unknown status
            ResourceNotFoundException: ticket does not exist
            InvalidTransitionException: edge not allowed
            ConcurrentModificationException: stale version
        """
        if new_status not in VALID_STATUSES:
            raise ValidationException(
                f"Invalid status: {new_status}",
                {"status": new_status, "allowed": VALID_STATUSES}
            )

        ticket = await self._load(ticket_id, expected_version)
        read_version = ticket.version
        now = self._clock()

        old_status = ticket.transition_to(new_status, now)
        ticket = await self._ticket_repo.update(ticket, read_version)

        await self._activity_repo.append(
            StatusChange(ticket_id=ticket.id, actor=actor, created_at=now, old=old_status, new=new_status)
        )

        logger.info(
            "Ticket status changed",
            extra={"ticket_id": ticket.id, "from": old_status, "to": new_status, "actor": actor}
        )
        return ticket

    async def record_first_response(self, ticket_id: str, actor: str) -> Ticket:
        """
        Record that an agent answered the customer.

        Idempotent: once first_response_at is set, further calls change
        nothing and write no activity.
        """
        ticket = await self._load(ticket_id)
        if ticket.first_response_at is not None:
            return ticket

        now = self._clock()
        if await self._ticket_repo.stamp_first_response(ticket.id, now):
            await self._activity_repo.append(
                FirstResponse(ticket_id=ticket.id, actor=actor, created_at=now)
            )
            logger.info("First response recorded", extra={"ticket_id": ticket.id, "actor": actor})

        return await self._load(ticket_id)

    async def assign(
        self,
        ticket_id: str,
        user_id: Optional[str],
        actor: str,
        expected_version: Optional[int] = None
    ) -> Ticket:
        """
        Set or clear the assignee.

        The new assignee gets a `ticket_assigned` notification; clearing
        the assignee or re-assigning the same user notifies nobody.
        """
        user_id = user_id or None
        ticket = await self._load(ticket_id, expected_version)
        if ticket.assigned_to == user_id:
            return ticket

        read_version = ticket.version
        now = self._clock()
        old_assignee = ticket.assigned_to
        ticket.assigned_to = user_id
        ticket.updated_at = now

        ticket = await self._ticket_repo.update(ticket, read_version)
        await self._activity_repo.append(
            Assignment(ticket_id=ticket.id, actor=actor, created_at=now, old=old_assignee, new=user_id)
        )

        if user_id is not None and self._listener is not None:
            await self._listener.on_ticket_assigned(ticket, actor)

        logger.info(
            "Ticket assigned",
            extra={"ticket_id": ticket.id, "assigned_to": user_id, "actor": actor}
        )
        return ticket

    async def change_priority(
        self,
        ticket_id: str,
        priority: str,
        actor: str,
        expected_version: Optional[int] = None
    ) -> Ticket:
        """Change the priority; SLA deadlines keep their original values."""
        if priority not in VALID_PRIORITIES:
            raise ValidationException(
                f"Invalid priority: {priority}",
                {"priority": priority, "allowed": VALID_PRIORITIES}
            )

        ticket = await self._load(ticket_id, expected_version)
        if ticket.priority == priority:
            return ticket

        read_version = ticket.version
        now = self._clock()
        old_priority = ticket.priority
        ticket.priority = priority
        ticket.updated_at = now

        ticket = await self._ticket_repo.update(ticket, read_version)
        await self._activity_repo.append(
            PriorityChange(ticket_id=ticket.id, actor=actor, created_at=now, old=old_priority, new=priority)
        )
        return ticket

    async def change_category(
        self,
        ticket_id: str,
        category: str,
        actor: str,
        expected_version: Optional[int] = None
    ) -> Ticket:
        if not category or not category.strip():
            raise ValidationException("Ticket category must not be empty")

        category = category.strip()
        ticket = await self._load(ticket_id, expected_version)
        if ticket.category == category:
            return ticket

        read_version = ticket.version
        now = self._clock()
        old_category = ticket.category
        ticket.category = category
        ticket.updated_at = now

        ticket = await self._ticket_repo.update(ticket, read_version)
        await self._activity_repo.append(
            CategoryChange(ticket_id=ticket.id, actor=actor, created_at=now, old=old_category, new=category)
        )
        return ticket

    async def add_note(self, ticket_id: str, body: str, actor: str) -> Note:
        """Append an internal note to the ticket history."""
        if not body or not body.strip():
            raise ValidationException("Note body must not be empty")

        ticket = await self._load(ticket_id)
        return await self._activity_repo.append(
            Note(ticket_id=ticket.id, actor=actor, created_at=self._clock(), body=body.strip())
        )

    async def handle_inbound_message(self, conversation_id: str) -> Optional[Ticket]:
        """
        React to an inbound customer message already recorded by the inbox.

        Opens a ticket when the conversation has none and automatic
        creation is enabled, then lets the listener notify the assignee.

        Returns:
            The conversation's current ticket, if any
        """
        conversation = await self._inbox.get_conversation(conversation_id)
        if conversation is None:
            raise ResourceNotFoundException("Conversation", conversation_id)

        ticket = await self._ticket_repo.latest_for_conversation(conversation_id)
        if ticket is None and self._auto_create:
            ticket = await self.create_ticket(
                conversation_id,
                subject=f"Support request from {conversation.customer_name}",
                priority=self._default_priority,
                category=self._default_category,
                actor=SYSTEM_ACTOR,
            )

        if self._listener is not None:
            await self._listener.on_inbound_message(conversation, ticket)

        return ticket

    async def _load(self, ticket_id: str, expected_version: Optional[int] = None) -> Ticket:
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        if expected_version is not None and ticket.version != expected_version:
            raise ConcurrentModificationException(ticket_id, expected_version)
        return ticket


@dataclass
class TicketStats:
    """Aggregate figures for the ticket dashboard."""

    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    open_count: int
    urgent_count: int
    breached_count: int
    avg_first_response_hours: Optional[float]
    avg_resolution_hours: Optional[float]
    first_response_compliance: ComplianceResult
    resolution_compliance: ComplianceResult
    sla_policy: Dict[str, Dict[str, int]]


class TicketQueryService:
    """
    Service for ticket reads.

    Every ticket is returned together with its SLA evaluation at the
    current instant.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        activity_repository: IActivityRepository,
        config_provider: ISLAConfigProvider,
        clock: Clock = utc_now,
    ):
        self._ticket_repo = ticket_repository
        self._activity_repo = activity_repository
        self._config_provider = config_provider
        self._clock = clock

    def _evaluator(self) -> SLAEvaluator:
        return SLAEvaluator(self._config_provider.get_config())

    def evaluate(self, ticket: Ticket) -> SLAEvaluation:
        """SLA evaluation of a ticket at the current instant."""
        return self._evaluator().evaluate(ticket, self._clock())

    async def list_tickets(
        self,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned: Optional[str] = None,
        sort: str = "newest",
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Tuple[Ticket, SLAEvaluation]]:
        """
        List tickets with filters.

        Args:
            status: Exact status, or "all"
            priority: Exact priority, or "all"
            assigned: Assignee user id, or "unassigned"
            sort: newest, oldest, priority or updated
        """
        filters = {}
        if status and status != "all":
            filters["status"] = status
        if priority and priority != "all":
            filters["priority"] = priority
        if assigned:
            filters["assigned_to"] = None if assigned == "unassigned" else assigned

        tickets = await self._ticket_repo.list(filters, sort=sort, limit=limit, offset=offset)
        evaluator = self._evaluator()
        now = self._clock()
        return [(ticket, evaluator.evaluate(ticket, now)) for ticket in tickets]

    async def get_ticket(self, ticket_id: str) -> Tuple[Ticket, SLAEvaluation, List[ActivityEntry]]:
        """
        Get a ticket, its SLA evaluation and its activity history.

        Raises:
            ResourceNotFoundException: ticket does not exist
        """
        ticket = await self._ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        activity = await self._activity_repo.list_for_ticket(ticket.id)
        return ticket, self._evaluator().evaluate(ticket, self._clock()), activity

    async def get_by_conversation(self, conversation_id: str) -> Optional[Tuple[Ticket, SLAEvaluation]]:
        ticket = await self._ticket_repo.latest_for_conversation(conversation_id)
        if ticket is None:
            return None
        return ticket, self._evaluator().evaluate(ticket, self._clock())

    async def get_stats(self) -> TicketStats:
        """Counts, averages and compliance over all tickets."""
        config = self._config_provider.get_config()
        evaluator = SLAEvaluator(config)
        now = self._clock()

        tickets = await self._ticket_repo.list({})

        by_status = {status: 0 for status in VALID_STATUSES}
        by_priority = {priority: 0 for priority in VALID_PRIORITIES}
        open_count = urgent_count = breached_count = 0

        for ticket in tickets:
            by_status[ticket.status] = by_status.get(ticket.status, 0) + 1
            if not ticket.is_open:
                continue

            open_count += 1
            by_priority[ticket.priority] = by_priority.get(ticket.priority, 0) + 1
            if ticket.priority == Priority.URGENT:
                urgent_count += 1
            if evaluator.evaluate(ticket, now).is_any_breached:
                breached_count += 1

        first_response_hours = [
            (t.first_response_at - t.created_at).total_seconds() / 3600
            for t in tickets if t.first_response_at is not None
        ]
        resolution_hours = [
            (t.resolved_at - t.created_at).total_seconds() / 3600
            for t in tickets if t.resolved_at is not None
        ]

        return TicketStats(
            by_status=by_status,
            by_priority=by_priority,
            open_count=open_count,
            urgent_count=urgent_count,
            breached_count=breached_count,
            avg_first_response_hours=round(mean(first_response_hours), 2) if first_response_hours else None,
            avg_resolution_hours=round(mean(resolution_hours), 2) if resolution_hours else None,
            first_response_compliance=evaluator.compliance(tickets, SLAMetric.FIRST_RESPONSE, now),
            resolution_compliance=evaluator.compliance(tickets, SLAMetric.RESOLUTION, now),
            sla_policy=config.to_summary(),
        )
