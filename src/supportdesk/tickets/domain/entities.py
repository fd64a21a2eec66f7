"""
Ticket Domain Entities
======================

Pure Python domain entities for the ticket lifecycle.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Dict, Optional, Tuple, Type

from supportdesk.config import (
    ActivityKind, SLAMetric, SLAState, TicketStatus, OPEN_STATUSES
)
from supportdesk.core import InvalidTransitionException
from supportdesk.tickets.domain.value_objects import is_allowed_transition


@dataclass
class Ticket:
    """
    Ticket entity representing a tracked support case.

    Owns the status and timestamp fields and is the single source of truth
    for SLA deadlines. Deadlines are stamped once at creation and never
    move afterwards, not even on priority changes.
    """

    # Core attributes
    id: str
    conversation_id: str
    subject: str
    priority: str
    category: str
    status: str

    # Timestamps
    created_at: datetime
    updated_at: datetime

    # SLA deadlines
    sla_first_response_due: datetime
    sla_resolution_due: datetime

    assigned_to: Optional[str] = None

    # Set at most once
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    # Optimistic concurrency token
    version: int = 1

    def __post_init__(self):
        """Validate ticket on initialization."""
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")

        for name in ("first_response_at", "resolved_at", "closed_at"):
            value = getattr(self, name)
            if value is not None and value < self.created_at:
                raise ValueError(f"{name} cannot be before created_at")

    @property
    def is_open(self) -> bool:
        """Check if ticket is still being worked on."""
        return self.status in OPEN_STATUSES

    def due_for(self, metric: str) -> datetime:
        if metric == SLAMetric.FIRST_RESPONSE:
            return self.sla_first_response_due
        return self.sla_resolution_due

    def completed_at_for(self, metric: str) -> Optional[datetime]:
        if metric == SLAMetric.FIRST_RESPONSE:
            return self.first_response_at
        return self.resolved_at

    def transition_to(self, new_status: str, timestamp: datetime) -> str:
        """
        Move the ticket along one edge of the status graph.

        Returns:
            The previous status

        Raises:
            InvalidTransitionException: if the edge is not allowed; the
                ticket is left untouched
        """
        if not is_allowed_transition(self.status, new_status):
            raise InvalidTransitionException(self.id, self.status, new_status)

        old_status = self.status
        self.status = new_status
        self.updated_at = timestamp

        if new_status == TicketStatus.RESOLVED:
            self.record_resolution(timestamp)
        elif new_status == TicketStatus.CLOSED:
            self.record_closed(timestamp)

        return old_status

    def record_resolution(self, timestamp: datetime) -> None:
        """Stamp resolved_at unless already set."""
        if self.resolved_at is None:
            self.resolved_at = timestamp

    def record_closed(self, timestamp: datetime) -> None:
        """Stamp closed_at unless already set."""
        if self.closed_at is None:
            self.closed_at = timestamp

    def mark_first_response(self, timestamp: datetime) -> bool:
        """
        Stamp first_response_at.

        Returns:
            False when a first response was already recorded
        """
        if self.first_response_at is not None:
            return False
        self.first_response_at = timestamp
        self.updated_at = timestamp
        return True


@dataclass
class MetricEvaluation:
    """SLA status of a single metric at one instant."""

    metric: str
    deadline: datetime
    state: str
    remaining_seconds: float
    percentage_remaining: float
    completed_at: Optional[datetime] = None

    @property
    def is_breached(self) -> bool:
        return self.state == SLAState.BREACHED

    def to_dict(self) -> dict:
        return {
            "deadline": self.deadline.isoformat(),
            "state": self.state,
            "remaining_seconds": self.remaining_seconds,
            "percentage_remaining": self.percentage_remaining,
            "is_breached": self.is_breached,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class SLAEvaluation:
    """
    SLA evaluation of a ticket.

    Contains the per-metric states plus the overall picture used by
    listings and the dispatcher.
    """

    ticket_id: str
    first_response: MetricEvaluation
    resolution: MetricEvaluation
    evaluated_at: datetime

    is_any_breached: bool = field(init=False)

    def __post_init__(self):
        self.is_any_breached = self.first_response.is_breached or self.resolution.is_breached

    @property
    def metrics(self) -> Tuple[MetricEvaluation, MetricEvaluation]:
        return self.first_response, self.resolution

    @property
    def most_urgent_state(self) -> str:
        """Get the most urgent SLA state."""
        states = {m.state for m in self.metrics}
        if SLAState.BREACHED in states:
            return SLAState.BREACHED
        if SLAState.AT_RISK in states:
            return SLAState.AT_RISK
        if states == {SLAState.MET}:
            return SLAState.MET
        return SLAState.ON_TRACK

    @property
    def next_deadline(self) -> Optional[datetime]:
        """Earliest deadline of a metric that is still running."""
        running = [
            m.deadline for m in self.metrics
            if m.state not in (SLAState.MET, SLAState.BREACHED)
        ]
        return min(running) if running else None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        next_deadline = self.next_deadline
        return {
            "ticket_id": self.ticket_id,
            "evaluated_at": self.evaluated_at.isoformat(),
            "first_response": self.first_response.to_dict(),
            "resolution": self.resolution.to_dict(),
            "overall": {
                "state": self.most_urgent_state,
                "is_any_breached": self.is_any_breached,
                "next_deadline": next_deadline.isoformat() if next_deadline else None,
            },
        }


# ========== Activity entries ==========

@dataclass(frozen=True, kw_only=True)
class ActivityEntry:
    """
    Append-only record of something that happened to a ticket.

    Each subclass is one variant; `kind` is the tag it is stored under.
    """

    kind: ClassVar[str]

    ticket_id: str
    actor: str
    created_at: datetime
    id: Optional[str] = None

    def values(self) -> Tuple[Optional[str], Optional[str]]:
        """(old_value, new_value) as stored in the activity table."""
        return None, None

    @classmethod
    def from_values(cls, old_value: Optional[str], new_value: Optional[str], **common) -> "ActivityEntry":
        return cls(**common)


@dataclass(frozen=True, kw_only=True)
class Creation(ActivityEntry):
    kind: ClassVar[str] = ActivityKind.CREATED
    subject: str

    def values(self):
        return None, self.subject

    @classmethod
    def from_values(cls, old_value, new_value, **common):
        return cls(subject=new_value or "", **common)


@dataclass(frozen=True, kw_only=True)
class _Change(ActivityEntry):
    old: Optional[str] = None
    new: Optional[str] = None

    def values(self):
        return self.old, self.new

    @classmethod
    def from_values(cls, old_value, new_value, **common):
        return cls(old=old_value, new=new_value, **common)


@dataclass(frozen=True, kw_only=True)
class StatusChange(_Change):
    kind: ClassVar[str] = ActivityKind.STATUS_CHANGED


@dataclass(frozen=True, kw_only=True)
class Assignment(_Change):
    kind: ClassVar[str] = ActivityKind.ASSIGNED


@dataclass(frozen=True, kw_only=True)
class PriorityChange(_Change):
    kind: ClassVar[str] = ActivityKind.PRIORITY_CHANGED


@dataclass(frozen=True, kw_only=True)
class CategoryChange(_Change):
    kind: ClassVar[str] = ActivityKind.CATEGORY_CHANGED


@dataclass(frozen=True, kw_only=True)
class FirstResponse(ActivityEntry):
    kind: ClassVar[str] = ActivityKind.FIRST_RESPONSE


@dataclass(frozen=True, kw_only=True)
class Note(ActivityEntry):
    kind: ClassVar[str] = ActivityKind.NOTE_ADDED
    body: str

    def values(self):
        return None, self.body

    @classmethod
    def from_values(cls, old_value, new_value, **common):
        return cls(body=new_value or "", **common)


ACTIVITY_VARIANTS: Dict[str, Type[ActivityEntry]] = {
    variant.kind: variant
    for variant in (
        Creation, StatusChange, Assignment, PriorityChange,
        CategoryChange, FirstResponse, Note,
    )
}
