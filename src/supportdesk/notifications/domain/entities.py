"""
Notification Domain Entities
============================

Pure Python entities for notification dispatch and badge counts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Notification:
    """
    A message in a user's notification bell.

    `user_id` None addresses the team-wide queue, visible to every agent.
    """

    type: str
    title: str
    message: str
    created_at: datetime
    user_id: Optional[str] = None
    link: Optional[str] = None
    ticket_id: Optional[str] = None
    is_read: bool = False
    id: Optional[str] = None

    @property
    def is_team_wide(self) -> bool:
        return self.user_id is None


@dataclass
class DispatchState:
    """
    Last SLA escalation level notified for one (ticket, metric) pair.

    Levels: 0 on_track or met, 1 at_risk, 2 breached.
    """

    ticket_id: str
    metric: str
    level: int = 0
    version: int = 1


@dataclass(frozen=True)
class BadgeCounts:
    """Counts shown on the navigation badges."""

    unread_conversations: int = 0
    urgent_or_breached_tickets: int = 0

    def as_dict(self) -> dict:
        return {
            "unread_conversations": self.unread_conversations,
            "urgent_or_breached_tickets": self.urgent_or_breached_tickets,
        }

    def increases_over(self, previous: "BadgeCounts") -> List[str]:
        """Names of the counts that are strictly higher than in `previous`."""
        old = previous.as_dict()
        return [name for name, value in self.as_dict().items() if value > old[name]]


@dataclass(frozen=True)
class BadgeAlert:
    """Client alert raised when a badge count goes up."""

    sequence: int
    badge: str
    previous: int
    current: int
    raised_at: datetime

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "badge": self.badge,
            "previous": self.previous,
            "current": self.current,
            "raised_at": self.raised_at.isoformat(),
        }


@dataclass
class SweepResult:
    """Outcome of one SLA sweep."""

    evaluated: int = 0
    notifications: List[Notification] = field(default_factory=list)
