"""
Notifications Domain Layer
==========================

Contains:
- Notification: a bell entry for one user or the team-wide queue
- DispatchState: per (ticket, metric) escalation level already notified
- BadgeCounts / BadgeAlert: navigation badge figures and increase alerts
"""

from supportdesk.notifications.domain.entities import (
    Notification,
    DispatchState,
    BadgeCounts,
    BadgeAlert,
    SweepResult,
)

__all__ = [
    "Notification",
    "DispatchState",
    "BadgeCounts",
    "BadgeAlert",
    "SweepResult",
]
