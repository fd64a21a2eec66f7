"""
Notification Application DTOs
=============================

Pydantic response models for the notification bell and the badges.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from supportdesk.notifications.domain import Notification, BadgeCounts, BadgeAlert


# ========== Type Aliases for Literals ==========
NotificationTypeStr = Literal["ticket_assigned", "sla_warning", "urgent_ticket", "ticket_reply", "system"]
BadgeStr = Literal["unread_conversations", "urgent_or_breached_tickets"]


class NotificationResponse(BaseModel):
    """One notification as shown in the bell."""
    id: str
    type: NotificationTypeStr
    title: str
    message: str
    link: Optional[str] = None
    ticket_id: Optional[str] = None
    team_wide: bool = Field(..., description="Addressed to the whole support team")
    is_read: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            link=notification.link,
            ticket_id=notification.ticket_id,
            team_wide=notification.is_team_wide,
            is_read=notification.is_read,
            created_at=notification.created_at,
        )


class NotificationCountResponse(BaseModel):
    count: int = Field(..., ge=0, description="Unread notifications")


class BulkUpdateResponse(BaseModel):
    """Result of read-all / clear-all."""
    affected: int = Field(..., ge=0)


class BadgeCountsResponse(BaseModel):
    """Navigation badge counts."""
    unread_conversations: int = Field(..., ge=0)
    urgent_or_breached_tickets: int = Field(..., ge=0)
    polled_at: Optional[datetime] = None
    last_alert_sequence: int = 0

    @classmethod
    def from_domain(
        cls,
        counts: BadgeCounts,
        polled_at: Optional[datetime],
        last_alert_sequence: int
    ) -> "BadgeCountsResponse":
        return cls(
            unread_conversations=counts.unread_conversations,
            urgent_or_breached_tickets=counts.urgent_or_breached_tickets,
            polled_at=polled_at,
            last_alert_sequence=last_alert_sequence,
        )


class BadgeAlertResponse(BaseModel):
    """A badge count increase the client should signal."""
    sequence: int
    badge: BadgeStr
    previous: int
    current: int
    raised_at: datetime

    @classmethod
    def from_domain(cls, alert: BadgeAlert) -> "BadgeAlertResponse":
        return cls(
            sequence=alert.sequence,
            badge=alert.badge,
            previous=alert.previous,
            current=alert.current,
            raised_at=alert.raised_at,
        )


class BadgeAlertsResponse(BaseModel):
    alerts: List[BadgeAlertResponse] = Field(default_factory=list)
    last_sequence: int = 0
