"""
Notification Controllers (API Routes)
=====================================

FastAPI routes for the notification bell and the navigation badges.

Every bell operation acts on the caller's visible set: notifications
addressed to the caller plus team-wide ones.
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, status

from supportdesk.config import settings
from supportdesk.core import Capability, Clock, Principal
from supportdesk.notifications.application import (
    NotificationService, BadgeAggregator, BadgeCounter,
    NotificationResponse, NotificationCountResponse, BulkUpdateResponse,
    BadgeCountsResponse, BadgeAlertResponse, BadgeAlertsResponse,
)
from supportdesk.shared.api.dependencies import (
    get_principal, require_capability, get_notification_service,
    get_badge_aggregator, get_badge_counter, get_clock
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])
badges = APIRouter(prefix="/badges", tags=["Badges"])

require_notifications = require_capability(Capability.NOTIFICATIONS)


NOTIFICATION_RESPONSE_EXAMPLE = {
    "id": "8d0f6a51-4d0c-4c55-9a57-6a2f1e0c9b11",
    "type": "sla_warning",
    "title": "SLA at risk: Withdrawal stuck in pending",
    "message": "First response due at 2024-01-15T11:00:00+00:00",
    "link": "/tickets/123e4567-e89b-12d3-a456-426614174000",
    "ticket_id": "123e4567-e89b-12d3-a456-426614174000",
    "team_wide": False,
    "is_read": False,
    "created_at": "2024-01-15T10:48:00Z"
}


# ========== Notification bell ==========

@router.get(
    "",
    response_model=List[NotificationResponse],
    summary="List notifications",
    description="Newest first. Includes team-wide notifications.",
    responses={
        200: {
            "description": "Notifications visible to the caller",
            "content": {"application/json": {"example": [NOTIFICATION_RESPONSE_EXAMPLE]}}
        }
    }
)
async def list_notifications(
    limit: int = Query(20, ge=1, le=200),
    unread_only: bool = Query(False),
    principal: Principal = Depends(require_notifications),
    service: NotificationService = Depends(get_notification_service),
):
    notifications = await service.get_notifications(
        principal.user_id, limit=limit, unread_only=unread_only
    )
    return [NotificationResponse.from_domain(n) for n in notifications]


@router.get("/count", response_model=NotificationCountResponse, summary="Unread notification count")
async def count_notifications(
    principal: Principal = Depends(require_notifications),
    service: NotificationService = Depends(get_notification_service),
):
    return NotificationCountResponse(count=await service.get_notification_count(principal.user_id))


@router.put(
    "/read-all",
    response_model=BulkUpdateResponse,
    summary="Mark all notifications read"
)
async def mark_all_read(
    principal: Principal = Depends(require_notifications),
    service: NotificationService = Depends(get_notification_service),
):
    return BulkUpdateResponse(affected=await service.mark_all_read(principal.user_id))


@router.put(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark notification read",
    responses={404: {"description": "Notification not found or not visible"}}
)
async def mark_read(
    notification_id: str,
    principal: Principal = Depends(require_notifications),
    service: NotificationService = Depends(get_notification_service),
):
    await service.mark_notification_read(principal.user_id, notification_id)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete notification",
    responses={404: {"description": "Notification not found or not visible"}}
)
async def delete_notification(
    notification_id: str,
    principal: Principal = Depends(require_notifications),
    service: NotificationService = Depends(get_notification_service),
):
    await service.delete_notification(principal.user_id, notification_id)


@router.delete("", response_model=BulkUpdateResponse, summary="Clear all notifications")
async def clear_notifications(
    principal: Principal = Depends(require_notifications),
    service: NotificationService = Depends(get_notification_service),
):
    return BulkUpdateResponse(affected=await service.clear_all(principal.user_id))


# ========== Badges ==========

def _is_stale(aggregator: BadgeAggregator, now: datetime) -> bool:
    interval = settings.badge_poll_interval
    if aggregator.polled_at is None or interval == 0:
        return True
    # One missed poll is tolerated before a read recomputes the counts
    return (now - aggregator.polled_at).total_seconds() > 2 * interval


@badges.get(
    "",
    response_model=BadgeCountsResponse,
    summary="Navigation badge counts",
    description="""
    Unread conversations and urgent-or-breached open tickets, as of the
    last background poll. Counts may lag by one poll interval; when the
    poll job is disabled or has stalled the counts are recomputed here.
    """
)
async def get_badges(
    principal: Principal = Depends(get_principal),
    aggregator: BadgeAggregator = Depends(get_badge_aggregator),
    counter: BadgeCounter = Depends(get_badge_counter),
    clock: Clock = Depends(get_clock),
):
    if _is_stale(aggregator, clock()):
        await aggregator.poll(counter)
    return BadgeCountsResponse.from_domain(
        aggregator.current, aggregator.polled_at, aggregator.last_sequence
    )


@badges.get(
    "/alerts",
    response_model=BadgeAlertsResponse,
    summary="Badge increase alerts",
    description="Alerts raised after sequence `after`; clients pass the last sequence they saw."
)
async def get_badge_alerts(
    after: int = Query(0, ge=0),
    principal: Principal = Depends(get_principal),
    aggregator: BadgeAggregator = Depends(get_badge_aggregator),
):
    return BadgeAlertsResponse(
        alerts=[BadgeAlertResponse.from_domain(a) for a in aggregator.alerts_after(after)],
        last_sequence=aggregator.last_sequence,
    )


# Export routers for inclusion in main app
notifications_router = router
badges_router = badges
