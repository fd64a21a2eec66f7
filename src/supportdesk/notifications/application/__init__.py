"""
Notifications Application Layer
===============================

Contains:
- Services: dispatcher, notification bell, badge counter and aggregator
- DTOs: Data transfer objects for API serialization
"""

from supportdesk.notifications.application.dto import (
    NotificationResponse,
    NotificationCountResponse,
    BulkUpdateResponse,
    BadgeCountsResponse,
    BadgeAlertResponse,
    BadgeAlertsResponse,
)
from supportdesk.notifications.application.services import (
    NotificationDispatcher,
    NotificationService,
    BadgeCounter,
    BadgeAggregator,
    INotificationRepository,
    IDispatchStateRepository,
    IBadgeCountSource,
)

__all__ = [
    # DTOs
    "NotificationResponse",
    "NotificationCountResponse",
    "BulkUpdateResponse",
    "BadgeCountsResponse",
    "BadgeAlertResponse",
    "BadgeAlertsResponse",
    # Services
    "NotificationDispatcher",
    "NotificationService",
    "BadgeCounter",
    "BadgeAggregator",
    # Interfaces
    "INotificationRepository",
    "IDispatchStateRepository",
    "IBadgeCountSource",
]
