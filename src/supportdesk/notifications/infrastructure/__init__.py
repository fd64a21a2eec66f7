"""
Notifications Infrastructure Layer
==================================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: Slack webhook fan-out with circuit breaker
"""

from supportdesk.notifications.infrastructure.models import NotificationModel, SLADispatchStateModel
from supportdesk.notifications.infrastructure.repositories import (
    SQLAlchemyNotificationRepository,
    SQLAlchemyDispatchStateRepository,
)
from supportdesk.notifications.infrastructure.external import AlertWebhookClient, CircuitBreaker

__all__ = [
    "NotificationModel",
    "SLADispatchStateModel",
    "SQLAlchemyNotificationRepository",
    "SQLAlchemyDispatchStateRepository",
    "AlertWebhookClient",
    "CircuitBreaker",
]
