"""
Notifications Interfaces Layer
==============================

FastAPI routes for the notification bell (/notifications) and the
navigation badges (/badges).
"""

from supportdesk.notifications.interfaces.controllers import (
    notifications_router, badges_router
)

__all__ = ["notifications_router", "badges_router"]
