"""
Shared API Dependencies
=======================

FastAPI dependencies wiring request-scoped services to the session and
to the process-wide objects kept on `app.state` (SLA policy manager,
badge aggregator, clock).
"""

from typing import Callable, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.core import (
    Clock, Principal, utc_now, AccessDeniedException
)
from supportdesk.infrastructure.database import get_session
from supportdesk.inbox.repositories import SQLAlchemySupportInbox
from supportdesk.notifications.application import (
    NotificationDispatcher, NotificationService, BadgeAggregator, BadgeCounter
)
from supportdesk.notifications.infrastructure import (
    SQLAlchemyNotificationRepository, SQLAlchemyDispatchStateRepository
)
from supportdesk.tickets.application import (
    TicketLifecycleService, TicketQueryService, ISLAConfigProvider
)
from supportdesk.tickets.infrastructure import (
    SQLAlchemyTicketRepository, SQLAlchemyActivityRepository
)


# ========== Process-wide objects ==========

def get_config_provider(request: Request) -> ISLAConfigProvider:
    return request.app.state.sla_config


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", utc_now)


def get_badge_aggregator(request: Request) -> BadgeAggregator:
    return request.app.state.badge_aggregator


# ========== Caller identity ==========

async def get_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Principal:
    """
    Identity forwarded by the UI shell.

    Authentication happens upstream; this only turns the forwarded headers
    into a capability set.
    """
    if not x_user_id:
        raise AccessDeniedException("Missing X-User-Id header")
    return Principal.for_role(x_user_id, x_user_role)


def require_capability(capability: str) -> Callable:
    """Dependency factory rejecting callers without `capability`."""

    async def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.can(capability):
            raise AccessDeniedException(
                f"Capability '{capability}' required",
                {"user_id": principal.user_id, "capability": capability}
            )
        return principal

    return dependency


# ========== Services ==========

def get_dispatcher(
    session: AsyncSession = Depends(get_session),
    config_provider: ISLAConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock),
) -> NotificationDispatcher:
    return NotificationDispatcher(
        SQLAlchemyNotificationRepository(session),
        SQLAlchemyDispatchStateRepository(session),
        SQLAlchemyTicketRepository(session),
        config_provider,
        clock=clock,
    )


def get_lifecycle_service(
    session: AsyncSession = Depends(get_session),
    config_provider: ISLAConfigProvider = Depends(get_config_provider),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> TicketLifecycleService:
    return TicketLifecycleService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyActivityRepository(session),
        SQLAlchemySupportInbox(session),
        config_provider,
        listener=dispatcher,
        clock=clock,
    )


def get_query_service(
    session: AsyncSession = Depends(get_session),
    config_provider: ISLAConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock),
) -> TicketQueryService:
    return TicketQueryService(
        SQLAlchemyTicketRepository(session),
        SQLAlchemyActivityRepository(session),
        config_provider,
        clock=clock,
    )


def get_notification_service(session: AsyncSession = Depends(get_session)) -> NotificationService:
    return NotificationService(SQLAlchemyNotificationRepository(session))


def get_inbox(session: AsyncSession = Depends(get_session)) -> SQLAlchemySupportInbox:
    return SQLAlchemySupportInbox(session)


def get_badge_counter(
    session: AsyncSession = Depends(get_session),
    config_provider: ISLAConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock),
) -> BadgeCounter:
    return BadgeCounter(
        SQLAlchemySupportInbox(session),
        SQLAlchemyTicketRepository(session),
        config_provider,
        clock=clock,
    )
