"""Shared fixtures: in-memory SQLite database, a controllable clock and wired services."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from supportdesk.infrastructure.database import Base, enforce_sqlite_foreign_keys
from supportdesk.inbox.models import ConversationModel
from supportdesk.inbox.repositories import SQLAlchemySupportInbox
from supportdesk.notifications.application import (
    NotificationDispatcher, NotificationService, BadgeCounter
)
from supportdesk.notifications.infrastructure import (
    SQLAlchemyNotificationRepository, SQLAlchemyDispatchStateRepository
)
from supportdesk.tickets.application import TicketLifecycleService, TicketQueryService
from supportdesk.tickets.domain import SLAConfig
from supportdesk.tickets.infrastructure import (
    SLAConfigManager, SQLAlchemyTicketRepository, SQLAlchemyActivityRepository
)

# Registers the remaining tables on Base.metadata
import supportdesk.tickets.infrastructure.models  # noqa: F401
import supportdesk.notifications.infrastructure.models  # noqa: F401

T0 = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enforce_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with maker() as session:
        yield session


@pytest.fixture
def config_provider():
    return SLAConfigManager(SLAConfig())


@pytest.fixture
def inbox(session):
    return SQLAlchemySupportInbox(session)


@pytest.fixture
def ticket_repo(session):
    return SQLAlchemyTicketRepository(session)


@pytest.fixture
def activity_repo(session):
    return SQLAlchemyActivityRepository(session)


@pytest.fixture
def notification_repo(session):
    return SQLAlchemyNotificationRepository(session)


@pytest.fixture
def dispatcher(session, ticket_repo, notification_repo, config_provider, clock):
    return NotificationDispatcher(
        notification_repo,
        SQLAlchemyDispatchStateRepository(session),
        ticket_repo,
        config_provider,
        clock=clock,
    )


@pytest.fixture
def lifecycle(ticket_repo, activity_repo, inbox, config_provider, dispatcher, clock):
    return TicketLifecycleService(
        ticket_repo,
        activity_repo,
        inbox,
        config_provider,
        listener=dispatcher,
        clock=clock,
        auto_create_tickets=False,
    )


@pytest.fixture
def query(ticket_repo, activity_repo, config_provider, clock):
    return TicketQueryService(ticket_repo, activity_repo, config_provider, clock=clock)


@pytest.fixture
def notification_service(notification_repo):
    return NotificationService(notification_repo)


@pytest.fixture
def badge_counter(inbox, ticket_repo, config_provider, clock):
    return BadgeCounter(inbox, ticket_repo, config_provider, clock=clock)


@pytest.fixture
def add_conversation(session):
    async def _add(conversation_id: str = "conv-1", customer_name: str = "Alice",
                   assigned_to=None, unread_count: int = 0):
        session.add(ConversationModel(
            id=conversation_id,
            status="open",
            customer_name=customer_name,
            assigned_to=assigned_to,
            unread_count=unread_count,
            last_message_time=T0,
            created_at=T0,
        ))
        await session.flush()
        return conversation_id

    return _add


@pytest.fixture
async def conversation(add_conversation):
    return await add_conversation()
