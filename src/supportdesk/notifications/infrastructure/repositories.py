"""
Notification Infrastructure Repositories
========================================

SQLAlchemy implementations of the notification and dispatch state
repositories.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, delete, func, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.config import VALID_SLA_METRICS
from supportdesk.core import as_utc
from supportdesk.notifications.application.services import (
    INotificationRepository, IDispatchStateRepository
)
from supportdesk.notifications.domain import Notification, DispatchState
from supportdesk.notifications.infrastructure.models import NotificationModel, SLADispatchStateModel


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(value)
    except (ValueError, TypeError, AttributeError):
        return None


class SQLAlchemyNotificationRepository(INotificationRepository):
    """
    SQLAlchemy implementation of notification repository.

    A user sees notifications addressed to them plus the team-wide ones.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _visible_to(user_id: str):
        return or_(NotificationModel.user_id == user_id, NotificationModel.user_id.is_(None))

    @staticmethod
    def _to_domain(model: NotificationModel) -> Notification:
        return Notification(
            id=str(model.id),
            user_id=model.user_id,
            type=model.type,
            title=model.title,
            message=model.message,
            link=model.link,
            ticket_id=str(model.ticket_id) if model.ticket_id else None,
            is_read=model.is_read,
            created_at=as_utc(model.created_at),
        )

    async def create(self, notification: Notification) -> Notification:
        model = NotificationModel(
            user_id=notification.user_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            link=notification.link,
            ticket_id=_parse_uuid(notification.ticket_id),
            is_read=notification.is_read,
            created_at=notification.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        notification.id = str(model.id)
        return notification

    async def list_for_user(self, user_id: str, limit: int = 20, unread_only: bool = False) -> List[Notification]:
        stmt = select(NotificationModel).where(self._visible_to(user_id))
        if unread_only:
            stmt = stmt.where(NotificationModel.is_read.is_(False))

        stmt = stmt.order_by(NotificationModel.created_at.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def count_unread(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(NotificationModel)
            .where(and_(self._visible_to(user_id), NotificationModel.is_read.is_(False)))
        )
        return (await self._session.scalar(stmt)) or 0

    async def mark_read(self, user_id: str, notification_id: str) -> bool:
        notification_uuid = _parse_uuid(notification_id)
        if notification_uuid is None:
            return False

        stmt = (
            update(NotificationModel)
            .where(and_(NotificationModel.id == notification_uuid, self._visible_to(user_id)))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def mark_all_read(self, user_id: str) -> int:
        stmt = (
            update(NotificationModel)
            .where(and_(self._visible_to(user_id), NotificationModel.is_read.is_(False)))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete(self, user_id: str, notification_id: str) -> bool:
        notification_uuid = _parse_uuid(notification_id)
        if notification_uuid is None:
            return False

        stmt = (
            delete(NotificationModel)
            .where(and_(NotificationModel.id == notification_uuid, self._visible_to(user_id)))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def clear_all(self, user_id: str) -> int:
        stmt = (
            delete(NotificationModel)
            .where(self._visible_to(user_id))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount


class SQLAlchemyDispatchStateRepository(IDispatchStateRepository):
    """
    SQLAlchemy implementation of the SLA dispatch dedup state.

    Level changes are conditional updates on (level, version); a lost race
    shows up as zero affected rows.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: SLADispatchStateModel) -> DispatchState:
        return DispatchState(
            ticket_id=str(model.ticket_id),
            metric=model.metric,
            level=model.level,
            version=model.version,
        )

    async def _get(self, ticket_uuid: UUID, metric: str) -> Optional[DispatchState]:
        stmt = (
            select(SLADispatchStateModel)
            .where(and_(
                SLADispatchStateModel.ticket_id == ticket_uuid,
                SLADispatchStateModel.metric == metric,
            ))
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def initialize(self, ticket_id: str) -> None:
        ticket_uuid = UUID(ticket_id)
        for metric in VALID_SLA_METRICS:
            self._session.add(SLADispatchStateModel(
                ticket_id=ticket_uuid,
                metric=metric,
                level=0,
                version=1,
                updated_at=datetime.now(timezone.utc),
            ))
        await self._session.flush()

    async def ensure(self, ticket_id: str, metric: str) -> DispatchState:
        ticket_uuid = UUID(ticket_id)
        state = await self._get(ticket_uuid, metric)
        if state is not None:
            return state

        # Tickets created before dispatch state existed get their row lazily
        try:
            async with self._session.begin_nested():
                self._session.add(SLADispatchStateModel(
                    ticket_id=ticket_uuid,
                    metric=metric,
                    level=0,
                    version=1,
                    updated_at=datetime.now(timezone.utc),
                ))
        except IntegrityError:
            # A concurrent sweep inserted the row first, unless the ticket is gone
            state = await self._get(ticket_uuid, metric)
            if state is None:
                raise
            return state

        return await self._get(ticket_uuid, metric)

    async def compare_and_set(self, state: DispatchState, new_level: int) -> bool:
        stmt = (
            update(SLADispatchStateModel)
            .where(and_(
                SLADispatchStateModel.ticket_id == UUID(state.ticket_id),
                SLADispatchStateModel.metric == state.metric,
                SLADispatchStateModel.level == state.level,
                SLADispatchStateModel.version == state.version,
            ))
            .values(
                level=new_level,
                version=state.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1
