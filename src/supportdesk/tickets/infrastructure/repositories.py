"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of repository interfaces using SQLAlchemy.

Every ticket mutation is a conditional UPDATE guarded by the row's
version, so concurrent writers cannot silently overwrite each other.
"""

from dataclasses import replace
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, case, and_
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.config import Priority, OPEN_STATUSES
from supportdesk.core import (
    as_utc, ResourceNotFoundException, ConcurrentModificationException
)
from supportdesk.tickets.application.services import ITicketRepository, IActivityRepository
from supportdesk.tickets.domain import Ticket, ActivityEntry, ACTIVITY_VARIANTS
from supportdesk.tickets.infrastructure.models import TicketModel, TicketActivityModel


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(value)
    except (ValueError, TypeError, AttributeError):
        return None


_PRIORITY_ORDER = case(
    {Priority.URGENT: 1, Priority.HIGH: 2, Priority.MEDIUM: 3, Priority.LOW: 4},
    value=TicketModel.priority,
    else_=5,
)

_SORTS = {
    "newest": (TicketModel.created_at.desc(),),
    "oldest": (TicketModel.created_at.asc(),),
    "priority": (_PRIORITY_ORDER, TicketModel.created_at.desc()),
    "updated": (TicketModel.updated_at.desc(),),
}


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: TicketModel) -> Ticket:
        return Ticket(
            id=str(model.id),
            conversation_id=model.conversation_id,
            subject=model.subject,
            priority=model.priority,
            category=model.category,
            status=model.status,
            assigned_to=model.assigned_to,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
            sla_first_response_due=as_utc(model.sla_first_response_due),
            sla_resolution_due=as_utc(model.sla_resolution_due),
            first_response_at=as_utc(model.first_response_at),
            resolved_at=as_utc(model.resolved_at),
            closed_at=as_utc(model.closed_at),
            version=model.version,
        )

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID."""
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def create(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket."""
        model = TicketModel(
            id=UUID(ticket.id),
            conversation_id=ticket.conversation_id,
            subject=ticket.subject,
            category=ticket.category,
            priority=ticket.priority,
            status=ticket.status,
            assigned_to=ticket.assigned_to,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            first_response_at=ticket.first_response_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            sla_first_response_due=ticket.sla_first_response_due,
            sla_resolution_due=ticket.sla_resolution_due,
            version=ticket.version,
        )

        self._session.add(model)
        await self._session.flush()

        return self._to_domain(model)

    async def update(self, ticket: Ticket, expected_version: int) -> Ticket:
        """Conditional update on (id, version); bumps the version."""
        ticket_uuid = _parse_uuid(ticket.id)
        if ticket_uuid is None:
            raise ResourceNotFoundException("Ticket", ticket.id)

        new_version = expected_version + 1
        stmt = (
            update(TicketModel)
            .where(and_(TicketModel.id == ticket_uuid, TicketModel.version == expected_version))
            .values(
                status=ticket.status,
                priority=ticket.priority,
                category=ticket.category,
                assigned_to=ticket.assigned_to,
                updated_at=ticket.updated_at,
                resolved_at=ticket.resolved_at,
                closed_at=ticket.closed_at,
                version=new_version,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            exists = await self._session.scalar(
                select(TicketModel.id).where(TicketModel.id == ticket_uuid)
            )
            if exists is None:
                raise ResourceNotFoundException("Ticket", ticket.id)
            raise ConcurrentModificationException(ticket.id, expected_version)

        return replace(ticket, version=new_version)

    async def stamp_first_response(self, ticket_id: str, timestamp: datetime) -> bool:
        """Set first_response_at only while it is still null."""
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return False

        stmt = (
            update(TicketModel)
            .where(and_(TicketModel.id == ticket_uuid, TicketModel.first_response_at.is_(None)))
            .values(
                first_response_at=timestamp,
                updated_at=timestamp,
                version=TicketModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def latest_for_conversation(self, conversation_id: str) -> Optional[Ticket]:
        """Most recently created ticket of a conversation."""
        stmt = (
            select(TicketModel)
            .where(TicketModel.conversation_id == conversation_id)
            .order_by(TicketModel.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list(
        self,
        filters: dict,
        sort: str = "newest",
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Ticket]:
        """List tickets with filters."""
        stmt = select(TicketModel).execution_options(populate_existing=True)

        # Apply filters
        conditions = []
        if "status" in filters:
            status_list = filters["status"]
            if isinstance(status_list, list):
                conditions.append(TicketModel.status.in_(status_list))
            else:
                conditions.append(TicketModel.status == status_list)

        if "priority" in filters:
            conditions.append(TicketModel.priority == filters["priority"])

        if "assigned_to" in filters:
            if filters["assigned_to"] is None:
                conditions.append(TicketModel.assigned_to.is_(None))
            else:
                conditions.append(TicketModel.assigned_to == filters["assigned_to"])

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(*_SORTS.get(sort, _SORTS["newest"]))
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def list_open(self) -> List[Ticket]:
        return await self.list({"status": list(OPEN_STATUSES)}, sort="oldest")


class SQLAlchemyActivityRepository(IActivityRepository):
    """
    SQLAlchemy implementation of the activity log.

    Variants are stored under their `kind` tag with old/new text values.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, entry: ActivityEntry) -> ActivityEntry:
        """Store an entry and return it with its ID."""
        old_value, new_value = entry.values()
        model = TicketActivityModel(
            ticket_id=UUID(entry.ticket_id),
            actor=entry.actor,
            action=entry.kind,
            old_value=old_value,
            new_value=new_value,
            created_at=entry.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        return replace(entry, id=str(model.id))

    async def list_for_ticket(self, ticket_id: str) -> List[ActivityEntry]:
        """Entries of a ticket, oldest first."""
        ticket_uuid = _parse_uuid(ticket_id)
        if ticket_uuid is None:
            return []

        stmt = (
            select(TicketActivityModel)
            .where(TicketActivityModel.ticket_id == ticket_uuid)
            .order_by(TicketActivityModel.created_at.asc(), TicketActivityModel.id.asc())
        )
        result = await self._session.execute(stmt)

        entries = []
        for model in result.scalars().all():
            variant = ACTIVITY_VARIANTS[model.action]
            entries.append(variant.from_values(
                model.old_value,
                model.new_value,
                id=str(model.id),
                ticket_id=str(model.ticket_id),
                actor=model.actor,
                created_at=as_utc(model.created_at),
            ))

        return entries
