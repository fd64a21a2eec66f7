"""Schema-level guarantees of the SQLAlchemy repositories."""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from supportdesk.notifications.infrastructure import SQLAlchemyDispatchStateRepository
from supportdesk.tickets.domain import Ticket, Note, Creation
from supportdesk.tickets.infrastructure import TicketModel

from conftest import T0


class TestForeignKeys:
    async def test_ticket_needs_existing_conversation(self, ticket_repo):
        ticket = Ticket(
            id=str(uuid4()),
            conversation_id="conv-missing",
            subject="Subject",
            priority="medium",
            category="support",
            status="new",
            created_at=T0,
            updated_at=T0,
            sla_first_response_due=T0 + timedelta(hours=1),
            sla_resolution_due=T0 + timedelta(hours=24),
        )

        with pytest.raises(IntegrityError):
            await ticket_repo.create(ticket)

    async def test_activity_needs_existing_ticket(self, activity_repo):
        with pytest.raises(IntegrityError):
            await activity_repo.append(
                Note(ticket_id=str(uuid4()), actor="agent-1", created_at=T0, body="Orphan")
            )

    async def test_dispatch_state_needs_existing_ticket(self, session):
        with pytest.raises(IntegrityError):
            await SQLAlchemyDispatchStateRepository(session).initialize(str(uuid4()))

    async def test_deleting_ticket_keeps_notifications(
        self, session, lifecycle, activity_repo, notification_service, conversation, clock
    ):
        ticket = await lifecycle.create_ticket(conversation, "Subject")
        clock.advance(minutes=1)
        await lifecycle.assign(ticket.id, "agent-7", "lead-1")

        await session.execute(delete(TicketModel).where(TicketModel.id == UUID(ticket.id)))
        session.expire_all()

        assert await activity_repo.list_for_ticket(ticket.id) == []
        notifications = await notification_service.get_notifications("agent-7")
        assert [n.type for n in notifications] == ["ticket_assigned"]
        assert notifications[0].ticket_id is None


class TestActivityOrdering:
    async def test_same_instant_entries_keep_insertion_order(self, lifecycle, activity_repo, conversation):
        ticket = await lifecycle.create_ticket(conversation, "Subject")

        for body in ("first", "second", "third"):
            await lifecycle.add_note(ticket.id, body, "agent-1")

        activity = await activity_repo.list_for_ticket(ticket.id)

        assert isinstance(activity[0], Creation)
        assert [e.body for e in activity[1:]] == ["first", "second", "third"]
        assert len({e.created_at for e in activity}) == 1
