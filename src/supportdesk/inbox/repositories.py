"""
Support Inbox Repository
========================

SQLAlchemy-backed implementation of the support inbox port.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.config import ConversationStatus
from supportdesk.core import as_utc, ResourceNotFoundException
from supportdesk.inbox.domain import Conversation, ISupportInbox
from supportdesk.inbox.models import ConversationModel


class SQLAlchemySupportInbox(ISupportInbox):
    """Conversations stored in the 'conversations' table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_domain(model: ConversationModel) -> Conversation:
        return Conversation(
            id=model.id,
            status=model.status,
            customer_name=model.customer_name,
            unread_count=model.unread_count,
            assigned_to=model.assigned_to,
            last_message_time=as_utc(model.last_message_time),
        )

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def mark_read(self, conversation_id: str) -> Conversation:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(unread_count=0)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise ResourceNotFoundException("Conversation", conversation_id)

        return await self.get_conversation(conversation_id)

    async def unread_count(self, assigned_to: Optional[str] = None) -> int:
        conditions = [
            ConversationModel.status != ConversationStatus.CLOSED,
            ConversationModel.unread_count > 0,
        ]
        if assigned_to is not None:
            conditions.append(ConversationModel.assigned_to == assigned_to)

        stmt = select(func.count()).select_from(ConversationModel).where(and_(*conditions))
        return (await self._session.scalar(stmt)) or 0

    async def record_inbound_message(
        self,
        conversation_id: str,
        received_at: datetime,
        customer_name: Optional[str] = None,
    ) -> Conversation:
        """Bump the unread counter; a closed conversation is reopened."""
        values = {
            "unread_count": ConversationModel.unread_count + 1,
            "last_message_time": received_at,
            "status": ConversationStatus.OPEN,
        }
        if customer_name:
            values["customer_name"] = customer_name

        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            self._session.add(ConversationModel(
                id=conversation_id,
                status=ConversationStatus.OPEN,
                customer_name=customer_name or "Customer",
                unread_count=1,
                last_message_time=received_at,
                created_at=received_at,
            ))
            await self._session.flush()

        return await self.get_conversation(conversation_id)

    async def assign(self, conversation_id: str, user_id: Optional[str]) -> Conversation:
        """Set the agent responsible for a conversation."""
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(assigned_to=user_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise ResourceNotFoundException("Conversation", conversation_id)

        return await self.get_conversation(conversation_id)
