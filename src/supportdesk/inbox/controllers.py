"""
Support Inbox Controllers
=========================

Hooks the support inbox calls when conversations change. An inbound
message is recorded first, then handed to the ticket lifecycle so the
responsible agent is notified.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from supportdesk.core import Capability, Clock, Principal
from supportdesk.inbox.domain import Conversation
from supportdesk.inbox.repositories import SQLAlchemySupportInbox
from supportdesk.shared.api.dependencies import (
    require_capability, get_inbox, get_lifecycle_service, get_clock
)
from supportdesk.shared.infrastructure.logging import get_logger
from supportdesk.tickets.application import TicketLifecycleService

logger = get_logger(__name__)
router = APIRouter(prefix="/inbox/conversations", tags=["Inbox"])

require_inbox = require_capability(Capability.INBOX)


class InboundMessageRequest(BaseModel):
    customer_name: Optional[str] = Field(None, max_length=255)


class ConversationAssignRequest(BaseModel):
    user_id: Optional[str] = Field(None, max_length=255, description="Agent id, null to unassign")


class ConversationResponse(BaseModel):
    id: str
    status: str
    customer_name: str
    unread_count: int
    assigned_to: Optional[str] = None
    last_message_time: Optional[datetime] = None

    @classmethod
    def from_domain(cls, conversation: Conversation) -> "ConversationResponse":
        return cls(
            id=conversation.id,
            status=conversation.status,
            customer_name=conversation.customer_name,
            unread_count=conversation.unread_count,
            assigned_to=conversation.assigned_to,
            last_message_time=conversation.last_message_time,
        )


class InboundMessageResponse(BaseModel):
    conversation: ConversationResponse
    ticket_id: Optional[str] = Field(None, description="Current ticket of the conversation, if any")


@router.post(
    "/{conversation_id}/inbound",
    response_model=InboundMessageResponse,
    summary="Record inbound customer message",
    description="""
    Bumps the conversation's unread counter (creating the conversation on
    first contact) and forwards the message to the ticket core, which may
    open a ticket and notifies the assignee.
    """
)
async def record_inbound(
    conversation_id: str,
    request: InboundMessageRequest,
    principal: Principal = Depends(require_inbox),
    inbox: SQLAlchemySupportInbox = Depends(get_inbox),
    lifecycle: TicketLifecycleService = Depends(get_lifecycle_service),
    clock: Clock = Depends(get_clock),
):
    await inbox.record_inbound_message(conversation_id, clock(), customer_name=request.customer_name)
    ticket = await lifecycle.handle_inbound_message(conversation_id)
    conversation = await inbox.get_conversation(conversation_id)

    logger.info(
        "Inbound message recorded",
        extra={
            "conversation_id": conversation_id,
            "ticket_id": ticket.id if ticket else None,
            "unread_count": conversation.unread_count,
        }
    )
    return InboundMessageResponse(
        conversation=ConversationResponse.from_domain(conversation),
        ticket_id=ticket.id if ticket else None,
    )


@router.post(
    "/{conversation_id}/read",
    response_model=ConversationResponse,
    summary="Mark conversation read",
    responses={404: {"description": "Conversation not found"}}
)
async def mark_conversation_read(
    conversation_id: str,
    principal: Principal = Depends(require_inbox),
    inbox: SQLAlchemySupportInbox = Depends(get_inbox),
):
    return ConversationResponse.from_domain(await inbox.mark_read(conversation_id))


@router.post(
    "/{conversation_id}/assign",
    response_model=ConversationResponse,
    summary="Assign conversation",
    responses={404: {"description": "Conversation not found"}}
)
async def assign_conversation(
    conversation_id: str,
    request: ConversationAssignRequest,
    principal: Principal = Depends(require_inbox),
    inbox: SQLAlchemySupportInbox = Depends(get_inbox),
):
    return ConversationResponse.from_domain(await inbox.assign(conversation_id, request.user_id))


# Export router for inclusion in main app
inbox_router = router
