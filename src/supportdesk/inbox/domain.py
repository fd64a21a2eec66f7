"""
Support Inbox Port
==================

The slice of the support inbox the ticket core relies on.

Conversations are owned by the inbox; the core reads them and asks the
inbox to mark them read, but never edits them directly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Conversation:
    """A customer conversation as seen by the ticket core."""

    id: str
    status: str
    customer_name: str
    unread_count: int = 0
    assigned_to: Optional[str] = None
    last_message_time: Optional[datetime] = None


class ISupportInbox(ABC):
    """Interface for the support inbox."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation, or None when it does not exist."""

    @abstractmethod
    async def mark_read(self, conversation_id: str) -> Conversation:
        """Reset the unread counter of a conversation."""

    @abstractmethod
    async def unread_count(self, assigned_to: Optional[str] = None) -> int:
        """Number of conversations that are not closed and have unread messages."""

    @abstractmethod
    async def record_inbound_message(
        self,
        conversation_id: str,
        received_at: datetime,
        customer_name: Optional[str] = None,
    ) -> Conversation:
        """Register an inbound customer message, creating the conversation if needed."""
