"""
Support Inbox Models
====================

SQLAlchemy model for the conversations owned by the support inbox.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from supportdesk.infrastructure.database import Base
from supportdesk.config import ConversationStatus


class ConversationModel(Base):
    """
    Database model for a customer conversation.

    Maps to the 'conversations' table.
    """
    __tablename__ = "conversations"

    # Identifier assigned by the messaging gateway
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    status: Mapped[str] = mapped_column(String(50), nullable=False, default=ConversationStatus.OPEN)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Customer")
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_message_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
