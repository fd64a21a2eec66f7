"""
Ticket Infrastructure Models
============================

SQLAlchemy ORM models for the tickets module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Text, Uuid, Index, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from supportdesk.infrastructure.database import Base
from supportdesk.config import Priority, TicketStatus


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Owning conversation in the support inbox
    conversation_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("conversations.id"), nullable=False, index=True
    )

    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="support")
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=TicketStatus.NEW, index=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # SLA tracking
    first_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_first_response_due: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sla_resolution_due: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Optimistic concurrency token, bumped by every conditional update
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class TicketActivityModel(Base):
    """
    Database model for ticket activity entries.

    Maps to the 'ticket_activity' table. Rows are append-only.
    """
    __tablename__ = "ticket_activity"

    # Insertion order; breaks ties between entries written in the same instant
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )

    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_ticket_activity_ticket_created", "ticket_id", "created_at"),
    )
