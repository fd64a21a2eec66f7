"""
Notification Infrastructure Models
==================================

SQLAlchemy ORM models for the notifications module.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Boolean, Integer, Text, Uuid, Index, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from supportdesk.infrastructure.database import Base


class NotificationModel(Base):
    """
    Database model for Notification entity.

    Maps to the 'notifications' table. A null user_id is the team-wide queue.
    """
    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ticket_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True
    )

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )


class SLADispatchStateModel(Base):
    """
    Last SLA escalation level notified per (ticket, metric).

    Maps to the 'sla_dispatch_state' table.
    """
    __tablename__ = "sla_dispatch_state"

    ticket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), primary_key=True
    )
    metric: Mapped[str] = mapped_column(String(50), primary_key=True)

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
