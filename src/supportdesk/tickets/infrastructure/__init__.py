"""
Tickets Infrastructure Layer
============================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer with optimistic concurrency
- External: YAML SLA policy with hot reload
"""

from supportdesk.tickets.infrastructure.models import TicketModel, TicketActivityModel
from supportdesk.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyActivityRepository,
)
from supportdesk.tickets.infrastructure.external import SLAConfigManager

__all__ = [
    "TicketModel",
    "TicketActivityModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyActivityRepository",
    "SLAConfigManager",
]
