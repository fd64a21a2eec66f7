"""
Tickets Application Layer
=========================

Application layer for the ticket lifecycle.

Contains:
- Services: lifecycle commands and read queries
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from supportdesk.tickets.application.dto import (
    TicketCreateRequest,
    TransitionRequest,
    AssignRequest,
    TicketUpdateRequest,
    NoteCreateRequest,
    MetricSLAResponse,
    TicketResponse,
    ActivityResponse,
    TicketDetailResponse,
    ComplianceResponse,
    TicketStatsResponse,
)
from supportdesk.tickets.application.services import (
    TicketLifecycleService,
    TicketQueryService,
    TicketStats,
    ITicketRepository,
    IActivityRepository,
    ISLAConfigProvider,
    ITicketEventListener,
)

__all__ = [
    # DTOs
    "TicketCreateRequest",
    "TransitionRequest",
    "AssignRequest",
    "TicketUpdateRequest",
    "NoteCreateRequest",
    "MetricSLAResponse",
    "TicketResponse",
    "ActivityResponse",
    "TicketDetailResponse",
    "ComplianceResponse",
    "TicketStatsResponse",
    # Services
    "TicketLifecycleService",
    "TicketQueryService",
    "TicketStats",
    # Interfaces
    "ITicketRepository",
    "IActivityRepository",
    "ISLAConfigProvider",
    "ITicketEventListener",
]
