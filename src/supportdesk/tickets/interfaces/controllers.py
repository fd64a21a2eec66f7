"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for the ticket lifecycle.

Controllers are thin - they delegate to application services. Domain
errors propagate to the application exception handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from supportdesk.core import Capability, Principal, ValidationException
from supportdesk.shared.api.dependencies import (
    require_capability, get_lifecycle_service, get_query_service
)
from supportdesk.tickets.application import (
    TicketLifecycleService, TicketQueryService,
    TicketCreateRequest, TransitionRequest, AssignRequest,
    TicketUpdateRequest, NoteCreateRequest,
    TicketResponse, TicketDetailResponse, ActivityResponse,
    MetricSLAResponse, ComplianceResponse, TicketStatsResponse,
)
from supportdesk.tickets.application.dto import TicketSortStr
from supportdesk.tickets.domain import ComplianceResult, Ticket

router = APIRouter(prefix="/tickets", tags=["Tickets"])

require_tickets = require_capability(Capability.TICKETS)


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "conversation_id": "tg-5512093",
    "subject": "Withdrawal stuck in pending",
    "priority": "urgent",
    "category": "payments"
}

TICKET_RESPONSE_EXAMPLE = {
    "id": "123e4567-e89b-12d3-a456-426614174000",
    "conversation_id": "tg-5512093",
    "subject": "Withdrawal stuck in pending",
    "priority": "urgent",
    "category": "payments",
    "status": "new",
    "assigned_to": None,
    "created_at": "2024-01-15T10:00:00Z",
    "updated_at": "2024-01-15T10:00:00Z",
    "first_response_at": None,
    "resolved_at": None,
    "closed_at": None,
    "sla_first_response_due": "2024-01-15T11:00:00Z",
    "sla_resolution_due": "2024-01-15T12:00:00Z",
    "version": 1,
    "sla_first_response_status": "on_track",
    "sla_resolution_status": "on_track",
    "sla_overall_status": "on_track"
}


def _compliance(result: ComplianceResult) -> ComplianceResponse:
    # No concluded instance yet counts as fully compliant for display
    percentage = result.percentage
    return ComplianceResponse(
        percentage=round(percentage, 2) if percentage is not None else 100.0,
        met=result.met,
        sample_size=result.total,
    )


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=List[TicketResponse],
    summary="List tickets",
    description="""
    List tickets with their current SLA states.

    **Filters**: `status`, `priority` (each also accepts `all`), `assigned`
    (a user id or `unassigned`).

    **Sort**: `newest` (default), `oldest`, `priority` (urgent first), `updated`.
    """
)
async def list_tickets(
    ticket_status: Optional[str] = Query(None, alias="status", description="Ticket status or 'all'"),
    priority: Optional[str] = Query(None, description="Ticket priority or 'all'"),
    assigned: Optional[str] = Query(None, description="Assignee user id or 'unassigned'"),
    sort: TicketSortStr = Query("newest", description="Sort order"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_tickets),
    service: TicketQueryService = Depends(get_query_service),
):
    rows = await service.list_tickets(
        status=ticket_status,
        priority=priority,
        assigned=assigned,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    return [TicketResponse.from_domain(ticket, evaluation) for ticket, evaluation in rows]


@router.get(
    "/stats",
    response_model=TicketStatsResponse,
    summary="Ticket statistics",
    description="""
    Counts by status, open/urgent/breached counts, open tickets per priority,
    average first-response and resolution hours, SLA compliance per metric
    and the active SLA policy.

    Compliance counts only concluded SLA instances; with none it is reported
    as 100 with `sample_size` 0.
    """
)
async def get_ticket_stats(
    principal: Principal = Depends(require_tickets),
    service: TicketQueryService = Depends(get_query_service),
):
    stats = await service.get_stats()
    return TicketStatsResponse(
        by_status=stats.by_status,
        by_priority=stats.by_priority,
        open_count=stats.open_count,
        urgent_count=stats.urgent_count,
        breached_count=stats.breached_count,
        avg_first_response_hours=stats.avg_first_response_hours,
        avg_resolution_hours=stats.avg_resolution_hours,
        first_response_compliance=_compliance(stats.first_response_compliance),
        resolution_compliance=_compliance(stats.resolution_compliance),
        sla_policy=stats.sla_policy,
    )


@router.get(
    "/by-conversation/{conversation_id}",
    response_model=Optional[TicketResponse],
    summary="Latest ticket of a conversation",
    description="Returns `null` when the conversation has no ticket."
)
async def get_ticket_by_conversation(
    conversation_id: str,
    principal: Principal = Depends(require_tickets),
    service: TicketQueryService = Depends(get_query_service),
):
    row = await service.get_by_conversation(conversation_id)
    if row is None:
        return None
    return TicketResponse.from_domain(*row)


@router.get(
    "/{ticket_id}",
    response_model=TicketDetailResponse,
    summary="Get ticket",
    description="Ticket with its full SLA evaluation and activity history.",
    responses={404: {"description": "Ticket not found"}}
)
async def get_ticket(
    ticket_id: str,
    principal: Principal = Depends(require_tickets),
    service: TicketQueryService = Depends(get_query_service),
):
    ticket, evaluation, activity = await service.get_ticket(ticket_id)
    return TicketDetailResponse(
        ticket=TicketResponse.from_domain(ticket, evaluation),
        first_response_sla=MetricSLAResponse.from_domain(evaluation.first_response),
        resolution_sla=MetricSLAResponse.from_domain(evaluation.resolution),
        next_deadline=evaluation.next_deadline,
        activity=[ActivityResponse.from_domain(entry) for entry in activity],
    )


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a ticket",
    description="""
    Open a ticket on an existing support conversation.

    SLA deadlines are computed from the priority at creation time and
    never change afterwards.

    **Priority Levels**: `low`, `medium`, `high`, `urgent`
    """,
    responses={
        201: {
            "description": "Ticket created",
            "content": {"application/json": {"example": TICKET_RESPONSE_EXAMPLE}}
        },
        404: {"description": "Conversation not found"}
    }
)
async def create_ticket(
    request: TicketCreateRequest,
    principal: Principal = Depends(require_tickets),
    lifecycle: TicketLifecycleService = Depends(get_lifecycle_service),
    query: TicketQueryService = Depends(get_query_service),
):
    ticket = await lifecycle.create_ticket(
        request.conversation_id,
        request.subject,
        priority=request.priority,
        category=request.category,
        actor=principal.user_id,
    )
    return _ticket_response(query, ticket)


@router.post(
    "/{ticket_id}/transition",
    response_model=TicketResponse,
    summary="Change ticket status",
    description="""
    Move a ticket along the status graph:

    `new -> in_progress`, `in_progress <-> waiting_customer`,
    `in_progress | waiting_customer -> resolved`, `resolved -> closed`,
    `closed -> in_progress` (reopen).

    Other edges fail with 409 `invalid_transition`; a stale
    `expected_version` fails with 409 `concurrent_modification`.
    """
)
async def transition_ticket(
    ticket_id: str,
    request: TransitionRequest,
    principal: Principal = Depends(require_tickets),
    lifecycle: TicketLifecycleService = Depends(get_lifecycle_service),
    query: TicketQueryService = Depends(get_query_service),
):
    ticket = await lifecycle.transition(
        ticket_id, request.status, principal.user_id, expected_version=request.expected_version
    )
    return _ticket_response(query, ticket)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketResponse,
    summary="Assign ticket",
    description="Set the assignee, or clear it with `user_id: null`. The new assignee is notified."
)
async def assign_ticket(
    ticket_id: str,
    request: AssignRequest,
    principal: Principal = Depends(require_tickets),
    lifecycle: TicketLifecycleService = Depends(get_lifecycle_service),
    query: TicketQueryService = Depends(get_query_service),
):
    ticket = await lifecycle.assign(
        ticket_id, request.user_id, principal.user_id, expected_version=request.expected_version
    )
    return _ticket_response(query, ticket)


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Update priority or category",
    description="SLA deadlines are not recomputed when the priority changes."
)
async def update_ticket(
    ticket_id: str,
    request: TicketUpdateRequest,
    principal: Principal = Depends(require_tickets),
    lifecycle: TicketLifecycleService = Depends(get_lifecycle_service),
    query: TicketQueryService = Depends(get_query_service),
):
    expected_version = request.expected_version
    if request.priority is None and request.category is None:
        raise ValidationException("Nothing to update: provide priority or category")

    if request.priority is not None:
        ticket = await lifecycle.change_priority(
            ticket_id, request.priority, principal.user_id, expected_version=expected_version
        )
        expected_version = ticket.version if expected_version is not None else None
    if request.category is not None:
        ticket = await lifecycle.change_category(
            ticket_id, request.category, principal.user_id, expected_version=expected_version
        )
    return _ticket_response(query, ticket)


@router.post(
    "/{ticket_id}/first-response",
    response_model=TicketResponse,
    summary="Record first response",
    description="Idempotent: only the first call stamps `first_response_at`."
)
async def record_first_response(
    ticket_id: str,
    principal: Principal = Depends(require_tickets),
    lifecycle: TicketLifecycleService = Depends(get_lifecycle_service),
    query: TicketQueryService = Depends(get_query_service),
):
    ticket = await lifecycle.record_first_response(ticket_id, principal.user_id)
    return _ticket_response(query, ticket)


@router.post(
    "/{ticket_id}/notes",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add internal note"
)
async def add_note(
    ticket_id: str,
    request: NoteCreateRequest,
    principal: Principal = Depends(require_tickets),
    lifecycle: TicketLifecycleService = Depends(get_lifecycle_service),
):
    note = await lifecycle.add_note(ticket_id, request.body, principal.user_id)
    return ActivityResponse.from_domain(note)


def _ticket_response(query: TicketQueryService, ticket: Ticket) -> TicketResponse:
    return TicketResponse.from_domain(ticket, query.evaluate(ticket))


# Export router for inclusion in main app
tickets_router = router
