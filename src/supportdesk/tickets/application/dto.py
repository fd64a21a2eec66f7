"""
Ticket Application DTOs
=======================

Data Transfer Objects for the tickets API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional, Literal
from datetime import datetime

from supportdesk.tickets.domain import (
    Ticket, SLAEvaluation, MetricEvaluation, ActivityEntry, Note
)


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["low", "medium", "high", "urgent"]
TicketStatusStr = Literal["new", "in_progress", "waiting_customer", "resolved", "closed"]
SLAStateStr = Literal["on_track", "at_risk", "breached", "met"]
TicketSortStr = Literal["newest", "oldest", "priority", "updated"]


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """Request model for opening a ticket on a conversation."""
    conversation_id: str = Field(..., min_length=1, description="Support inbox conversation")
    subject: str = Field(..., min_length=1, max_length=500, description="Ticket subject")
    priority: PriorityStr = Field(default="medium", description="Ticket priority")
    category: str = Field(default="support", min_length=1, max_length=100, description="Ticket category")

    @field_validator("subject", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class TransitionRequest(BaseModel):
    """Request model for a status change."""
    status: TicketStatusStr = Field(..., description="Target status")
    expected_version: Optional[int] = Field(
        None, ge=1, description="Version the caller last read; stale versions are rejected"
    )


class AssignRequest(BaseModel):
    """Request model for (un)assigning a ticket."""
    user_id: Optional[str] = Field(None, description="Assignee user id, null to unassign")
    expected_version: Optional[int] = Field(None, ge=1)


class TicketUpdateRequest(BaseModel):
    """Request model for priority / category edits."""
    priority: Optional[PriorityStr] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    expected_version: Optional[int] = Field(None, ge=1)


class NoteCreateRequest(BaseModel):
    """Request model for an internal note."""
    body: str = Field(..., min_length=1, description="Note text")


# ========== Response DTOs ==========

class MetricSLAResponse(BaseModel):
    """SLA status of one clock."""
    deadline: datetime
    state: SLAStateStr
    remaining_seconds: float = Field(..., description="Time remaining (0 if breached/met)")
    percentage_remaining: float
    is_breached: bool
    completed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, metric: MetricEvaluation) -> "MetricSLAResponse":
        return cls(
            deadline=metric.deadline,
            state=metric.state,
            remaining_seconds=metric.remaining_seconds,
            percentage_remaining=metric.percentage_remaining,
            is_breached=metric.is_breached,
            completed_at=metric.completed_at,
        )


class TicketResponse(BaseModel):
    """Response model for a ticket with its current SLA states."""
    id: str
    conversation_id: str
    subject: str
    priority: PriorityStr
    category: str
    status: TicketStatusStr
    assigned_to: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    sla_first_response_due: datetime
    sla_resolution_due: datetime
    version: int

    sla_first_response_status: SLAStateStr
    sla_resolution_status: SLAStateStr
    sla_overall_status: SLAStateStr

    @classmethod
    def from_domain(cls, ticket: Ticket, evaluation: SLAEvaluation) -> "TicketResponse":
        return cls(
            id=ticket.id,
            conversation_id=ticket.conversation_id,
            subject=ticket.subject,
            priority=ticket.priority,
            category=ticket.category,
            status=ticket.status,
            assigned_to=ticket.assigned_to,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            first_response_at=ticket.first_response_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            sla_first_response_due=ticket.sla_first_response_due,
            sla_resolution_due=ticket.sla_resolution_due,
            version=ticket.version,
            sla_first_response_status=evaluation.first_response.state,
            sla_resolution_status=evaluation.resolution.state,
            sla_overall_status=evaluation.most_urgent_state,
        )


class ActivityResponse(BaseModel):
    """One activity entry in a ticket's history."""
    id: Optional[str] = None
    kind: str
    actor: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    body: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, entry: ActivityEntry) -> "ActivityResponse":
        old_value, new_value = entry.values()
        body = None
        if isinstance(entry, Note):
            body, new_value = entry.body, None

        return cls(
            id=entry.id,
            kind=entry.kind,
            actor=entry.actor,
            old_value=old_value,
            new_value=new_value,
            body=body,
            created_at=entry.created_at,
        )


class TicketDetailResponse(BaseModel):
    """Ticket, full SLA evaluation and activity history."""
    ticket: TicketResponse
    first_response_sla: MetricSLAResponse
    resolution_sla: MetricSLAResponse
    next_deadline: Optional[datetime] = None
    activity: List[ActivityResponse] = Field(default_factory=list)


class ComplianceResponse(BaseModel):
    """Compliance of one SLA metric."""
    percentage: float = Field(..., ge=0, le=100)
    met: int
    sample_size: int = Field(..., description="Concluded SLA instances counted")


class TicketStatsResponse(BaseModel):
    """Response model for the ticket dashboard header."""
    by_status: Dict[str, int]
    by_priority: Dict[str, int] = Field(..., description="Open tickets per priority")
    open_count: int
    urgent_count: int
    breached_count: int
    avg_first_response_hours: Optional[float] = None
    avg_resolution_hours: Optional[float] = None
    first_response_compliance: ComplianceResponse
    resolution_compliance: ComplianceResponse
    sla_policy: Dict[str, Dict[str, int]] = Field(..., description="Active policy in minutes")
