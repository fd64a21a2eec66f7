"""
Tickets Domain Layer
====================

Domain layer for the ticket lifecycle and SLA evaluation.

Contains:
- Entities: Ticket, SLAEvaluation, activity entry variants
- Value Objects: SLAConfig, ComplianceResult, the status graph
- Domain Services: SLACalculator, SLAEvaluator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from supportdesk.tickets.domain.entities import (
    Ticket,
    MetricEvaluation,
    SLAEvaluation,
    ActivityEntry,
    Creation,
    StatusChange,
    Assignment,
    PriorityChange,
    CategoryChange,
    FirstResponse,
    Note,
    ACTIVITY_VARIANTS,
)
from supportdesk.tickets.domain.value_objects import (
    SLACalculator,
    SLAConfig,
    ComplianceResult,
    ALLOWED_TRANSITIONS,
    DEFAULT_SLA_TARGETS,
    is_allowed_transition,
)
from supportdesk.tickets.domain.services import SLAEvaluator

__all__ = [
    # Entities
    "Ticket",
    "MetricEvaluation",
    "SLAEvaluation",
    "ActivityEntry",
    "Creation",
    "StatusChange",
    "Assignment",
    "PriorityChange",
    "CategoryChange",
    "FirstResponse",
    "Note",
    "ACTIVITY_VARIANTS",
    # Value Objects & Services
    "SLACalculator",
    "SLAConfig",
    "ComplianceResult",
    "ALLOWED_TRANSITIONS",
    "DEFAULT_SLA_TARGETS",
    "is_allowed_transition",
    "SLAEvaluator",
]
