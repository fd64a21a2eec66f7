"""
Ticket Value Objects
====================

Immutable value objects and stateless services for the ticket domain.

- SLAConfig: the SLA policy table (priority -> durations) loaded from YAML
- SLACalculator: pure SLA evaluation and compliance arithmetic
- ALLOWED_TRANSITIONS: the ticket status graph
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from supportdesk.config import (
    Priority, TicketStatus, SLAMetric, SLAState,
    VALID_PRIORITIES, VALID_SLA_METRICS
)
from supportdesk.core import ConfigurationException


# Minutes per metric, from the back office's original SLA table.
DEFAULT_SLA_TARGETS: Dict[str, Dict[str, int]] = {
    Priority.LOW: {SLAMetric.FIRST_RESPONSE: 60, SLAMetric.RESOLUTION: 48 * 60},
    Priority.MEDIUM: {SLAMetric.FIRST_RESPONSE: 60, SLAMetric.RESOLUTION: 24 * 60},
    Priority.HIGH: {SLAMetric.FIRST_RESPONSE: 60, SLAMetric.RESOLUTION: 8 * 60},
    Priority.URGENT: {SLAMetric.FIRST_RESPONSE: 60, SLAMetric.RESOLUTION: 2 * 60},
}

DEFAULT_WARNING_THRESHOLD = 20


ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    TicketStatus.NEW: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.WAITING_CUSTOMER, TicketStatus.RESOLVED}),
    TicketStatus.WAITING_CUSTOMER: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset({TicketStatus.IN_PROGRESS}),
}


def is_allowed_transition(current: str, requested: str) -> bool:
    """Check whether `current -> requested` is an edge of the status graph."""
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


# Escalation ladder used for edge-triggered SLA notifications.
ESCALATION_LEVELS: Dict[str, int] = {
    SLAState.MET: 0,
    SLAState.ON_TRACK: 0,
    SLAState.AT_RISK: 1,
    SLAState.BREACHED: 2,
}


class SLAConfig(BaseModel):
    """
    SLA policy loaded from YAML.

    Maps each priority to a first-response and a resolution target in
    minutes. The warning threshold is the share of a metric's total
    duration, counted back from the deadline, in which the metric is
    reported `at_risk`.

    This is a value object - immutable and defined by its attributes.
    """
    sla_targets: Dict[str, Dict[str, int]] = Field(
        default_factory=dict,
        description="SLA targets in minutes by priority"
    )
    escalation_thresholds: Dict[str, int] = Field(
        default={"warning": DEFAULT_WARNING_THRESHOLD},
        description="Percentage of the SLA window treated as at risk"
    )

    @field_validator("sla_targets")
    @classmethod
    def validate_sla_targets(cls, v: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        """Fill in any priority or metric the YAML file leaves out."""
        targets = {priority: dict(metrics) for priority, metrics in v.items()}

        for priority in VALID_PRIORITIES:
            metrics = targets.setdefault(priority, {})
            for metric in VALID_SLA_METRICS:
                metrics.setdefault(metric, DEFAULT_SLA_TARGETS[priority][metric])
                if metrics[metric] <= 0:
                    raise ValueError(f"SLA target for {priority}/{metric} must be positive")

        return targets

    @field_validator("escalation_thresholds")
    @classmethod
    def validate_thresholds(cls, v: Dict[str, int]) -> Dict[str, int]:
        warning = v.get("warning", DEFAULT_WARNING_THRESHOLD)
        if not 0 <= warning <= 100:
            raise ValueError("warning threshold must be a percentage between 0 and 100")
        return {**v, "warning": warning}

    def get_sla_minutes(self, priority: str, metric: str) -> int:
        """
        SLA target in minutes for a priority and metric.

        Raises:
            ConfigurationException: if the priority has no policy entry
        """
        targets = self.sla_targets.get(priority)
        if targets is None or metric not in targets:
            raise ConfigurationException(
                f"No SLA policy for priority '{priority}' and metric '{metric}'",
                {"priority": priority, "metric": metric}
            )
        return targets[metric]

    def due_times(self, priority: str, created_at: datetime) -> Tuple[datetime, datetime]:
        """
        Deadlines for a ticket created at `created_at`.

        Returns:
            (first_response_due, resolution_due)
        """
        first_response = SLACalculator.calculate_deadline(
            created_at, self.get_sla_minutes(priority, SLAMetric.FIRST_RESPONSE)
        )
        resolution = SLACalculator.calculate_deadline(
            created_at, self.get_sla_minutes(priority, SLAMetric.RESOLUTION)
        )
        return first_response, resolution

    def get_warning_threshold(self) -> int:
        """Get percentage threshold for at-risk warnings."""
        return self.escalation_thresholds.get("warning", DEFAULT_WARNING_THRESHOLD)

    def to_summary(self) -> Dict[str, Dict[str, int]]:
        """Policy in minutes, limited to known priorities, for API responses."""
        return {priority: dict(self.sla_targets[priority]) for priority in VALID_PRIORITIES}


@dataclass(frozen=True)
class ComplianceResult:
    """Share of concluded SLA instances that were met on time."""
    metric: str
    met: int
    total: int

    @property
    def percentage(self) -> Optional[float]:
        """Compliance in percent, or None when no instance has concluded yet."""
        if self.total == 0:
            return None
        return 100.0 * self.met / self.total


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class - all SLA arithmetic in one place.
    """

    @staticmethod
    def calculate_deadline(created_at: datetime, sla_minutes: int) -> datetime:
        """Deadline `sla_minutes` after creation."""
        return created_at + timedelta(minutes=sla_minutes)

    @staticmethod
    def calculate_status(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        completed_at: Optional[datetime] = None,
        warning_threshold_percent: int = DEFAULT_WARNING_THRESHOLD
    ) -> str:
        """
        Calculate current SLA state of one metric.

        A completed metric is always `met`, even when it was completed
        late; lateness only matters for compliance.

        Args:
            created_at: When ticket was created
            deadline: The SLA deadline
            current_time: Current time for evaluation
            completed_at: First response / resolution time, if any
            warning_threshold_percent: Share of the window reported at risk

        Returns:
            One of on_track, at_risk, breached, met
        """
        if completed_at is not None:
            return SLAState.MET

        if current_time > deadline:
            return SLAState.BREACHED

        window = (deadline - created_at) * warning_threshold_percent / 100
        if deadline - current_time <= window:
            return SLAState.AT_RISK

        return SLAState.ON_TRACK

    @staticmethod
    def calculate_remaining_metrics(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        completed_at: Optional[datetime] = None
    ) -> tuple[float, float]:
        """
        Calculate remaining time metrics.

        Returns:
            Tuple of (remaining_seconds, percentage_remaining)
        """
        if completed_at is not None:
            return 0.0, 0.0

        remaining = (deadline - current_time).total_seconds()
        total = (deadline - created_at).total_seconds()

        if total <= 0:
            percentage = 0.0
        else:
            percentage = max(0.0, min(100.0, (remaining / total) * 100))

        return max(0.0, remaining), percentage

    @staticmethod
    def completed_on_time(deadline: datetime, completed_at: Optional[datetime]) -> bool:
        return completed_at is not None and completed_at <= deadline

    @staticmethod
    def compliance(tickets: Iterable, metric: str, current_time: datetime) -> ComplianceResult:
        """
        Aggregate compliance of one metric over a ticket population.

        Only concluded instances count: completed ones (on time or late)
        and incomplete ones already past their deadline. Tickets still
        inside their window are left out of the denominator.
        """
        met = 0
        total = 0

        for ticket in tickets:
            deadline = ticket.due_for(metric)
            completed_at = ticket.completed_at_for(metric)
            if deadline is None:
                continue

            if completed_at is not None:
                total += 1
                if SLACalculator.completed_on_time(deadline, completed_at):
                    met += 1
            elif current_time > deadline:
                total += 1

        return ComplianceResult(metric=metric, met=met, total=total)

    @staticmethod
    def escalation_level(state: str) -> int:
        """Rank of a state on the on_track -> at_risk -> breached ladder."""
        return ESCALATION_LEVELS[state]
