"""
SLA Evaluator
=============

Domain service mapping a ticket's timestamps and the active SLA policy to
per-metric states, and a ticket population to compliance figures.

Pure: the caller supplies the evaluation instant.
"""

from datetime import datetime
from typing import Iterable

from supportdesk.config import SLAMetric
from supportdesk.tickets.domain.entities import Ticket, MetricEvaluation, SLAEvaluation
from supportdesk.tickets.domain.value_objects import SLACalculator, SLAConfig, ComplianceResult


class SLAEvaluator:
    """Evaluates tickets against one SLA policy snapshot."""

    def __init__(self, config: SLAConfig):
        self._config = config

    def evaluate_metric(self, ticket: Ticket, metric: str, now: datetime) -> MetricEvaluation:
        deadline = ticket.due_for(metric)
        completed_at = ticket.completed_at_for(metric)

        state = SLACalculator.calculate_status(
            ticket.created_at, deadline, now, completed_at,
            self._config.get_warning_threshold()
        )
        remaining, percentage = SLACalculator.calculate_remaining_metrics(
            ticket.created_at, deadline, now, completed_at
        )

        return MetricEvaluation(
            metric=metric,
            deadline=deadline,
            state=state,
            remaining_seconds=remaining,
            percentage_remaining=percentage,
            completed_at=completed_at,
        )

    def evaluate(self, ticket: Ticket, now: datetime) -> SLAEvaluation:
        """
        Evaluate both SLA clocks of a ticket.

        Args:
            ticket: Ticket with its stamped deadlines
            now: Evaluation instant

        Returns:
            SLAEvaluation with first-response and resolution states
        """
        return SLAEvaluation(
            ticket_id=ticket.id,
            first_response=self.evaluate_metric(ticket, SLAMetric.FIRST_RESPONSE, now),
            resolution=self.evaluate_metric(ticket, SLAMetric.RESOLUTION, now),
            evaluated_at=now,
        )

    def compliance(self, tickets: Iterable[Ticket], metric: str, now: datetime) -> ComplianceResult:
        return SLACalculator.compliance(tickets, metric, now)
