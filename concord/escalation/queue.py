"""Escalation queue: hand-off of non-approved reports to human review.

Creates at most one ticket per report and delivers tickets through a
bounded asyncio.Queue. When the queue is full, tickets wait in an
unbounded backlog instead of being dropped, and the delay is counted so
operators can see the backpressure.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import UTC, datetime

from concord.errors import EscalationQueueFull
from concord.schemas.analysis import Severity
from concord.schemas.escalation import (
    EscalationTicket,
    QueueStats,
    TicketPriority,
    TicketStatus,
)
from concord.schemas.report import ContradictionReport, Decision

logger = logging.getLogger(__name__)

_CLOSED_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.REJECTED})


def derive_priority(report: ContradictionReport, score_threshold: float = 0.35) -> TicketPriority:
    """Review priority from the worst finding and the overall score."""
    if report.max_severity is Severity.CRITICAL:
        return TicketPriority.CRITICAL
    if report.max_severity is Severity.HIGH or report.overall_score > 0.5:
        return TicketPriority.HIGH
    if report.max_severity is Severity.MEDIUM or report.overall_score > score_threshold:
        return TicketPriority.MEDIUM
    return TicketPriority.LOW


class EscalationQueue:
    """Idempotent ticket creation with bounded, observable delivery."""

    def __init__(self, max_pending: int = 100, score_threshold: float = 0.35) -> None:
        self._score_threshold = score_threshold
        self._tickets: dict[str, EscalationTicket] = {}
        self._by_report: dict[str, str] = {}
        self._delivery: asyncio.Queue[EscalationTicket] = asyncio.Queue(maxsize=max_pending)
        self._backlog: deque[EscalationTicket] = deque()
        self._delayed_total = 0
        self._undelivered: dict[str, EscalationTicket] = {}
        self._lock = asyncio.Lock()

    async def enqueue(self, report: ContradictionReport) -> EscalationTicket | None:
        """Create (or return the existing) ticket for a report.

        Returns None for auto-approved reports, which need no review.
        """
        if report.decision == Decision.AUTO_APPROVE:
            return None

        async with self._lock:
            existing = self._by_report.get(report.id)
            if existing is not None:
                logger.debug("Report %s already has ticket %s", report.id, existing)
                return self._tickets[existing]

            ticket = EscalationTicket(
                report_id=report.id,
                priority=derive_priority(report, self._score_threshold),
                conflicting_options=[c for r in report.per_dimension for c in r.contradictions],
                decision=report.decision,
                overall_score=report.overall_score,
            )
            self._tickets[ticket.id] = ticket
            self._by_report[report.id] = ticket.id
            self._undelivered[ticket.id] = ticket

            try:
                self._offer(ticket)
            except EscalationQueueFull:
                self._backlog.append(ticket)
                self._delayed_total += 1
                logger.warning(
                    "Escalation queue full, ticket %s moved to backlog (%d waiting)",
                    ticket.id,
                    len(self._backlog),
                )

        logger.info(
            "Escalated report %s as %s (%s priority)", report.id, ticket.id, ticket.priority
        )
        return ticket

    def _offer(self, ticket: EscalationTicket) -> None:
        # Older backlog tickets go first
        if self._backlog:
            raise EscalationQueueFull(f"{len(self._backlog)} ticket(s) already in backlog")
        try:
            self._delivery.put_nowait(ticket)
        except asyncio.QueueFull:
            raise EscalationQueueFull(
                f"delivery queue at capacity ({self._delivery.maxsize})"
            ) from None

    def _refill(self) -> None:
        while self._backlog and not self._delivery.full():
            self._delivery.put_nowait(self._backlog.popleft())

    async def get(self) -> EscalationTicket:
        """Wait for the next ticket to hand to a reviewer."""
        ticket = await self._delivery.get()
        self._undelivered.pop(ticket.id, None)
        self._refill()
        return ticket

    def get_nowait(self) -> EscalationTicket | None:
        """Next ticket if one is ready, else None."""
        try:
            ticket = self._delivery.get_nowait()
        except asyncio.QueueEmpty:
            return None
        self._undelivered.pop(ticket.id, None)
        self._refill()
        return ticket

    def get_ticket(self, ticket_id: str) -> EscalationTicket | None:
        return self._tickets.get(ticket_id)

    def list(self, status: TicketStatus | None = None) -> list[EscalationTicket]:
        """Tickets in creation order, optionally filtered by status."""
        tickets = list(self._tickets.values())
        if status is None:
            return tickets
        return [t for t in tickets if t.status == status]

    async def resolve(
        self,
        ticket_id: str,
        status: TicketStatus,
        resolved_by: str = "",
        notes: str = "",
    ) -> EscalationTicket:
        """Record a review outcome for a ticket.

        Raises:
            KeyError: If the ticket does not exist.
            ValueError: If the transition is not allowed.
        """
        async with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise KeyError(ticket_id)
            if ticket.status in _CLOSED_STATUSES:
                raise ValueError(f"Ticket {ticket_id} is already {ticket.status}")
            if status == TicketStatus.OPEN:
                raise ValueError("A ticket cannot be reopened")

            updated = ticket.model_copy(update={
                "status": status,
                "resolved_by": resolved_by,
                "resolution_notes": notes,
                "updated_at": datetime.now(UTC),
            })
            self._tickets[ticket_id] = updated

        logger.info("Ticket %s marked %s by %s", ticket_id, status, resolved_by or "unknown")
        return updated

    def stats(self) -> QueueStats:
        """Current delivery and backlog state."""
        now = datetime.now(UTC)
        oldest = max(
            ((now - t.created_at).total_seconds() for t in self._undelivered.values()),
            default=0.0,
        )
        return QueueStats(
            total_tickets=len(self._tickets),
            open_tickets=sum(1 for t in self._tickets.values() if t.status not in _CLOSED_STATUSES),
            awaiting_delivery=self._delivery.qsize(),
            backlog=len(self._backlog),
            delayed_total=self._delayed_total,
            oldest_wait_seconds=max(0.0, oldest),
        )
