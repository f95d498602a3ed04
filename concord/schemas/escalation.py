"""Escalation ticket schemas for the human-review hand-off."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, Field

from concord.schemas.report import Decision


class TicketStatus(StrEnum):
    """Review status, changed only by the external HITL workflow."""

    OPEN = "open"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class TicketPriority(StrEnum):
    """Review priority derived from finding severity and overall score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EscalationTicket(BaseModel):
    """Review ticket for a report that was not auto-approved."""

    id: str = Field(default_factory=lambda: f"hitl-{uuid4().hex[:12]}", description="Ticket ID")
    report_id: str = Field(description="ID of the escalated ContradictionReport")
    priority: TicketPriority = Field(description="Review priority")
    conflicting_options: list[str] = Field(
        default_factory=list, description="Contradictions the reviewer must arbitrate"
    )
    status: TicketStatus = Field(default=TicketStatus.OPEN, description="Review status")
    decision: Decision = Field(description="Gate decision that caused the escalation")
    overall_score: float = Field(ge=0.0, le=1.0, description="Report overall score")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    resolved_by: str = Field(default="", description="Reviewer who closed the ticket")
    resolution_notes: str = Field(default="", description="Reviewer notes")


class QueueStats(BaseModel):
    """Observable state of ticket delivery, including backpressure delay."""

    total_tickets: int = Field(ge=0, description="Tickets ever created")
    open_tickets: int = Field(ge=0, description="Tickets not yet resolved or rejected")
    awaiting_delivery: int = Field(ge=0, description="Tickets in the bounded delivery queue")
    backlog: int = Field(ge=0, description="Tickets held back because the queue was full")
    delayed_total: int = Field(ge=0, description="Tickets that ever went through the backlog")
    oldest_wait_seconds: float = Field(
        ge=0.0, description="Age of the oldest undelivered ticket in seconds"
    )
