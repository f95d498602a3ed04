"""Arbitration report schemas.

Defines the terminal Decision values and the ContradictionReport, the
single source of truth for an arbitration request's outcome.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from concord.schemas.analysis import Dimension, DimensionResult, Finding, Severity


class Decision(StrEnum):
    """Terminal routing decision for a report.

    AUTO_APPROVE: Sources agree with sufficient confidence.
    ESCALATE_HITL: Disagreement or low confidence, route to human review.
    BLOCK: A critical finding forbids use of the procedure.
    """

    AUTO_APPROVE = "auto_approve"
    ESCALATE_HITL = "escalate_hitl"
    BLOCK = "block"


class ContradictionReport(BaseModel):
    """Complete, immutable result of one arbitration request.

    Never edited after creation. A correction is a new report whose
    ``supersedes`` field references the report it replaces.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="Report UUID")
    overall_score: float = Field(ge=0.0, le=1.0, description="Weighted contradiction score")
    per_dimension: list[DimensionResult] = Field(
        description="One result per dimension, in canonical dimension order"
    )
    aggregate_confidence: float = Field(
        ge=0.0, le=1.0, description="Mean confidence across all dimensions"
    )
    decision: Decision = Field(description="Terminal routing decision")
    decision_reason: str = Field(default="", description="Why the gate chose this decision")
    max_severity: Severity | None = Field(
        default=None, description="Most severe finding, or None when nothing was found"
    )
    source_ids: list[str] = Field(
        default_factory=list, description="IDs of the sources that were arbitrated"
    )
    supersedes: str | None = Field(
        default=None, description="ID of the report this one corrects"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp"
    )

    @property
    def findings(self) -> list[Finding]:
        """All findings across every dimension."""
        return [f for result in self.per_dimension for f in result.findings]

    @property
    def degraded_dimensions(self) -> list[Dimension]:
        """Dimensions whose analyzer fell back, failed, or timed out."""
        return [r.dimension for r in self.per_dimension if r.degraded]

    def result_for(self, dimension: Dimension) -> DimensionResult:
        """Return the result for a dimension.

        Raises:
            KeyError: If the report has no result for the dimension.
        """
        for result in self.per_dimension:
            if result.dimension == dimension:
                return result
        raise KeyError(dimension)
