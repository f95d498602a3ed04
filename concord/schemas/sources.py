"""Input schemas for an arbitration request.

Defines the SourceResponse produced by the upstream generation pipeline
and the ReferenceFact baselines consumed in specification-input mode.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from concord.schemas.analysis import Dimension, Severity


class SourceKind(StrEnum):
    """What kind of document a source response is."""

    FREE_TEXT = "free_text"
    SPECIFICATION = "specification"


class SourceResponse(BaseModel):
    """A single independently produced statement about a procedure.

    Collected once per arbitration request and never mutated by the
    engine. Specification sources may declare numeric measurements keyed
    by category for comparison against reference facts.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(min_length=1, description="Identifier of the producing source")
    text: str = Field(description="The natural-language statement")
    self_reported_confidence: float = Field(
        default=1.0, ge=0.0, le=1.0,
        description="Confidence the source reported for its own output",
    )
    produced_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the source produced this statement",
    )
    kind: SourceKind = Field(
        default=SourceKind.FREE_TEXT,
        description="Free text or a manufacturer specification",
    )
    measurements: dict[str, float] = Field(
        default_factory=dict,
        description="Declared measurements (category -> value), specification sources only",
    )


class ReferenceFact(BaseModel):
    """Baseline value for a measurement category from a domain-rule provider."""

    model_config = ConfigDict(frozen=True)

    category: str = Field(description="Measurement category this fact applies to")
    law: str = Field(description="Physical law or rule the baseline derives from")
    expected_value: float = Field(description="Expected value for the measurement")
    tolerance: float = Field(
        default=0.05, ge=0.0,
        description="Relative variance above which a deviation is significant",
    )
    severity: Severity = Field(
        default=Severity.LOW,
        description="Minimum severity for a significant deviation",
    )
    unit: str = Field(default="", description="Unit used to match claims in free text")
    dimension: Dimension = Field(
        default=Dimension.FACTUAL,
        description="Dimension significant findings fold into (factual or safety)",
    )

    @field_validator("dimension")
    @classmethod
    def _foldable_dimension(cls, value: Dimension) -> Dimension:
        if value not in (Dimension.FACTUAL, Dimension.SAFETY):
            raise ValueError("reference facts fold into the factual or safety dimension only")
        return value


class ReferenceFinding(BaseModel):
    """A significant deviation of a specification measurement from its baseline."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(description="Specification source that declared the value")
    category: str = Field(description="Measurement category")
    law: str = Field(description="Law or rule the baseline derives from")
    expected: float = Field(description="Baseline value")
    actual: float = Field(description="Value found in the source")
    variance: float = Field(ge=0.0, description="Relative deviation from the baseline")
    severity: Severity = Field(description="Severity after banding")
    dimension: Dimension = Field(description="Dimension the finding folds into")

    @property
    def description(self) -> str:
        return (
            f"{self.source_id}: {self.category} = {self.actual:g} deviates "
            f"{self.variance:.1%} from {self.expected:g} ({self.law})"
        )
