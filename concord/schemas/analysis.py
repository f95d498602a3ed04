"""Dimension analysis schemas.

Defines the five comparison dimensions, finding severities, the
structured Finding record, the per-dimension DimensionResult, and the
InferenceResult returned by inference backends.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Dimension(StrEnum):
    """Independent axes along which source statements are compared."""

    PAIRWISE = "pairwise"
    SEMANTIC = "semantic"
    FACTUAL = "factual"
    PROCEDURE = "procedure"
    SAFETY = "safety"


class Severity(StrEnum):
    """Severity levels for contradictions, ordered low to critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


def max_severity(severities: list[Severity]) -> Severity | None:
    """Return the most severe entry, or None for an empty list."""
    if not severities:
        return None
    return max(severities, key=lambda s: s.rank)


class Finding(BaseModel):
    """A single contradiction discovered by an analyzer or the validator."""

    model_config = ConfigDict(frozen=True)

    dimension: Dimension = Field(description="Dimension that discovered the contradiction")
    severity: Severity = Field(description="How serious the contradiction is")
    description: str = Field(description="Human-readable description")
    sources: list[str] = Field(
        default_factory=list, description="Source IDs involved in the contradiction"
    )


class DimensionResult(BaseModel):
    """Outcome of one analyzer run for one arbitration request.

    Created once per analyzer run and read-only afterwards. A degraded
    result carries a forced low confidence and the reason it degraded.
    """

    model_config = ConfigDict(frozen=True)

    dimension: Dimension = Field(description="Which dimension this result covers")
    score: float = Field(ge=0.0, le=1.0, description="Contradiction score for the dimension")
    contradictions: list[str] = Field(
        default_factory=list, description="Descriptions of discovered contradictions"
    )
    entailments: list[str] = Field(
        default_factory=list, description="Entailing source pairs (pairwise only)"
    )
    neutrals: list[str] = Field(
        default_factory=list, description="Neutral source pairs (pairwise only)"
    )
    findings: list[Finding] = Field(
        default_factory=list, description="Structured findings with severities"
    )
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence in the score")
    degraded: bool = Field(
        default=False, description="Whether the analyzer fell back or timed out"
    )
    degradation_reason: str = Field(
        default="", description="Why the result is degraded (empty when not degraded)"
    )


class InferenceResult(BaseModel):
    """Soft NLI scores for a pair of statements.

    The three relationship scores are independent soft values and need
    not sum to one.
    """

    model_config = ConfigDict(frozen=True)

    entailment: float = Field(ge=0.0, le=1.0, description="One statement implies the other")
    contradiction: float = Field(ge=0.0, le=1.0, description="The statements conflict")
    neutral: float = Field(ge=0.0, le=1.0, description="Compatible without implication")
    confidence: float = Field(ge=0.0, le=1.0, description="Backend confidence in the scores")
    backend: str = Field(default="", description="Backend or model that produced the scores")
