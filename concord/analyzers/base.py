"""Analyzer contract and the per-request arbitration context."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from concord.ledger.writer import sha256_hex
from concord.providers.base import InferenceBackend
from concord.schemas.analysis import Dimension, DimensionResult
from concord.schemas.config import ArbitrationConfig
from concord.schemas.sources import ReferenceFinding, SourceResponse

if TYPE_CHECKING:
    from concord.reference.validator import ReferenceFactValidator


@dataclass
class InferenceFailure:
    """One degraded pair or dimension, as recorded in the ledger."""

    dimension: Dimension
    reason: str
    backend: str | None
    sources: list[dict[str, str]]

    def to_payload(self) -> dict[str, Any]:
        return {
            "dimension": str(self.dimension),
            "reason": self.reason,
            "backend": self.backend,
            "sources": self.sources,
        }


@dataclass
class ArbitrationContext:
    """Everything an analyzer may consult for one arbitration request.

    Created fresh by the engine for every request and never shared
    between requests. The partial-score slots let an analyzer publish
    progress so the engine can fall back to it when the analyzer times
    out or fails.
    """

    config: ArbitrationConfig
    backend: InferenceBackend
    reference_validator: ReferenceFactValidator | None = None
    partial_scores: dict[Dimension, float] = field(default_factory=dict)
    inference_failures: list[InferenceFailure] = field(default_factory=list)

    def record_partial(self, dimension: Dimension, score: float) -> None:
        self.partial_scores[dimension] = min(1.0, max(0.0, score))

    def partial_score(self, dimension: Dimension) -> float:
        """Last published score for a dimension, or 0.0."""
        return self.partial_scores.get(dimension, 0.0)

    def record_failure(
        self,
        dimension: Dimension,
        reason: str,
        sources: list[SourceResponse],
        backend: str | None = None,
    ) -> None:
        """Note a backend or analyzer failure for the evidence ledger."""
        self.inference_failures.append(InferenceFailure(
            dimension=dimension,
            reason=reason,
            backend=backend,
            sources=[
                {"source_id": s.source_id, "text_sha256": sha256_hex(s.text)} for s in sources
            ],
        ))

    def reference_findings(
        self,
        sources: list[SourceResponse],
        dimension: Dimension,
    ) -> list[ReferenceFinding]:
        """Significant reference-fact deviations that fold into a dimension."""
        if self.reference_validator is None:
            return []
        return self.reference_validator.validate(sources, dimension=dimension)


class DimensionAnalyzer(ABC):
    """One independent comparison dimension.

    Implementations hold no mutable state: the same instance may serve
    many concurrent requests, each with its own ArbitrationContext.
    """

    dimension: Dimension

    @abstractmethod
    async def analyze(
        self,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> DimensionResult:
        """Compare the sources along this dimension.

        Must return exactly one DimensionResult whose ``dimension`` equals
        ``self.dimension``. Backend failures are absorbed into a degraded
        result, never raised.
        """
