"""Weighted aggregation of the five dimension results."""

from __future__ import annotations

from statistics import mean
from typing import NamedTuple

from concord.errors import WeightSumInvalid
from concord.schemas.analysis import Dimension, DimensionResult, Severity, max_severity
from concord.schemas.config import DimensionWeights

WEIGHT_TOLERANCE = 1e-6


class Aggregate(NamedTuple):
    """Aggregator output consumed by the decision gate."""

    overall_score: float
    aggregate_confidence: float
    max_severity: Severity | None
    per_dimension: list[DimensionResult]


class WeightedAggregator:
    """Barrier over all five dimension results.

    Weights are fixed at construction and must sum to 1.0. They are
    never renormalized: a misconfigured weight table stops the engine
    from starting at all.
    """

    def __init__(self, weights: DimensionWeights) -> None:
        self._weights = weights.as_mapping()
        total = sum(self._weights.values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise WeightSumInvalid(total)

    @property
    def weights(self) -> dict[Dimension, float]:
        return dict(self._weights)

    def aggregate(self, results: list[DimensionResult]) -> Aggregate:
        """Combine exactly one result per dimension.

        The outcome does not depend on the order of ``results``;
        ``per_dimension`` comes back in canonical dimension order.

        Raises:
            ValueError: If a dimension is missing or appears twice.
        """
        by_dimension: dict[Dimension, DimensionResult] = {}
        for result in results:
            if result.dimension in by_dimension:
                raise ValueError(f"Duplicate result for dimension {result.dimension}")
            by_dimension[result.dimension] = result

        missing = [d for d in Dimension if d not in by_dimension]
        if missing:
            raise ValueError(
                "Missing results for dimension(s): " + ", ".join(str(d) for d in missing)
            )

        ordered = [by_dimension[d] for d in Dimension]
        overall = sum(self._weights[r.dimension] * r.score for r in ordered)

        return Aggregate(
            overall_score=min(1.0, max(0.0, overall)),
            aggregate_confidence=min(1.0, max(0.0, mean(r.confidence for r in ordered))),
            max_severity=max_severity([f.severity for r in ordered for f in r.findings]),
            per_dimension=ordered,
        )
