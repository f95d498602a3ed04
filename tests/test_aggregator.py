"""Tests for concord.aggregator: weighted aggregation of dimension results."""

import random

import pytest

from concord.aggregator import WeightedAggregator
from concord.errors import WeightSumInvalid
from concord.schemas.analysis import Dimension, DimensionResult, Finding, Severity
from concord.schemas.config import DimensionWeights


def _make_result(dimension: Dimension, score: float = 0.0, confidence: float = 0.9,
                 severities: list[Severity] | None = None) -> DimensionResult:
    findings = [
        Finding(dimension=dimension, severity=s, description=f"{dimension} {s}")
        for s in severities or []
    ]
    return DimensionResult(
        dimension=dimension, score=score, confidence=confidence, findings=findings,
    )


def _all_results(**scores: float) -> list[DimensionResult]:
    return [_make_result(d, score=scores.get(d.value, 0.0)) for d in Dimension]


class TestWeightValidation:
    def test_default_weights_accepted(self):
        aggregator = WeightedAggregator(DimensionWeights())
        assert aggregator.weights[Dimension.SAFETY] == 0.40

    def test_weights_not_summing_to_one_rejected(self):
        with pytest.raises(WeightSumInvalid, match="must sum to 1.0") as exc:
            WeightedAggregator(DimensionWeights(safety=0.5))
        assert exc.value.total == pytest.approx(1.1)

    def test_tolerance(self):
        weights = DimensionWeights(
            safety=0.4 + 1e-8, factual=0.25, procedure=0.2, semantic=0.1, pairwise=0.05,
        )
        WeightedAggregator(weights)


class TestAggregate:
    @pytest.fixture
    def aggregator(self):
        return WeightedAggregator(DimensionWeights())

    def test_all_zero(self, aggregator):
        aggregate = aggregator.aggregate(_all_results())
        assert aggregate.overall_score == 0.0
        assert aggregate.aggregate_confidence == pytest.approx(0.9)
        assert aggregate.max_severity is None

    def test_weighted_sum(self, aggregator):
        aggregate = aggregator.aggregate(_all_results(safety=1.0, factual=0.8))
        assert aggregate.overall_score == pytest.approx(0.40 + 0.25 * 0.8)

    def test_everything_saturated(self, aggregator):
        aggregate = aggregator.aggregate([_make_result(d, score=1.0) for d in Dimension])
        assert aggregate.overall_score == pytest.approx(1.0)
        assert aggregate.overall_score <= 1.0

    def test_confidence_is_mean(self, aggregator):
        results = [
            _make_result(d, confidence=c)
            for d, c in zip(Dimension, [1.0, 0.85, 0.9, 0.8, 0.95])
        ]
        assert aggregator.aggregate(results).aggregate_confidence == pytest.approx(0.9)

    def test_max_severity(self, aggregator):
        results = [
            _make_result(Dimension.PAIRWISE, severities=[Severity.MEDIUM]),
            _make_result(Dimension.SEMANTIC, severities=[Severity.HIGH, Severity.LOW]),
            _make_result(Dimension.FACTUAL),
            _make_result(Dimension.PROCEDURE),
            _make_result(Dimension.SAFETY),
        ]
        assert aggregator.aggregate(results).max_severity == Severity.HIGH

    def test_order_independent(self, aggregator):
        results = _all_results(safety=0.3, factual=0.7, procedure=0.1)
        shuffled = list(results)
        random.Random(7).shuffle(shuffled)

        a = aggregator.aggregate(results)
        b = aggregator.aggregate(shuffled)

        assert a.overall_score == pytest.approx(b.overall_score)
        assert [r.dimension for r in b.per_dimension] == list(Dimension)

    def test_missing_dimension(self, aggregator):
        results = [r for r in _all_results() if r.dimension != Dimension.FACTUAL]
        with pytest.raises(ValueError, match="Missing results for dimension\\(s\\): factual"):
            aggregator.aggregate(results)

    def test_duplicate_dimension(self, aggregator):
        results = _all_results() + [_make_result(Dimension.SAFETY)]
        with pytest.raises(ValueError, match="Duplicate result for dimension safety"):
            aggregator.aggregate(results)
