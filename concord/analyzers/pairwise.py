"""Pairwise entailment analyzer.

Classifies every unordered pair of sources with the inference backend on
a bounded worker pool. Pairs whose backend call fails fall back to the
lexical-overlap heuristic and mark the whole dimension degraded.
"""

from __future__ import annotations

import asyncio
import logging
from itertools import combinations
from statistics import mean

from concord.analyzers.base import ArbitrationContext, DimensionAnalyzer
from concord.errors import InferenceUnavailable
from concord.providers.heuristic import lexical_overlap_estimate
from concord.schemas.analysis import (
    Dimension,
    DimensionResult,
    Finding,
    InferenceResult,
    Severity,
)
from concord.schemas.config import ArbitrationConfig
from concord.schemas.sources import SourceResponse

logger = logging.getLogger(__name__)


def classify_pair(result: InferenceResult, config: ArbitrationConfig) -> tuple[str, float]:
    """Label a pair and return (label, pair score).

    Contradiction wins over entailment when both exceed their cutoffs.
    """
    if result.contradiction > config.contradiction_cutoff:
        return "contradiction", result.contradiction
    if result.entailment > config.entailment_cutoff:
        return "entailment", 1.0 - result.entailment
    return "neutral", config.neutral_penalty


class PairwiseAnalyzer(DimensionAnalyzer):
    """Scores N(N-1)/2 source pairs with an NLI backend."""

    dimension = Dimension.PAIRWISE

    async def analyze(
        self,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> DimensionResult:
        if len(sources) < 2:
            return DimensionResult(dimension=self.dimension, score=0.0, confidence=1.0)

        config = context.config
        semaphore = asyncio.Semaphore(config.pairwise_worker_pool_size)
        # A fallback chain gives every backend its own full timeout
        call_budget = config.inference_timeout * context.backend.max_attempts
        completed: list[float] = []

        async def run_pair(a: SourceResponse, b: SourceResponse) -> tuple[InferenceResult, str]:
            async with semaphore:
                try:
                    result = await asyncio.wait_for(
                        context.backend.classify(
                            a.text, b.text, timeout=config.inference_timeout
                        ),
                        timeout=call_budget,
                    )
                    failure = ""
                except (InferenceUnavailable, TimeoutError) as e:
                    failure = e.reason if isinstance(e, InferenceUnavailable) else "timeout"
                    logger.warning(
                        "Pair %s/%s fell back to lexical heuristic (%s)",
                        a.source_id,
                        b.source_id,
                        failure,
                    )
                    context.record_failure(
                        self.dimension, failure, [a, b], backend=context.backend.backend_id
                    )
                    result = lexical_overlap_estimate(a.text, b.text)

            completed.append(classify_pair(result, config)[1])
            context.record_partial(self.dimension, mean(completed))
            return result, failure

        pairs = list(combinations(sources, 2))
        outcomes = await asyncio.gather(*(run_pair(a, b) for a, b in pairs))

        pair_scores: list[float] = []
        confidences: list[float] = []
        contradictions: list[str] = []
        entailments: list[str] = []
        neutrals: list[str] = []
        findings: list[Finding] = []
        failures: list[str] = []

        for (a, b), (result, failure) in zip(pairs, outcomes):
            label, pair_score = classify_pair(result, config)
            pair_scores.append(pair_score)
            confidences.append(result.confidence)
            pair_name = f"{a.source_id} <-> {b.source_id}"

            if failure:
                failures.append(f"{pair_name}: {failure}")

            if label == "contradiction":
                description = (
                    f"{pair_name}: contradiction {result.contradiction:.2f}"
                    f" ({result.backend or 'unknown backend'})"
                )
                contradictions.append(description)
                findings.append(Finding(
                    dimension=self.dimension,
                    severity=Severity.HIGH if result.contradiction > 0.8 else Severity.MEDIUM,
                    description=description,
                    sources=[a.source_id, b.source_id],
                ))
            elif label == "entailment":
                entailments.append(pair_name)
            else:
                neutrals.append(pair_name)

        score = min(1.0, max(0.0, mean(pair_scores)))

        if failures:
            return DimensionResult(
                dimension=self.dimension,
                score=score,
                contradictions=contradictions,
                entailments=entailments,
                neutrals=neutrals,
                findings=findings,
                confidence=config.degraded_confidence,
                degraded=True,
                degradation_reason=(
                    f"{len(failures)} of {len(pairs)} pair(s) used the lexical heuristic: "
                    + "; ".join(failures)
                ),
            )

        return DimensionResult(
            dimension=self.dimension,
            score=score,
            contradictions=contradictions,
            entailments=entailments,
            neutrals=neutrals,
            findings=findings,
            confidence=mean(confidences),
        )
