"""Factual-claim analyzer.

Compares numeric claims with the same normalized unit across sources and
folds in reference-fact deviations that target the factual dimension.
"""

from __future__ import annotations

import logging
from itertools import combinations

from concord.analyzers.base import ArbitrationContext, DimensionAnalyzer
from concord.analyzers.text import Claim, extract_claims, relative_difference
from concord.schemas.analysis import Dimension, DimensionResult, Finding, Severity
from concord.schemas.sources import SourceResponse

logger = logging.getLogger(__name__)

FACTUAL_CONFIDENCE = 0.9
CONFLICT_WEIGHT = 0.8
CONFLICT_THRESHOLD = 0.10
HIGH_SEVERITY_THRESHOLD = 0.20


def _nearest(claim: Claim, others: list[Claim]) -> Claim | None:
    same_unit = [c for c in others if c.unit == claim.unit]
    if not same_unit:
        return None
    return min(same_unit, key=lambda c: relative_difference(claim.value, c.value))


class FactualAnalyzer(DimensionAnalyzer):
    """Detects numeric disagreements between sources.

    Each claim is matched against the closest same-unit claim in the other
    source, so a source that states several values in one unit (input and
    output voltage, say) only conflicts where no counterpart agrees.
    """

    dimension = Dimension.FACTUAL

    async def analyze(
        self,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> DimensionResult:
        claims = [extract_claims(s.text) for s in sources]

        contradictions: list[str] = []
        findings: list[Finding] = []
        seen: set[tuple[int, str, int, str]] = set()

        for i, j in combinations(range(len(sources)), 2):
            for left, right, left_claims, right_claims in (
                (i, j, claims[i], claims[j]),
                (j, i, claims[j], claims[i]),
            ):
                for claim in left_claims:
                    match = _nearest(claim, right_claims)
                    if match is None:
                        continue
                    difference = relative_difference(claim.value, match.value)
                    if difference <= CONFLICT_THRESHOLD:
                        continue

                    first, second = (claim, match) if left < right else (match, claim)
                    lo, hi = min(left, right), max(left, right)
                    key = (lo, first.text, hi, second.text)
                    if key in seen:
                        continue
                    seen.add(key)

                    a, b = sources[lo], sources[hi]
                    description = (
                        f"{a.source_id} says {first.text}, {b.source_id} says "
                        f"{second.text} ({_format_difference(difference)} apart)"
                    )
                    contradictions.append(description)
                    findings.append(Finding(
                        dimension=self.dimension,
                        severity=(
                            Severity.HIGH
                            if difference > HIGH_SEVERITY_THRESHOLD
                            else Severity.MEDIUM
                        ),
                        description=description,
                        sources=[a.source_id, b.source_id],
                    ))
                    context.record_partial(self.dimension, CONFLICT_WEIGHT * len(findings))

        for ref in context.reference_findings(sources, self.dimension):
            contradictions.append(ref.description)
            findings.append(Finding(
                dimension=self.dimension,
                severity=ref.severity,
                description=ref.description,
                sources=[ref.source_id],
            ))

        if findings:
            logger.debug("Factual analyzer found %d conflict(s)", len(findings))

        return DimensionResult(
            dimension=self.dimension,
            score=min(1.0, CONFLICT_WEIGHT * len(findings)),
            contradictions=contradictions,
            findings=findings,
            confidence=FACTUAL_CONFIDENCE,
        )


def _format_difference(difference: float) -> str:
    if difference == float("inf"):
        return "infinitely"
    return f"{difference:.0%}"
