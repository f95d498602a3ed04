"""Semantic-concept analyzer.

Finds sources that assert opposite sides of a known opposing-state pair
(AC vs. DC, open vs. closed, clockwise vs. counterclockwise, ...).
"""

from __future__ import annotations

import re
from itertools import combinations
from typing import NamedTuple

from concord.analyzers.base import ArbitrationContext, DimensionAnalyzer
from concord.schemas.analysis import Dimension, DimensionResult, Finding, Severity
from concord.schemas.sources import SourceResponse

SEMANTIC_CONFIDENCE = 0.85
CONFLICT_WEIGHT = 0.7


class ConceptPair(NamedTuple):
    """Two mutually exclusive states of one concept."""

    concept: str
    first: str
    first_re: re.Pattern[str]
    second: str
    second_re: re.Pattern[str]
    severity: Severity


def _concept(
    concept: str,
    first: str,
    first_pattern: str,
    second: str,
    second_pattern: str,
    severity: Severity = Severity.MEDIUM,
    flags: int = re.IGNORECASE,
) -> ConceptPair:
    return ConceptPair(
        concept,
        first,
        re.compile(first_pattern, flags),
        second,
        re.compile(second_pattern, flags),
        severity,
    )


CONCEPT_PAIRS: list[ConceptPair] = [
    _concept(
        "energization",
        "de-energized",
        r"\bde-?energi[sz](?:e|ed|ing)\b|\bpower(?:ed)?\s+off\b|\bwithout\s+power\b",
        "energized",
        r"(?<![-\w])energi[sz](?:e|ed|ing)\b|\bpower(?:ed)?\s+on\b|\bwith\s+power\b",
        Severity.HIGH,
    ),
    _concept(
        "current type",
        "AC",
        r"\bAC\b|\balternating\s+current\b",
        "DC",
        r"\bDC\b|\bdirect\s+current\b",
        Severity.HIGH,
        flags=0,
    ),
    _concept(
        "supply voltage",
        "120V",
        r"\b120\s*-?\s*(?:V|VAC|volts?)\b",
        "240V",
        r"\b240\s*-?\s*(?:V|VAC|volts?)\b",
        Severity.HIGH,
    ),
    _concept(
        "rotation",
        "clockwise",
        r"(?<![-\w])clockwise\b|\bCW\b",
        "counterclockwise",
        r"\b(?:counter|anti)-?clockwise\b|\bCCW\b",
    ),
    _concept("position", "open", r"\b(?:is|are|remains?|left|stays?)\s+open\b", "closed",
             r"\bclosed\b"),
    _concept(
        "switch state",
        "on",
        r"\b(?:switch(?:ed)?|turn(?:ed)?|set)\s+(?:\w+\s+)?on\b|\bON\s+position\b",
        "off",
        r"\b(?:switch(?:ed)?|turn(?:ed)?|set)\s+(?:\w+\s+)?off\b|\bOFF\s+position\b",
    ),
    _concept("wiring", "series", r"\bin\s+series\b", "parallel", r"\bin\s+parallel\b"),
    _concept(
        "polarity",
        "positive",
        r"\bpositive\s+(?:terminal|lead|cable|side|post)\b",
        "negative",
        r"\bnegative\s+(?:terminal|lead|cable|side|post)\b",
    ),
]


def assert_sides(text: str) -> dict[str, set[str]]:
    """Which side(s) of each concept a text asserts."""
    sides: dict[str, set[str]] = {}
    for pair in CONCEPT_PAIRS:
        found: set[str] = set()
        if pair.first_re.search(text):
            found.add(pair.first)
        if pair.second_re.search(text):
            found.add(pair.second)
        if found:
            sides[pair.concept] = found
    return sides


class SemanticAnalyzer(DimensionAnalyzer):
    """Detects opposing-state vocabulary across sources."""

    dimension = Dimension.SEMANTIC

    async def analyze(
        self,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> DimensionResult:
        asserted = [assert_sides(s.text) for s in sources]
        severities = {p.concept: p.severity for p in CONCEPT_PAIRS}

        contradictions: list[str] = []
        findings: list[Finding] = []
        conflicting_pairs = 0

        for i, j in combinations(range(len(sources)), 2):
            a, b = sources[i], sources[j]
            pair_conflicts = 0
            for concept, sides_a in asserted[i].items():
                sides_b = asserted[j].get(concept)
                # Each side must be asserted alone, and differently
                if not sides_b or len(sides_a) != 1 or len(sides_b) != 1 or sides_a == sides_b:
                    continue
                description = (
                    f"{a.source_id} says {next(iter(sides_a))}, "
                    f"{b.source_id} says {next(iter(sides_b))} ({concept})"
                )
                contradictions.append(description)
                findings.append(Finding(
                    dimension=self.dimension,
                    severity=severities[concept],
                    description=description,
                    sources=[a.source_id, b.source_id],
                ))
                pair_conflicts += 1
            if pair_conflicts:
                conflicting_pairs += 1
                context.record_partial(self.dimension, CONFLICT_WEIGHT * conflicting_pairs)

        return DimensionResult(
            dimension=self.dimension,
            score=min(1.0, CONFLICT_WEIGHT * conflicting_pairs),
            contradictions=contradictions,
            findings=findings,
            confidence=SEMANTIC_CONFIDENCE,
        )
