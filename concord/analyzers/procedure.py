"""Procedure-step analyzer.

Flags steps from different sources that act on the same thing with
antagonistic verbs, such as "Install the relay cover" against "Remove
the relay cover".
"""

from __future__ import annotations

import re
from itertools import combinations

from concord.analyzers.base import ArbitrationContext, DimensionAnalyzer
from concord.analyzers.text import extract_steps
from concord.providers.heuristic import word_set
from concord.schemas.analysis import Dimension, DimensionResult, Finding, Severity
from concord.schemas.sources import SourceResponse

PROCEDURE_CONFIDENCE = 0.8
CONFLICT_WEIGHT = 0.6
MIN_SHARED_WORDS = 3


def _verb_forms(verb: str) -> list[str]:
    if verb.endswith(("ch", "sh", "s", "x")):
        return [verb, f"{verb}es", f"{verb}ed", f"{verb}ing"]
    if verb.endswith("e"):
        stem = verb[:-1]
        return [verb, f"{stem}es", f"{stem}ed", f"{stem}ing"]
    return [verb, f"{verb}s", f"{verb}ed", f"{verb}ing"]


def _verb_re(verb: str) -> re.Pattern[str]:
    if " " in verb:
        head, particle = verb.split(" ", 1)
        return re.compile(
            rf"\b(?:{'|'.join(_verb_forms(head))})\b(?:\s+\w+)?\s+{particle}\b",
            re.IGNORECASE,
        )
    return re.compile(rf"\b(?:{'|'.join(_verb_forms(verb))})\b", re.IGNORECASE)


ANTAGONISTIC_VERBS: list[tuple[str, str]] = [
    ("install", "remove"),
    ("connect", "disconnect"),
    ("engage", "disengage"),
    ("open", "close"),
    ("turn on", "turn off"),
    ("switch on", "switch off"),
    ("tighten", "loosen"),
    ("enable", "disable"),
    ("lock", "unlock"),
]

_VERB_PATTERNS = [(a, _verb_re(a), b, _verb_re(b)) for a, b in ANTAGONISTIC_VERBS]

# Every inflected verb form is excluded from the shared-word count
_VERB_WORDS = frozenset(
    form
    for pair in ANTAGONISTIC_VERBS
    for verb in pair
    for part in verb.split()
    for form in _verb_forms(part)
)


def _shared_words(step_a: str, step_b: str) -> set[str]:
    return (word_set(step_a) & word_set(step_b)) - _VERB_WORDS


class ProcedureAnalyzer(DimensionAnalyzer):
    """Detects antagonistic steps acting on the same object."""

    dimension = Dimension.PROCEDURE

    async def analyze(
        self,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> DimensionResult:
        steps = [extract_steps(s.text) for s in sources]

        contradictions: list[str] = []
        findings: list[Finding] = []

        for i, j in combinations(range(len(sources)), 2):
            for step_a in steps[i]:
                for step_b in steps[j]:
                    conflict = self._antagonism(step_a, step_b)
                    if conflict is None:
                        continue
                    verb_a, verb_b = conflict
                    description = (
                        f"{sources[i].source_id} says '{step_a}' ({verb_a}), "
                        f"{sources[j].source_id} says '{step_b}' ({verb_b})"
                    )
                    contradictions.append(description)
                    findings.append(Finding(
                        dimension=self.dimension,
                        severity=Severity.HIGH,
                        description=description,
                        sources=[sources[i].source_id, sources[j].source_id],
                    ))
                    context.record_partial(self.dimension, CONFLICT_WEIGHT * len(findings))

        return DimensionResult(
            dimension=self.dimension,
            score=min(1.0, CONFLICT_WEIGHT * len(findings)),
            contradictions=contradictions,
            findings=findings,
            confidence=PROCEDURE_CONFIDENCE,
        )

    @staticmethod
    def _antagonism(step_a: str, step_b: str) -> tuple[str, str] | None:
        """Return the opposing verbs if the steps conflict, else None."""
        for first, first_re, second, second_re in _VERB_PATTERNS:
            a_first, a_second = bool(first_re.search(step_a)), bool(second_re.search(step_a))
            b_first, b_second = bool(first_re.search(step_b)), bool(second_re.search(step_b))
            if a_first and not a_second and b_second and not b_first:
                verbs = (first, second)
            elif a_second and not a_first and b_first and not b_second:
                verbs = (second, first)
            else:
                continue
            if len(_shared_words(step_a, step_b)) >= MIN_SHARED_WORDS:
                return verbs
        return None
