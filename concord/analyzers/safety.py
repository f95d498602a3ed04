"""Safety-requirement analyzer.

Pulls out the sentences that talk about safety, classifies the posture
each one takes (work de-energized or live, cold or hot), and flags
sources that take opposite postures. A single conflict saturates the
dimension.
"""

from __future__ import annotations

import logging
import re
from itertools import combinations

from concord.analyzers.base import ArbitrationContext, DimensionAnalyzer
from concord.analyzers.text import split_sentences
from concord.schemas.analysis import Dimension, DimensionResult, Finding, Severity
from concord.schemas.sources import SourceResponse

logger = logging.getLogger(__name__)

SAFETY_CONFIDENCE = 0.95
CONFLICT_WEIGHT = 1.0

SAFETY_LEXICON_RE = re.compile(
    r"\b(?:ppe|personal\s+protective\s+equipment|protective\s+equipment|safety|hazard\w*|"
    r"warning|caution|danger|lockout|lock-out|tagout|tag-out|loto|isolat\w*|"
    r"disconnect\w*|de-?energi[sz]\w*|energi[sz]\w*|power\w*|live|dead|voltage|"
    r"arc\s+flash|hot\s+work|cold\s+work|insulated|gloves?)\b",
    re.IGNORECASE,
)

_NEGATOR_RE = re.compile(
    r"(?:never|not|don't|doesn't|mustn't|cannot|can't|avoid|avoiding)", re.IGNORECASE
)
_WORD_RE = re.compile(r"[\w'-]+")

# A negator only governs a posture term this many words after it
NEGATION_WINDOW = 4

# axis -> [(posture, pattern)]; the first posture of each axis is the safe one
_POSTURES: dict[str, list[tuple[str, re.Pattern[str]]]] = {
    "electrical": [
        (
            "de-energized",
            re.compile(
                r"\bde-?energi[sz]\w*|\bpower(?:ed)?\s+(?:off|down|removed)\b|"
                r"\bwithout\s+power\b|\b(?:disconnect|isolate|remove)\w*\s+(?:the\s+)?power\b|"
                r"\block(?:ed)?[-\s]?out\b|\bloto\b|\bdead\b",
                re.IGNORECASE,
            ),
        ),
        (
            "energized",
            re.compile(
                r"(?<![-\w])energi[sz]\w*|\bpower(?:ed)?\s+(?:on|up|applied)\b|"
                r"\bwith\s+(?:the\s+)?power\b|\blive\b|\bhot\s+circuit\b",
                re.IGNORECASE,
            ),
        ),
    ],
    "work permit": [
        ("cold work", re.compile(r"\bcold\s+work\b", re.IGNORECASE)),
        ("hot work", re.compile(r"\bhot\s+work\b", re.IGNORECASE)),
    ],
}


def safety_sentences(text: str) -> list[str]:
    """Sentences that mention any safety-lexicon term."""
    return [s for s in split_sentences(text) if SAFETY_LEXICON_RE.search(s)]


def is_negated(sentence: str, start: int) -> bool:
    """Whether a negator appears within NEGATION_WINDOW words before ``start``."""
    preceding = _WORD_RE.findall(sentence[:start])[-NEGATION_WINDOW:]
    return any(_NEGATOR_RE.fullmatch(word) for word in preceding)


def classify_posture(sentence: str) -> dict[str, str]:
    """Posture per axis taken by one sentence.

    A sentence matching both postures of an axis is ambiguous and takes
    none. An unsafe posture reads as the safe one only when every mention
    of it is negated ("never work live"); a negation elsewhere in the
    sentence ("keep the power on and do not remove the cover") does not
    count.
    """
    postures: dict[str, str] = {}
    for axis, options in _POSTURES.items():
        matches = {name: list(pattern.finditer(sentence)) for name, pattern in options}
        taken = [name for name, found in matches.items() if found]
        if len(taken) != 1:
            continue
        posture = taken[0]
        safe = options[0][0]
        if posture != safe and all(is_negated(sentence, m.start()) for m in matches[posture]):
            posture = safe
        postures[axis] = posture
    return postures


def source_postures(text: str) -> dict[str, set[str]]:
    """All postures a source takes, per axis."""
    postures: dict[str, set[str]] = {}
    for sentence in safety_sentences(text):
        for axis, posture in classify_posture(sentence).items():
            postures.setdefault(axis, set()).add(posture)
    return postures


class SafetyAnalyzer(DimensionAnalyzer):
    """Detects opposing safety postures across sources."""

    dimension = Dimension.SAFETY

    async def analyze(
        self,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> DimensionResult:
        postures = [source_postures(s.text) for s in sources]

        contradictions: list[str] = []
        conflicts: list[tuple[str, list[str]]] = []

        for i, j in combinations(range(len(sources)), 2):
            for axis, taken_a in postures[i].items():
                taken_b = postures[j].get(axis)
                if not taken_b or len(taken_a) != 1 or len(taken_b) != 1 or taken_a == taken_b:
                    continue
                description = (
                    f"{sources[i].source_id} requires {next(iter(taken_a))}, "
                    f"{sources[j].source_id} requires {next(iter(taken_b))} ({axis})"
                )
                contradictions.append(description)
                conflicts.append((description, [sources[i].source_id, sources[j].source_id]))
                context.record_partial(self.dimension, CONFLICT_WEIGHT * len(conflicts))

        references = context.reference_findings(sources, self.dimension)
        score = min(1.0, CONFLICT_WEIGHT * (len(conflicts) + len(references)))
        critical = score >= context.config.safety_critical_score

        findings = [
            Finding(
                dimension=self.dimension,
                severity=Severity.CRITICAL if critical else Severity.HIGH,
                description=description,
                sources=ids,
            )
            for description, ids in conflicts
        ]
        for ref in references:
            contradictions.append(ref.description)
            findings.append(Finding(
                dimension=self.dimension,
                severity=Severity.CRITICAL if critical else ref.severity,
                description=ref.description,
                sources=[ref.source_id],
            ))

        if critical:
            logger.warning(
                "Safety dimension saturated (%.2f) across %d source(s)", score, len(sources)
            )

        return DimensionResult(
            dimension=self.dimension,
            score=score,
            contradictions=contradictions,
            findings=findings,
            confidence=SAFETY_CONFIDENCE,
        )
