"""Lexical-overlap heuristic used when no inference backend answers.

The pairwise analyzer falls back to this estimate for any pair whose
backend call failed, and the CLI's --offline mode uses it as the only
backend. It is deliberately crude: the fixed low confidence it reports
is what keeps a heuristic-only report from auto-approving.
"""

from __future__ import annotations

import re

from concord.providers.base import InferenceBackend
from concord.schemas.analysis import InferenceResult

HEURISTIC_CONFIDENCE = 0.3

_WORD_RE = re.compile(r"[a-z0-9]+(?:[-'][a-z0-9]+)*")


def word_set(text: str) -> set[str]:
    """Lowercased word tokens of a text."""
    return set(_WORD_RE.findall(text.lower()))


def lexical_similarity(text_a: str, text_b: str) -> float:
    """Shared words divided by the larger vocabulary of the two texts."""
    words_a = word_set(text_a)
    words_b = word_set(text_b)
    if not words_a and not words_b:
        return 1.0
    larger = max(len(words_a), len(words_b))
    return len(words_a & words_b) / larger


def lexical_overlap_estimate(text_a: str, text_b: str, backend: str = "lexical") -> InferenceResult:
    """Estimate NLI scores from word overlap alone.

    High overlap reads as entailment, low overlap as contradiction, and
    anything in between as neutral. Confidence is always 0.3.
    """
    similarity = lexical_similarity(text_a, text_b)
    if similarity > 0.8:
        entailment, contradiction, neutral = 0.8, 0.1, 0.1
    elif similarity < 0.3:
        entailment, contradiction, neutral = 0.1, 0.7, 0.2
    else:
        entailment, contradiction, neutral = 0.2, 0.1, 0.7
    return InferenceResult(
        entailment=entailment,
        contradiction=contradiction,
        neutral=neutral,
        confidence=HEURISTIC_CONFIDENCE,
        backend=backend,
    )


class LexicalInferenceBackend(InferenceBackend):
    """Offline backend that never calls a model."""

    @property
    def backend_id(self) -> str:
        return "lexical"

    async def classify(
        self,
        text_a: str,
        text_b: str,
        *,
        timeout: float = 20.0,
    ) -> InferenceResult:
        return lexical_overlap_estimate(text_a, text_b, backend=self.backend_id)
