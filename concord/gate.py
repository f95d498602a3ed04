"""Decision gate: deterministic routing of an aggregate to a decision."""

from __future__ import annotations

from typing import NamedTuple

from concord.schemas.analysis import Severity
from concord.schemas.report import Decision


class GateOutcome(NamedTuple):
    decision: Decision
    reason: str


class DecisionGate:
    """Maps (overall score, aggregate confidence, max severity) to a Decision.

    Rules are checked in order, first match wins:

    1. any critical finding -> BLOCK
    2. aggregate confidence below the floor -> ESCALATE_HITL
    3. overall score above the threshold -> ESCALATE_HITL
    4. otherwise -> AUTO_APPROVE

    Both boundaries are strict, so a score exactly at the threshold or a
    confidence exactly at the floor is approved.
    """

    def __init__(self, score_threshold: float = 0.35, confidence_floor: float = 0.8) -> None:
        self._score_threshold = score_threshold
        self._confidence_floor = confidence_floor

    def decide(
        self,
        overall_score: float,
        aggregate_confidence: float,
        max_severity: Severity | None,
    ) -> GateOutcome:
        if max_severity == Severity.CRITICAL:
            return GateOutcome(Decision.BLOCK, "critical finding present")

        if aggregate_confidence < self._confidence_floor:
            return GateOutcome(
                Decision.ESCALATE_HITL,
                f"aggregate confidence {aggregate_confidence:.2f} below floor "
                f"{self._confidence_floor:.2f}",
            )

        if overall_score > self._score_threshold:
            return GateOutcome(
                Decision.ESCALATE_HITL,
                f"overall score {overall_score:.3f} above threshold "
                f"{self._score_threshold:.2f}",
            )

        return GateOutcome(
            Decision.AUTO_APPROVE,
            f"overall score {overall_score:.3f} within threshold with "
            f"confidence {aggregate_confidence:.2f}",
        )
