"""Exception hierarchy for the arbitration engine.

Source disagreement is the product, never an error. These exceptions
cover backend failures (recovered inside analyzers), configuration
errors, ledger durability failures, and ticket backpressure.
"""

from __future__ import annotations


class ArbitrationError(Exception):
    """Base class for all engine errors."""


class InferenceUnavailable(ArbitrationError):
    """An inference backend call failed, timed out, or returned garbage.

    Raised by backends instead of returning zero scores. Analyzers catch
    it and degrade their own result; it never aborts a report.
    """

    def __init__(self, backend: str, reason: str) -> None:
        super().__init__(f"Inference backend {backend} unavailable: {reason}")
        self.backend = backend
        self.reason = reason


class WeightSumInvalid(ArbitrationError):
    """Configured dimension weights do not sum to 1.0 within tolerance."""

    def __init__(self, total: float) -> None:
        super().__init__(
            f"Dimension weights must sum to 1.0 (got {total:.6f}); "
            "refusing to start"
        )
        self.total = total


class LedgerWriteFailure(ArbitrationError):
    """A ledger append could not be committed after all retries."""


class EngineHalted(LedgerWriteFailure):
    """The engine stopped accepting requests after a ledger failure."""


class EscalationQueueFull(ArbitrationError):
    """The bounded ticket delivery queue is at capacity."""
