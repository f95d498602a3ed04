"""Abstract base class for all inference backends.

Defines the InferenceBackend interface that every NLI adapter must
implement. Analyzers interact exclusively through this interface and
never call provider SDKs directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from concord.schemas.analysis import InferenceResult
from concord.schemas.config import BackendConfig


class InferenceBackend(ABC):
    """Abstract interface for anything that can classify a statement pair.

    Exposes identity and a single async classify() method. Implementations
    must raise InferenceUnavailable on any failure rather than guessing.
    """

    @property
    @abstractmethod
    def backend_id(self) -> str:
        """Identifier used in logs and in InferenceResult.backend."""

    @property
    def max_attempts(self) -> int:
        """Backends one classify() call may consult in turn, each with the full timeout."""
        return 1

    @abstractmethod
    async def classify(
        self,
        text_a: str,
        text_b: str,
        *,
        timeout: float = 20.0,
    ) -> InferenceResult:
        """Classify the relationship between two statements.

        Args:
            text_a: First statement.
            text_b: Second statement.
            timeout: Timeout in seconds for the whole call.

        Returns:
            An InferenceResult with entailment, contradiction, neutral and
            confidence scores, each in [0, 1].

        Raises:
            InferenceUnavailable: On timeout, backend error, or a malformed
                response.
        """


class ConfiguredBackend(InferenceBackend):
    """Base for backends initialized from a BackendConfig registry entry."""

    def __init__(self, config: BackendConfig) -> None:
        self._config = config

    # ── Identity ──────────────────────────────────────────────

    @property
    def backend_id(self) -> str:
        return self._config.model

    @property
    def provider_id(self) -> str:
        """Provider identifier (e.g. 'anthropic', 'openai')."""
        return self._config.provider

    @property
    def display_name(self) -> str:
        """Human-friendly backend name for CLI output."""
        return self._config.display_name

    @property
    def config(self) -> BackendConfig:
        """The full BackendConfig backing this backend."""
        return self._config
