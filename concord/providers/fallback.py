"""Ordered fallback chain across several inference backends."""

from __future__ import annotations

import asyncio
import logging

from concord.errors import InferenceUnavailable
from concord.providers.base import InferenceBackend
from concord.schemas.analysis import InferenceResult

logger = logging.getLogger(__name__)


class FallbackInferenceBackend(InferenceBackend):
    """Try each backend in order until one returns scores.

    The first backend is the primary; later ones are only consulted when
    every earlier backend raised InferenceUnavailable or ran out of time.
    Each attempt gets the full per-call timeout, so one call through the
    chain may take up to ``max_attempts * timeout``.
    """

    def __init__(self, backends: list[InferenceBackend]) -> None:
        if not backends:
            raise ValueError("FallbackInferenceBackend needs at least one backend")
        self._backends = list(backends)

    @property
    def backend_id(self) -> str:
        return " -> ".join(b.backend_id for b in self._backends)

    @property
    def backends(self) -> list[InferenceBackend]:
        return list(self._backends)

    @property
    def max_attempts(self) -> int:
        return sum(b.max_attempts for b in self._backends)

    async def classify(
        self,
        text_a: str,
        text_b: str,
        *,
        timeout: float = 20.0,
    ) -> InferenceResult:
        failures: list[str] = []
        for index, backend in enumerate(self._backends):
            try:
                return await asyncio.wait_for(
                    backend.classify(text_a, text_b, timeout=timeout),
                    timeout=timeout * backend.max_attempts,
                )
            except InferenceUnavailable as e:
                reason = e.reason
            except TimeoutError:
                reason = f"timed out after {timeout:.1f}s"

            failures.append(f"{backend.backend_id}: {reason}")
            if index < len(self._backends) - 1:
                logger.warning(
                    "Backend %s unavailable (%s), falling back to %s",
                    backend.backend_id,
                    reason,
                    self._backends[index + 1].backend_id,
                )

        raise InferenceUnavailable(
            self.backend_id,
            f"all {len(self._backends)} backend(s) failed ({'; '.join(failures)})",
        )
