"""Engine and backend configuration schemas.

Defines the inference backend registry entry, the dimension weights,
and the top-level ArbitrationConfig loaded from defaults.toml.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from concord.schemas.analysis import Dimension


class BackendConfig(BaseModel):
    """Configuration for a single inference backend in the registry.

    Loaded from backends.toml. Each entry provides the LiteLLM routing
    information and the adapter's own retry policy.
    """

    provider: str = Field(description="Provider identifier (e.g. 'anthropic', 'openai')")
    model: str = Field(description="LiteLLM model identifier")
    display_name: str = Field(description="Human-friendly backend name for CLI output")
    api_key_env: str = Field(description="Environment variable name holding the API key")
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    supports_structured: bool = Field(
        default=False, description="Whether the model supports JSON response mode"
    )
    max_retries: int = Field(
        default=2, ge=0, le=5, description="Retries for transient provider errors"
    )
    max_chars: int = Field(
        default=2000, gt=0, description="Per-statement character budget sent to the model"
    )


class DimensionWeights(BaseModel):
    """Fixed aggregation weights, one per dimension.

    Not validated here: the aggregator refuses to start unless they sum
    to 1.0, so a bad config fails loudly instead of being renormalized.
    """

    safety: float = Field(default=0.40, ge=0.0, le=1.0)
    factual: float = Field(default=0.25, ge=0.0, le=1.0)
    procedure: float = Field(default=0.20, ge=0.0, le=1.0)
    semantic: float = Field(default=0.10, ge=0.0, le=1.0)
    pairwise: float = Field(default=0.05, ge=0.0, le=1.0)

    def as_mapping(self) -> dict[Dimension, float]:
        """Return the weights keyed by Dimension."""
        return {
            Dimension.SAFETY: self.safety,
            Dimension.FACTUAL: self.factual,
            Dimension.PROCEDURE: self.procedure,
            Dimension.SEMANTIC: self.semantic,
            Dimension.PAIRWISE: self.pairwise,
        }


class ArbitrationConfig(BaseModel):
    """Top-level configuration for the arbitration engine.

    Loaded from defaults.toml and overridden by CLI flags. The two gate
    knobs (score_threshold, confidence_floor) live here rather than in
    analyzer code so operators can tune sensitivity without touching
    scoring.
    """

    weights: DimensionWeights = Field(
        default_factory=DimensionWeights, description="Per-dimension aggregation weights"
    )
    score_threshold: float = Field(
        default=0.35, ge=0.0, le=1.0,
        description="Overall score above which a report is escalated",
    )
    confidence_floor: float = Field(
        default=0.8, ge=0.0, le=1.0,
        description="Aggregate confidence below which a report is escalated",
    )
    pairwise_worker_pool_size: int = Field(
        default=8, gt=0, description="Max concurrent backend calls in the pairwise analyzer"
    )
    analyzer_timeout_ms: int = Field(
        default=30_000, gt=0, description="Per-analyzer timeout in milliseconds"
    )
    inference_timeout: float = Field(
        default=20.0, gt=0.0, description="Per-call backend timeout in seconds"
    )
    degraded_confidence: float = Field(
        default=0.3, ge=0.0, le=1.0,
        description="Confidence forced onto a degraded dimension result",
    )
    contradiction_cutoff: float = Field(
        default=0.6, ge=0.0, le=1.0,
        description="Pairwise contradiction score above which a pair contradicts",
    )
    entailment_cutoff: float = Field(
        default=0.6, ge=0.0, le=1.0,
        description="Pairwise entailment score above which a pair entails",
    )
    neutral_penalty: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Flat pair score for neutral pairs"
    )
    safety_critical_score: float = Field(
        default=0.9, ge=0.0, le=1.0,
        description="Safety score at which safety findings become critical",
    )
    ledger_retries: int = Field(
        default=3, ge=1, le=10, description="Attempts for a ledger append before failing"
    )
    ledger_backoff_seconds: float = Field(
        default=0.05, ge=0.0, description="Base backoff between ledger append attempts"
    )
    escalation_max_pending: int = Field(
        default=100, gt=0, description="Bounded size of the ticket delivery queue"
    )
    ledger_db_path: str = Field(
        default="~/.concord/ledger.db", description="Path to the ledger database file"
    )
    backends: list[str] = Field(
        default_factory=list,
        description="Ordered backend keys; later keys are fallbacks",
    )

    @property
    def analyzer_timeout(self) -> float:
        """Per-analyzer timeout in seconds."""
        return self.analyzer_timeout_ms / 1000.0
