"""Concord schema definitions.

All Pydantic v2 models used across the analyzers, aggregator, gate,
ledger, and escalation queue.
"""

from concord.schemas.analysis import (
    Dimension,
    DimensionResult,
    Finding,
    InferenceResult,
    Severity,
    max_severity,
)
from concord.schemas.config import (
    ArbitrationConfig,
    BackendConfig,
    DimensionWeights,
)
from concord.schemas.escalation import (
    EscalationTicket,
    QueueStats,
    TicketPriority,
    TicketStatus,
)
from concord.schemas.ledger import (
    GENESIS_HASH,
    ChainVerification,
    LedgerEntry,
    LedgerStats,
)
from concord.schemas.report import ContradictionReport, Decision
from concord.schemas.sources import (
    ReferenceFact,
    ReferenceFinding,
    SourceKind,
    SourceResponse,
)

__all__ = [
    "GENESIS_HASH",
    "ArbitrationConfig",
    "BackendConfig",
    "ChainVerification",
    "ContradictionReport",
    "Decision",
    "Dimension",
    "DimensionResult",
    "DimensionWeights",
    "EscalationTicket",
    "Finding",
    "InferenceResult",
    "LedgerEntry",
    "LedgerStats",
    "QueueStats",
    "ReferenceFact",
    "ReferenceFinding",
    "Severity",
    "SourceKind",
    "SourceResponse",
    "TicketPriority",
    "TicketStatus",
    "max_severity",
]
