"""Concord: cross-source contradiction arbitration engine."""

__version__ = "0.1.0"

from .engine import ArbitrationEngine
from .errors import (
    ArbitrationError,
    EngineHalted,
    EscalationQueueFull,
    InferenceUnavailable,
    LedgerWriteFailure,
    WeightSumInvalid,
)
from .escalation import EscalationQueue
from .ledger import EvidenceLedger, MemoryLedgerStore, SqliteLedgerStore
from .schemas import ArbitrationConfig, ContradictionReport, Decision, SourceResponse

__all__ = [
    "ArbitrationConfig",
    "ArbitrationEngine",
    "ArbitrationError",
    "ContradictionReport",
    "Decision",
    "EngineHalted",
    "EscalationQueue",
    "EscalationQueueFull",
    "EvidenceLedger",
    "InferenceUnavailable",
    "LedgerWriteFailure",
    "MemoryLedgerStore",
    "SourceResponse",
    "SqliteLedgerStore",
    "WeightSumInvalid",
]
