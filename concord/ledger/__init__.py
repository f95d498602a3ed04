"""Hash-chained evidence ledger and its storage backends."""

from concord.ledger.database import close_db, init_db
from concord.ledger.store import LedgerStore, MemoryLedgerStore, SqliteLedgerStore
from concord.ledger.writer import (
    EvidenceLedger,
    canonical_json,
    compute_entry_hash,
    sha256_hex,
)

__all__ = [
    "EvidenceLedger",
    "LedgerStore",
    "MemoryLedgerStore",
    "SqliteLedgerStore",
    "canonical_json",
    "close_db",
    "compute_entry_hash",
    "init_db",
    "sha256_hex",
]
