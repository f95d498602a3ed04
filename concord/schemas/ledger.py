"""Evidence ledger schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# previous_hash of the first entry in every chain
GENESIS_HASH = "0" * 64


class LedgerEntry(BaseModel):
    """One append-only, hash-chained ledger record."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=0, description="Position in the chain, starting at 0")
    type: str = Field(description="Entry type (e.g. 'arbitration_decision')")
    payload: dict[str, Any] = Field(description="JSON-serializable entry payload")
    payload_hash: str = Field(description="SHA-256 of the canonical payload JSON")
    timestamp: str = Field(description="ISO 8601 UTC timestamp of the append")
    previous_hash: str = Field(description="Hash of the previous entry, or the genesis hash")
    entry_hash: str = Field(description="Hash of this entry as written")


class ChainVerification(BaseModel):
    """Result of recomputing the hash chain from genesis."""

    valid: bool = Field(description="Whether every link verified")
    entries_checked: int = Field(ge=0, description="Entries examined")
    broken_at: int | None = Field(
        default=None, description="Sequence of the first broken entry, if any"
    )
    reason: str = Field(default="", description="Why the chain broke")


class LedgerStats(BaseModel):
    """Summary of ledger contents and integrity."""

    total_entries: int = Field(ge=0)
    entries_by_type: dict[str, int] = Field(default_factory=dict)
    first_timestamp: str | None = Field(default=None)
    last_timestamp: str | None = Field(default=None)
    integrity: ChainVerification
