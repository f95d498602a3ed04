"""Hash-chained evidence ledger.

Every entry records the SHA-256 of its canonical payload and of the
previous entry, so editing, deleting or reordering any committed entry
breaks the chain from that point on. EvidenceLedger is the only writer:
appends are serialized through an asyncio.Lock and retried with bounded
exponential backoff before giving up with LedgerWriteFailure.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from concord.errors import LedgerWriteFailure
from concord.ledger.store import LedgerStore
from concord.schemas.ledger import (
    GENESIS_HASH,
    ChainVerification,
    LedgerEntry,
    LedgerStats,
)

logger = logging.getLogger(__name__)


def canonical_json(data: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_entry_hash(
    sequence: int,
    entry_type: str,
    payload_hash: str,
    timestamp: str,
    previous_hash: str,
) -> str:
    """Hash of an entry's header fields, which include the payload hash."""
    return sha256_hex(canonical_json({
        "sequence": sequence,
        "type": entry_type,
        "payload_hash": payload_hash,
        "timestamp": timestamp,
        "previous_hash": previous_hash,
    }))


class EvidenceLedger:
    """Single-writer, append-only, hash-chained audit log."""

    def __init__(
        self,
        store: LedgerStore,
        *,
        retries: int = 3,
        backoff_seconds: float = 0.05,
    ) -> None:
        self._store = store
        self._retries = max(1, retries)
        self._backoff = backoff_seconds
        self._lock = asyncio.Lock()

    @property
    def store(self) -> LedgerStore:
        return self._store

    async def append(self, entry_type: str, payload: dict[str, Any]) -> LedgerEntry:
        """Chain and durably commit one entry.

        Raises:
            LedgerWriteFailure: If the store still fails after all retries.
                Nothing is appended in that case.
        """
        payload_hash = sha256_hex(canonical_json(payload))

        async with self._lock:
            last_error: Exception | None = None
            for attempt in range(self._retries):
                try:
                    head = await self._store.last()
                    sequence = head.sequence + 1 if head else 0
                    previous_hash = head.entry_hash if head else GENESIS_HASH
                    timestamp = datetime.now(UTC).isoformat()
                    entry = LedgerEntry(
                        sequence=sequence,
                        type=entry_type,
                        payload=payload,
                        payload_hash=payload_hash,
                        timestamp=timestamp,
                        previous_hash=previous_hash,
                        entry_hash=compute_entry_hash(
                            sequence, entry_type, payload_hash, timestamp, previous_hash
                        ),
                    )
                    await self._store.append(entry)
                except Exception as e:
                    last_error = e
                    if attempt < self._retries - 1:
                        backoff = self._backoff * (2**attempt)
                        logger.warning(
                            "Ledger append retry %d/%d (%s, backoff: %.2fs)",
                            attempt + 1,
                            self._retries - 1,
                            e,
                            backoff,
                        )
                        await asyncio.sleep(backoff)
                    continue

                logger.debug("Ledger entry %d appended (%s)", entry.sequence, entry_type)
                return entry

        logger.error(
            "Ledger append failed after %d attempt(s): %s", self._retries, last_error
        )
        raise LedgerWriteFailure(
            f"Could not append {entry_type!r} entry after {self._retries} attempt(s): "
            f"{last_error}"
        ) from last_error

    async def entries(self, entry_type: str | None = None) -> list[LedgerEntry]:
        """Read entries back in sequence order."""
        return await self._store.read_all(entry_type)

    async def verify_chain(self) -> ChainVerification:
        """Recompute every hash from genesis and report the first break."""
        entries = await self._store.read_all()
        expected_previous = GENESIS_HASH

        for index, entry in enumerate(entries):
            reason = ""
            if entry.sequence != index:
                reason = f"expected sequence {index}, found {entry.sequence}"
            elif sha256_hex(canonical_json(entry.payload)) != entry.payload_hash:
                reason = "payload hash mismatch"
            elif entry.previous_hash != expected_previous:
                reason = "previous hash does not match prior entry"
            elif compute_entry_hash(
                entry.sequence,
                entry.type,
                entry.payload_hash,
                entry.timestamp,
                entry.previous_hash,
            ) != entry.entry_hash:
                reason = "entry hash mismatch"

            if reason:
                logger.warning("Ledger chain broken at entry %d: %s", entry.sequence, reason)
                return ChainVerification(
                    valid=False,
                    entries_checked=index + 1,
                    broken_at=entry.sequence,
                    reason=reason,
                )
            expected_previous = entry.entry_hash

        return ChainVerification(valid=True, entries_checked=len(entries))

    async def stats(self) -> LedgerStats:
        """Counts by entry type, time span, and chain integrity."""
        entries = await self._store.read_all()
        return LedgerStats(
            total_entries=len(entries),
            entries_by_type=dict(Counter(e.type for e in entries)),
            first_timestamp=entries[0].timestamp if entries else None,
            last_timestamp=entries[-1].timestamp if entries else None,
            integrity=await self.verify_chain(),
        )
