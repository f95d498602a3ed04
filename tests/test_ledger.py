"""Tests for the evidence ledger.

Covers database initialization, the memory and SQLite stores, hash
chaining, tamper detection, retry/failure behaviour, and stats.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from concord.errors import LedgerWriteFailure
from concord.ledger import (
    EvidenceLedger,
    MemoryLedgerStore,
    SqliteLedgerStore,
    canonical_json,
    close_db,
    compute_entry_hash,
    init_db,
    sha256_hex,
)
from concord.schemas.ledger import GENESIS_HASH, LedgerEntry

# Patch targets
_SLEEP = "concord.ledger.writer.asyncio.sleep"


# ── Factories ──────────────────────────────────────────────────────


def _payload(n: int = 0) -> dict:
    return {
        "report": {"id": f"report-{n}", "decision": "auto_approve", "overall_score": 0.01 * n},
        "source_digests": {"manual": sha256_hex(f"text {n}")},
    }


class FlakyStore(MemoryLedgerStore):
    """Memory store whose first ``failures`` appends raise."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def append(self, entry: LedgerEntry) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise OSError("disk full")
        await super().append(entry)


@pytest.fixture
async def sqlite_ledger(tmp_path):
    db = await init_db(str(tmp_path / "ledger.db"))
    yield EvidenceLedger(SqliteLedgerStore(db)), db
    await close_db(db)


# ── Hashing helpers ───────────────────────────────────────────────


def test_canonical_json_is_key_order_independent():
    assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})
    assert canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'


def test_canonical_json_keeps_unicode():
    assert canonical_json({"unit": "N·m"}) == '{"unit":"N·m"}'


def test_sha256_hex():
    assert sha256_hex("") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_entry_hash_covers_every_header_field():
    fields = {
        "sequence": 0,
        "entry_type": "arbitration_decision",
        "payload_hash": "a" * 64,
        "timestamp": "2026-01-01T00:00:00+00:00",
        "previous_hash": GENESIS_HASH,
    }
    reference = compute_entry_hash(**fields)
    changes = {
        "sequence": 1,
        "entry_type": "operator_note",
        "payload_hash": "b" * 64,
        "timestamp": "2026-01-02T00:00:00+00:00",
        "previous_hash": "f" * 64,
    }
    for name, value in changes.items():
        assert compute_entry_hash(**{**fields, name: value}) != reference, name


# ── Database Initialization ───────────────────────────────────────


@pytest.mark.asyncio
async def test_init_db_creates_table(tmp_path):
    """init_db creates the ledger_entries table in a new database."""
    db = await init_db(str(tmp_path / "ledger.db"))

    async with db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ) as cursor:
        tables = [row[0] for row in await cursor.fetchall()]

    assert "ledger_entries" in tables
    await close_db(db)


@pytest.mark.asyncio
async def test_init_db_wal_mode(tmp_path):
    """init_db enables WAL journal mode."""
    db = await init_db(str(tmp_path / "ledger.db"))

    async with db.execute("PRAGMA journal_mode") as cursor:
        row = await cursor.fetchone()
        assert row[0] == "wal"

    await close_db(db)


@pytest.mark.asyncio
async def test_init_db_creates_parent_dirs(tmp_path):
    """init_db creates missing parent directories."""
    path = tmp_path / "nested" / "dir" / "ledger.db"
    db = await init_db(str(path))
    await close_db(db)
    assert path.exists()


@pytest.mark.asyncio
async def test_init_db_in_memory():
    """init_db accepts :memory: for throwaway ledgers."""
    db = await init_db(":memory:")
    ledger = EvidenceLedger(SqliteLedgerStore(db))
    entry = await ledger.append("arbitration_decision", _payload())
    assert entry.sequence == 0
    await close_db(db)


# ── Appending and chaining ────────────────────────────────────────


@pytest.mark.asyncio
async def test_first_entry_links_to_genesis():
    ledger = EvidenceLedger(MemoryLedgerStore())
    entry = await ledger.append("arbitration_decision", _payload())

    assert entry.sequence == 0
    assert entry.previous_hash == GENESIS_HASH
    assert entry.payload_hash == sha256_hex(canonical_json(_payload()))
    assert entry.entry_hash == compute_entry_hash(
        0, "arbitration_decision", entry.payload_hash, entry.timestamp, GENESIS_HASH,
    )


@pytest.mark.asyncio
async def test_entries_chain():
    ledger = EvidenceLedger(MemoryLedgerStore())
    first = await ledger.append("arbitration_decision", _payload(0))
    second = await ledger.append("arbitration_decision", _payload(1))

    assert second.sequence == 1
    assert second.previous_hash == first.entry_hash


@pytest.mark.asyncio
async def test_concurrent_appends_are_serialized():
    ledger = EvidenceLedger(MemoryLedgerStore())
    await asyncio.gather(*(ledger.append("arbitration_decision", _payload(n)) for n in range(20)))

    entries = await ledger.entries()
    assert [e.sequence for e in entries] == list(range(20))
    assert (await ledger.verify_chain()).valid


@pytest.mark.asyncio
async def test_entries_filtered_by_type():
    ledger = EvidenceLedger(MemoryLedgerStore())
    await ledger.append("arbitration_decision", _payload(0))
    await ledger.append("operator_note", {"note": "backend key rotated"})
    await ledger.append("arbitration_decision", _payload(1))

    decisions = await ledger.entries("arbitration_decision")
    assert [e.sequence for e in decisions] == [0, 2]


@pytest.mark.asyncio
async def test_sqlite_roundtrip(sqlite_ledger):
    ledger, _ = sqlite_ledger
    payload = {"report": {"id": "r1", "notes": "35 ft-lb vs 47.5 N·m"}, "n": [1, 2.5, None]}
    written = await ledger.append("arbitration_decision", payload)

    entries = await ledger.entries()
    assert entries == [written]
    assert entries[0].payload == payload


@pytest.mark.asyncio
async def test_sqlite_survives_reopen(tmp_path):
    path = str(tmp_path / "ledger.db")
    db = await init_db(path)
    await EvidenceLedger(SqliteLedgerStore(db)).append("arbitration_decision", _payload(0))
    await close_db(db)

    db = await init_db(path)
    ledger = EvidenceLedger(SqliteLedgerStore(db))
    second = await ledger.append("arbitration_decision", _payload(1))
    result = await ledger.verify_chain()
    await close_db(db)

    assert second.sequence == 1
    assert result.valid
    assert result.entries_checked == 2


@pytest.mark.asyncio
async def test_sqlite_store_opens_path_on_first_use(tmp_path):
    path = tmp_path / "nested" / "ledger.db"
    store = SqliteLedgerStore(db_path=str(path))
    assert not path.exists()

    ledger = EvidenceLedger(store)
    await ledger.append("arbitration_decision", _payload(0))
    await ledger.append("arbitration_decision", _payload(1))
    await store.close()

    assert path.exists()
    db = await init_db(str(path))
    result = await EvidenceLedger(SqliteLedgerStore(db)).verify_chain()
    await close_db(db)
    assert result.valid
    assert result.entries_checked == 2


@pytest.mark.asyncio
async def test_sqlite_store_leaves_borrowed_connection_open(sqlite_ledger):
    ledger, _ = sqlite_ledger
    await ledger.store.close()

    await ledger.append("arbitration_decision", _payload(0))
    assert len(await ledger.entries()) == 1


def test_sqlite_store_needs_one_connection_source():
    with pytest.raises(ValueError, match="exactly one"):
        SqliteLedgerStore()


# ── Tamper detection ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_empty_ledger_verifies():
    result = await EvidenceLedger(MemoryLedgerStore()).verify_chain()
    assert result.valid
    assert result.entries_checked == 0
    assert result.broken_at is None


@pytest.mark.asyncio
async def test_edited_payload_detected(sqlite_ledger):
    ledger, db = sqlite_ledger
    for n in range(3):
        await ledger.append("arbitration_decision", _payload(n))

    tampered = _payload(1)
    tampered["report"]["decision"] = "block"
    await db.execute(
        "UPDATE ledger_entries SET payload_json = ? WHERE sequence = 1",
        (json.dumps(tampered),),
    )
    await db.commit()

    result = await ledger.verify_chain()
    assert not result.valid
    assert result.broken_at == 1
    assert result.reason == "payload hash mismatch"
    assert result.entries_checked == 2


@pytest.mark.asyncio
async def test_deleted_entry_detected(sqlite_ledger):
    ledger, db = sqlite_ledger
    for n in range(3):
        await ledger.append("arbitration_decision", _payload(n))

    await db.execute("DELETE FROM ledger_entries WHERE sequence = 1")
    await db.commit()

    result = await ledger.verify_chain()
    assert not result.valid
    assert result.broken_at == 2
    assert result.reason == "expected sequence 1, found 2"


@pytest.mark.asyncio
async def test_relinked_entry_detected():
    store = MemoryLedgerStore()
    ledger = EvidenceLedger(store)
    for n in range(3):
        await ledger.append("arbitration_decision", _payload(n))

    store._entries[2] = store._entries[2].model_copy(update={"previous_hash": "f" * 64})

    result = await ledger.verify_chain()
    assert result.broken_at == 2
    assert result.reason == "previous hash does not match prior entry"


@pytest.mark.asyncio
async def test_rewritten_header_detected():
    store = MemoryLedgerStore()
    ledger = EvidenceLedger(store)
    await ledger.append("arbitration_decision", _payload(0))

    store._entries[0] = store._entries[0].model_copy(
        update={"timestamp": "2020-01-01T00:00:00+00:00"},
    )

    result = await ledger.verify_chain()
    assert result.broken_at == 0
    assert result.reason == "entry hash mismatch"


# ── Retry and failure ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_transient_failure_retried():
    store = FlakyStore(failures=2)
    ledger = EvidenceLedger(store, retries=3, backoff_seconds=0.05)

    with patch(_SLEEP, new_callable=AsyncMock) as mock_sleep:
        entry = await ledger.append("arbitration_decision", _payload())

    assert entry.sequence == 0
    assert store.attempts == 3
    assert [c.args[0] for c in mock_sleep.await_args_list] == [0.05, 0.1]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_and_append_nothing():
    store = FlakyStore(failures=10)
    ledger = EvidenceLedger(store, retries=3)

    with (
        patch(_SLEEP, new_callable=AsyncMock),
        pytest.raises(LedgerWriteFailure, match="after 3 attempt\\(s\\): disk full"),
    ):
        await ledger.append("arbitration_decision", _payload())

    assert store.attempts == 3
    assert await ledger.entries() == []


@pytest.mark.asyncio
async def test_failure_then_recovery_keeps_chain_valid():
    store = FlakyStore(failures=1)
    ledger = EvidenceLedger(store, retries=1)

    with pytest.raises(LedgerWriteFailure):
        await ledger.append("arbitration_decision", _payload(0))
    await ledger.append("arbitration_decision", _payload(1))

    entries = await ledger.entries()
    assert [e.sequence for e in entries] == [0]
    assert (await ledger.verify_chain()).valid


# ── Stats ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_stats(sqlite_ledger):
    ledger, _ = sqlite_ledger
    await ledger.append("arbitration_decision", _payload(0))
    await ledger.append("operator_note", {"note": "x"})
    await ledger.append("arbitration_decision", _payload(1))

    stats = await ledger.stats()
    assert stats.total_entries == 3
    assert stats.entries_by_type == {"arbitration_decision": 2, "operator_note": 1}
    assert stats.first_timestamp is not None
    assert stats.first_timestamp <= stats.last_timestamp
    assert stats.integrity.valid


@pytest.mark.asyncio
async def test_stats_empty():
    stats = await EvidenceLedger(MemoryLedgerStore()).stats()
    assert stats.total_entries == 0
    assert stats.first_timestamp is None
    assert stats.integrity.valid
