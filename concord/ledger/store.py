"""Storage backends for the evidence ledger.

A store only persists and reads back entries. Hashing, chaining and
serialization of writers live in EvidenceLedger; stores never compute
or check hashes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod

import aiosqlite

from concord.ledger.database import close_db, init_db
from concord.schemas.ledger import LedgerEntry

logger = logging.getLogger(__name__)


class LedgerStore(ABC):
    """Append/read contract consumed by EvidenceLedger."""

    @abstractmethod
    async def append(self, entry: LedgerEntry) -> None:
        """Durably commit one entry, or raise."""

    @abstractmethod
    async def read_all(self, entry_type: str | None = None) -> list[LedgerEntry]:
        """Return entries in sequence order, optionally filtered by type."""

    @abstractmethod
    async def last(self) -> LedgerEntry | None:
        """Return the entry with the highest sequence, or None."""

    async def close(self) -> None:
        """Release any resources the store opened itself."""


class MemoryLedgerStore(LedgerStore):
    """In-process store, for tests and throwaway engines."""

    def __init__(self) -> None:
        self._entries: list[LedgerEntry] = []

    async def append(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)

    async def read_all(self, entry_type: str | None = None) -> list[LedgerEntry]:
        if entry_type is None:
            return list(self._entries)
        return [e for e in self._entries if e.type == entry_type]

    async def last(self) -> LedgerEntry | None:
        return self._entries[-1] if self._entries else None


class SqliteLedgerStore(LedgerStore):
    """Store backed by the ``ledger_entries`` table.

    Either operates on an aiosqlite connection initialized by
    database.init_db(), or, given ``db_path``, opens its own connection on
    first use and closes it in close(). Each append is its own committed
    transaction.
    """

    def __init__(
        self,
        db: aiosqlite.Connection | None = None,
        *,
        db_path: str | None = None,
    ) -> None:
        if (db is None) == (db_path is None):
            raise ValueError("SqliteLedgerStore needs exactly one of db or db_path")
        self._db = db
        self._db_path = db_path
        self._open_lock = asyncio.Lock()

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            async with self._open_lock:
                if self._db is None:
                    self._db = await init_db(self._db_path)
        return self._db

    async def close(self) -> None:
        """Close the connection if this store opened it."""
        if self._db_path is not None and self._db is not None:
            await close_db(self._db)
            self._db = None

    async def append(self, entry: LedgerEntry) -> None:
        db = await self._connection()
        try:
            await db.execute(
                """
                INSERT INTO ledger_entries
                    (sequence, type, payload_json, payload_hash, timestamp,
                     previous_hash, entry_hash)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.sequence,
                    entry.type,
                    json.dumps(entry.payload, sort_keys=True),
                    entry.payload_hash,
                    entry.timestamp,
                    entry.previous_hash,
                    entry.entry_hash,
                ),
            )
            await db.commit()
        except aiosqlite.Error:
            await db.rollback()
            raise
        logger.debug("Committed ledger entry %d (%s)", entry.sequence, entry.type)

    async def read_all(self, entry_type: str | None = None) -> list[LedgerEntry]:
        sql = "SELECT * FROM ledger_entries"
        params: tuple[object, ...] = ()
        if entry_type is not None:
            sql += " WHERE type = ?"
            params = (entry_type,)
        sql += " ORDER BY sequence ASC"

        db = await self._connection()
        db.row_factory = aiosqlite.Row
        async with db.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def last(self) -> LedgerEntry | None:
        db = await self._connection()
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM ledger_entries ORDER BY sequence DESC LIMIT 1"
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_entry(row) if row else None

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> LedgerEntry:
        return LedgerEntry(
            sequence=row["sequence"],
            type=row["type"],
            payload=json.loads(row["payload_json"]),
            payload_hash=row["payload_hash"],
            timestamp=row["timestamp"],
            previous_hash=row["previous_hash"],
            entry_hash=row["entry_hash"],
        )
