"""SQLite database layer for the evidence ledger.

Manages the aiosqlite connection and the append-only ``ledger_entries``
table. WAL mode lets readers (``ledger verify``, the HTTP app) run while
the single writer appends.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

# sequence is the chain position; UNIQUE rejects a second writer's fork
_SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger_entries (
    sequence      INTEGER PRIMARY KEY,
    type          TEXT NOT NULL,
    payload_json  TEXT NOT NULL,
    payload_hash  TEXT NOT NULL,
    timestamp     TEXT NOT NULL,
    previous_hash TEXT NOT NULL,
    entry_hash    TEXT NOT NULL UNIQUE
);

CREATE INDEX IF NOT EXISTS idx_ledger_type ON ledger_entries(type);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Open the ledger database and create the schema if needed.

    Args:
        db_path: Path to the SQLite database file. Supports ~ expansion;
            ``:memory:`` opens a throwaway database.

    Returns:
        An open aiosqlite connection ready for use.
    """
    if db_path == ":memory:":
        db = await aiosqlite.connect(db_path)
    else:
        resolved = Path(db_path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(resolved))
        await db.execute("PRAGMA journal_mode=WAL")

    await db.executescript(_SCHEMA)
    await db.commit()

    logger.info("Ledger database initialized at %s", db_path)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()
