"""
MODULE: STATE_PERSISTENCE_LAYER
STATUS: PRODUCTION_READY (SQLITE WAL MODE)

DESCRIPTION:
    Durable key/value store for the BSI emulator state (settings frame,
    language, units, 24h flag, clock anchor).

    Writes happen synchronously right after each head-unit write, so the
    store runs SQLite in 'Write-Ahead Logging' mode with synchronous=NORMAL
    to keep the commit short and spare the SD card.

    SCHEMA:
        bsi_state(key TEXT PRIMARY KEY, value BLOB, updated REAL)
"""

import sqlite3
import time
import os
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("BSI.DB")


class KeyValueDatabase:
    """
    The emulator's non-volatile memory.
    """

    def __init__(self, db_path: str):
        # Ensure directory exists
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.db_path = db_path
        self.conn: Optional[sqlite3.Connection] = None

    def open(self):
        """
        Opens the connection and creates the schema on first use.
        """
        # check_same_thread=False lets a control-surface thread read state
        # while the service loop writes (safe in WAL mode)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)

        self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute("PRAGMA synchronous=NORMAL;")
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS bsi_state (
                key TEXT PRIMARY KEY,
                value BLOB,
                updated REAL
            );
        """)
        self.conn.commit()
        logger.info(f"[DB] State store opened at {self.db_path}. Mode: WAL")

    def get(self, key: str, default: Any = None) -> Any:
        if not self.conn:
            return default
        try:
            row = self.conn.execute("SELECT value FROM bsi_state WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Read Failure ({key}): {e}")
            return default
        return default if row is None else row[0]

    def put_many(self, values: Dict[str, Any]) -> bool:
        """
        Writes a batch of keys in one transaction. Returns False on failure;
        the caller keeps its in-memory state either way.
        """
        if not self.conn:
            return False

        now = time.time()
        rows = []
        for key, value in values.items():
            if isinstance(value, bool):
                value = int(value)
            elif isinstance(value, (bytes, bytearray)):
                value = sqlite3.Binary(bytes(value))
            rows.append((key, value, now))

        try:
            self.conn.executemany("""
                INSERT INTO bsi_state (key, value, updated) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated = excluded.updated
            """, rows)
            self.conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Write Failure: {e}")
            self.conn.rollback()
            return False

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("[DB] State store closed.")


class MemoryStore:
    """Volatile stand-in with the same interface (tests, dry runs)."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.values: Dict[str, Any] = dict(initial or {})
        self.writes = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def put_many(self, values: Dict[str, Any]) -> bool:
        self.values.update(values)
        self.writes += 1
        return True
