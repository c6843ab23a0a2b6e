"""
SQLite Block Store

Append-only SQLite storage for discovered block records.

Schema:
    blocks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        workchain INTEGER,
        shard TEXT,          -- unsigned mask as decimal text
        block INTEGER,       -- seqno
        hash TEXT,           -- base64 content hash
        all_number TEXT,     -- every digit of the hash text
        number2 INTEGER,     -- derived value in [0, 100)
        created_at REAL
    )
"""

import logging
import sqlite3
import time
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional

from ..errors import PersistenceFailed
from ..types import PersistedRecord


class SqliteBlockSink:
    """
    SQLite-backed block sink.

    Every append commits immediately. Driver errors are re-raised as
    PersistenceFailed (fail closed).
    """

    def __init__(self, db_path: str = "blocks.db"):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db_path = db_path
        self._logger = logging.getLogger("SqliteBlockSink")
        self._lock = RLock()
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS blocks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workchain INTEGER NOT NULL,
                shard TEXT NOT NULL,
                block INTEGER NOT NULL,
                hash TEXT NOT NULL,
                all_number TEXT NOT NULL,
                number2 INTEGER NOT NULL,
                created_at REAL NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_blocks_shard_seqno
            ON blocks(workchain, shard, block)
        """)
        self.conn.commit()
        self._logger.info(f"Initialized block store: {self.db_path}")

    def append(self, record: PersistedRecord) -> None:
        with self._lock:
            try:
                self.conn.execute(
                    """
                    INSERT INTO blocks
                    (workchain, shard, block, hash, all_number, number2, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.workchain,
                        str(record.shard),
                        record.seqno,
                        record.hash,
                        record.digits,
                        record.value,
                        time.time(),
                    )
                )
                self.conn.commit()
            except sqlite3.Error as e:
                raise PersistenceFailed(f"Failed to write block {record.seqno}: {e}") from e

    def fetch_all(self, workchain: Optional[int] = None) -> List[PersistedRecord]:
        """Read back stored records in insertion order."""
        sql = "SELECT * FROM blocks"
        params = ()
        if workchain is not None:
            sql += " WHERE workchain = ?"
            params = (workchain,)
        sql += " ORDER BY id ASC"

        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()

        return [
            PersistedRecord(
                workchain=row["workchain"],
                shard=int(row["shard"]),
                seqno=row["block"],
                hash=row["hash"],
                digits=row["all_number"],
                value=row["number2"],
            )
            for row in rows
        ]

    def count(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM blocks").fetchone()[0]

    def get_stats(self) -> Dict:
        return {
            "db_path": self.db_path,
            "records": self.count(),
        }

    def close(self) -> None:
        with self._lock:
            self.conn.close()
