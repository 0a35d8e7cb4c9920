"""Ordered key-value store backing the auction index.

Keys and values are raw bytes kept in a single SQLite ``WITHOUT ROWID`` table.
SQLite compares BLOB keys bytewise, which gives the same lexicographic order a
LevelDB-style store would and makes bounded prefix scans cheap.

Writes go through :class:`Batch`, committed inside one transaction: either
every buffered put/delete lands or none does. A failed commit is logged and
reported as ``False``; it never raises into the caller.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any, Callable, List, Optional, Tuple

import bittensor as bt

DB_FILENAME = "auction.db"


class StoreError(Exception):
    """I/O or corruption failure of the index store."""


class Batch:
    """Buffered writes applied atomically by :meth:`commit`."""

    def __init__(self, store: "IndexStore"):
        self._store = store
        self._ops: List[Tuple[str, bytes, bytes]] = []
        self._written = False

    def put(self, key: bytes, value: bytes = b"") -> "Batch":
        self._ops.append(("put", bytes(key), bytes(value)))
        return self

    def delete(self, key: bytes) -> "Batch":
        self._ops.append(("del", bytes(key), b""))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> bool:
        if self._written:
            raise RuntimeError("batch already committed")
        self._written = True
        return self._store._write(self._ops)


class IndexStore:
    def __init__(self, location: Optional[str] = None, *, memory: bool = False):
        if not memory and not location:
            raise ValueError("location is required unless memory=True")
        self.location = location
        self.memory = memory
        self._lock = RLock()
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> str:
        if self.memory:
            return ":memory:"
        return str(Path(self.location) / DB_FILENAME)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def lock(self) -> RLock:
        """Re-entrant lock serializing every read and commit."""
        return self._lock

    def ensure(self) -> None:
        """Ensure the location directory exists."""
        if self.memory:
            return
        Path(self.location).mkdir(parents=True, exist_ok=True)

    def open(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            try:
                self.ensure()
                conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv (key BLOB PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"
                )
                if not self.memory:
                    conn.execute("PRAGMA journal_mode=WAL")
                    conn.execute("PRAGMA synchronous=FULL")
            except (OSError, sqlite3.Error) as e:
                raise StoreError(f"cannot open index store at {self.path}: {e}") from e
            self._conn = conn
            bt.logging.debug(f"Index store opened at {self.path}")

    def close(self) -> None:
        # Taking the lock waits for any commit in flight.
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            bt.logging.debug(f"Index store closed at {self.path}")

    def __enter__(self) -> "IndexStore":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _require(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("index store is not open")
        return self._conn

    def batch(self) -> Batch:
        self._require()
        return Batch(self)

    def _write(self, ops: List[Tuple[str, bytes, bytes]]) -> bool:
        with self._lock:
            conn = self._require()
            try:
                conn.execute("BEGIN IMMEDIATE")
                for op, key, value in ops:
                    if op == "put":
                        conn.execute("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))
                    else:
                        conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                bt.logging.error(f"Error writing batch of {len(ops)} ops to index store: {e}")
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error:
                    # Nothing to roll back if BEGIN itself failed.
                    pass
                return False
        return True

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            conn = self._require()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (bytes(key),)).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"read failed: {e}") from e
        if row is None:
            return None
        return bytes(row[0])

    def has(self, key: bytes) -> bool:
        return self.get(key) is not None

    def _scan(self, gte: Optional[bytes], lte: Optional[bytes]) -> List[Tuple[bytes, bytes]]:
        clauses = []
        params: List[bytes] = []
        if gte is not None:
            clauses.append("key >= ?")
            params.append(bytes(gte))
        if lte is not None:
            clauses.append("key <= ?")
            params.append(bytes(lte))
        sql = "SELECT key, value FROM kv"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY key"
        with self._lock:
            conn = self._require()
            try:
                rows = conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"range scan failed: {e}") from e
        return [(bytes(k), bytes(v)) for k, v in rows]

    def keys(
        self,
        gte: Optional[bytes] = None,
        lte: Optional[bytes] = None,
        parse: Optional[Callable[[bytes], Any]] = None,
    ) -> List[Any]:
        """Keys in ``[gte, lte]`` in ascending order, optionally decoded by ``parse``."""
        out = [k for k, _ in self._scan(gte, lte)]
        if parse is None:
            return out
        return [parse(k) for k in out]

    def range(
        self,
        gte: Optional[bytes] = None,
        lte: Optional[bytes] = None,
        parse: Optional[Callable[[bytes, bytes], Any]] = None,
    ) -> List[Any]:
        """Key/value pairs in ``[gte, lte]``, optionally decoded by ``parse(key, value)``."""
        rows = self._scan(gte, lte)
        if parse is None:
            return rows
        return [parse(k, v) for k, v in rows]
