# kg_citations/storage/database.py

"""
Thin SQLite layer shared by the corpus index and the citation store.

One connection per Database object, guarded by a re-entrant lock so the
orchestrator's worker threads and concurrent runs for different documents
can share it. `transaction()` gives an all-or-nothing block: readers on the
same connection never see a half-applied replace.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents_index (
    uri              TEXT PRIMARY KEY,
    title            TEXT,
    normalized_title TEXT,
    doi              TEXT,
    owner_id         TEXT,
    content_id       TEXT,
    created_at       TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_documents_doi ON documents_index (doi);
CREATE INDEX IF NOT EXISTS idx_documents_title ON documents_index (normalized_title);

CREATE TABLE IF NOT EXISTS extracted_citations (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    eprint_uri       TEXT NOT NULL,
    raw_text         TEXT NOT NULL,
    title            TEXT,
    authors          TEXT,
    doi              TEXT,
    year             INTEGER,
    venue            TEXT,
    volume           TEXT,
    pages            TEXT,
    source           TEXT NOT NULL,
    chive_match_uri  TEXT,
    match_confidence REAL,
    match_method     TEXT NOT NULL DEFAULT 'none',
    created_at       TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_citations_eprint ON extracted_citations (eprint_uri);
"""


class PersistenceError(RuntimeError):
    """
    A local store (relational or graph) failed to read or write.

    This is the only error class that fails an extraction run.
    """

    def __init__(self, message: str, *, store: str) -> None:
        super().__init__(message)
        self.store = store


class Database:
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(
                self.path,
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open database {self.path}: {exc}", store="sqlite") from exc

    @contextmanager
    def cursor(self) -> Iterator[sqlite3.Cursor]:
        """Autocommit cursor for single statements."""
        with self._lock:
            cur = self._conn.cursor()
            try:
                yield cur
            finally:
                cur.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """
        BEGIN IMMEDIATE ... COMMIT, rolling back on any exception.

        A failed COMMIT (e.g. SQLITE_BUSY while another process reads) is
        rolled back too, so the connection never stays inside a transaction.
        """
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute("BEGIN IMMEDIATE")
                try:
                    yield cur
                    cur.execute("COMMIT")
                except BaseException:
                    self._rollback(cur)
                    raise
            finally:
                cur.close()

    def _rollback(self, cur: sqlite3.Cursor) -> None:
        if not self._conn.in_transaction:
            return
        try:
            cur.execute("ROLLBACK")
        except sqlite3.Error as exc:
            logger.error("ROLLBACK failed on %s: %s", self.path, exc)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
