# kg_citations/storage/corpus_index.py

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Iterator, List, Optional

from kg_citations.citations.normalize import normalize_doi, normalize_title
from kg_citations.storage.database import Database, PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class IndexedDocument:
    """A document already present in the local corpus."""

    uri: str
    title: Optional[str] = None
    doi: Optional[str] = None
    owner_id: Optional[str] = None
    content_id: Optional[str] = None


class CorpusIndex:
    """
    Read path used by the matcher, plus the registration call the indexer
    uses to add documents.

    DOIs are stored normalized (lowercase, no resolver prefix) and titles
    are stored alongside their normalized form, so both lookups are exact
    equality on an indexed column.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def add_document(self, doc: IndexedDocument) -> None:
        try:
            with self.db.transaction() as cur:
                cur.execute(
                    """
                    INSERT INTO documents_index (uri, title, normalized_title, doi, owner_id, content_id)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(uri) DO UPDATE SET
                        title = excluded.title,
                        normalized_title = excluded.normalized_title,
                        doi = excluded.doi,
                        owner_id = excluded.owner_id,
                        content_id = excluded.content_id
                    """,
                    (
                        doc.uri,
                        doc.title,
                        normalize_title(doc.title),
                        normalize_doi(doc.doi),
                        doc.owner_id,
                        doc.content_id,
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to index document {doc.uri}: {exc}", store="sqlite") from exc

    def get_document(self, uri: str) -> Optional[IndexedDocument]:
        rows = self._query("SELECT * FROM documents_index WHERE uri = ?", (uri,))
        return self._row_to_document(rows[0]) if rows else None

    def iter_documents(self) -> Iterator[IndexedDocument]:
        rows = self._query("SELECT * FROM documents_index ORDER BY created_at DESC, uri", ())
        for row in rows:
            yield self._row_to_document(row)

    # ------------------------------------------------------------------
    # Matcher lookups
    # ------------------------------------------------------------------
    def find_by_doi(self, doi: str) -> Optional[str]:
        """
        Exact, case-insensitive DOI lookup. Returns the document uri, or None
        when nothing (or more than one document) carries that DOI.
        """
        normalized = normalize_doi(doi)
        if not normalized:
            return None
        return self._unique_uri(
            "SELECT DISTINCT uri FROM documents_index WHERE doi = ? LIMIT 2",
            normalized,
            "doi",
        )

    def find_by_title(self, title: str) -> Optional[str]:
        """
        Exact lookup on the normalized title. Same ambiguity rule as DOIs.
        """
        normalized = normalize_title(title)
        if not normalized:
            return None
        return self._unique_uri(
            "SELECT DISTINCT uri FROM documents_index WHERE normalized_title = ? LIMIT 2",
            normalized,
            "title",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _unique_uri(self, sql: str, value: str, kind: str) -> Optional[str]:
        rows = self._query(sql, (value,))
        if len(rows) > 1:
            logger.debug("Ambiguous %s lookup for %r: %d candidates", kind, value, len(rows))
            return None
        return rows[0]["uri"] if rows else None

    def _query(self, sql: str, params: tuple) -> List[sqlite3.Row]:
        try:
            with self.db.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Corpus index query failed: {exc}", store="sqlite") from exc

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> IndexedDocument:
        return IndexedDocument(
            uri=row["uri"],
            title=row["title"],
            doi=row["doi"],
            owner_id=row["owner_id"],
            content_id=row["content_id"],
        )
