# kg_citations/storage/citation_store.py

from __future__ import annotations

import json
import logging
import sqlite3
from typing import List, Optional, Sequence

from kg_citations.models import Author, CanonicalCitation, MatchMethod, ReferenceSource
from kg_citations.storage.database import Database, PersistenceError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "eprint_uri, raw_text, title, authors, doi, year, venue, volume, pages, "
    "source, chive_match_uri, match_confidence, match_method"
)


class CitationStore:
    """
    Flat table of extracted citations, one row per canonical citation.

    The table is a rebuildable index: every extraction run replaces the full
    row set for its document.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def replace_citations(self, citing_uri: str, citations: Sequence[CanonicalCitation]) -> None:
        """
        Delete every row for `citing_uri` and insert `citations`, in one
        transaction. An empty sequence clears the document's rows.
        """
        for c in citations:
            if c.citing_uri != citing_uri:
                raise ValueError(
                    f"citation for {c.citing_uri!r} passed to replace_citations({citing_uri!r})"
                )

        rows = [self._citation_to_row(c) for c in citations]
        try:
            with self.db.transaction() as cur:
                cur.execute("DELETE FROM extracted_citations WHERE eprint_uri = ?", (citing_uri,))
                if rows:
                    cur.executemany(
                        f"INSERT INTO extracted_citations ({_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        rows,
                    )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to replace citations for {citing_uri}: {exc}", store="sqlite"
            ) from exc

        logger.debug("Stored %d extracted citations for %s", len(rows), citing_uri)

    def get_citations(
        self,
        citing_uri: str,
        *,
        limit: Optional[int] = 100,
        offset: int = 0,
        matched_only: bool = False,
    ) -> List[CanonicalCitation]:
        sql = f"SELECT {_COLUMNS} FROM extracted_citations WHERE eprint_uri = ?"
        params: list = [citing_uri]
        if matched_only:
            sql += " AND chive_match_uri IS NOT NULL"
        sql += " ORDER BY id ASC LIMIT ? OFFSET ?"
        params.extend([-1 if limit is None else limit, offset])

        try:
            with self.db.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to read citations for {citing_uri}: {exc}", store="sqlite"
            ) from exc

        return [self._row_to_citation(r) for r in rows]

    def count_citations(self, citing_uri: str) -> int:
        try:
            with self.db.cursor() as cur:
                cur.execute(
                    "SELECT COUNT(*) FROM extracted_citations WHERE eprint_uri = ?",
                    (citing_uri,),
                )
                return int(cur.fetchone()[0])
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to count citations for {citing_uri}: {exc}", store="sqlite"
            ) from exc

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------
    @staticmethod
    def _citation_to_row(c: CanonicalCitation) -> tuple:
        authors = (
            json.dumps([{"lastName": a.last_name, "firstName": a.first_name} for a in c.authors])
            if c.authors
            else None
        )
        return (
            c.citing_uri,
            c.raw_text,
            c.title,
            authors,
            c.doi,
            c.year,
            c.venue,
            c.volume,
            c.pages,
            c.source.value,
            c.chive_match_uri,
            c.match_confidence if c.chive_match_uri else None,
            c.match_method.value if c.chive_match_uri else MatchMethod.NONE.value,
        )

    @staticmethod
    def _row_to_citation(row: sqlite3.Row) -> CanonicalCitation:
        authors: List[Author] = []
        if row["authors"]:
            try:
                authors = [
                    Author(last_name=a["lastName"], first_name=a.get("firstName"))
                    for a in json.loads(row["authors"])
                ]
            except (ValueError, KeyError, TypeError):
                logger.warning("Unreadable authors column for %s; ignoring", row["eprint_uri"])

        return CanonicalCitation(
            citing_uri=row["eprint_uri"],
            raw_text=row["raw_text"],
            source=ReferenceSource(row["source"]),
            title=row["title"],
            doi=row["doi"],
            authors=authors,
            year=row["year"],
            venue=row["venue"],
            volume=row["volume"],
            pages=row["pages"],
            chive_match_uri=row["chive_match_uri"],
            match_confidence=row["match_confidence"],
            match_method=MatchMethod(row["match_method"]),
        )
