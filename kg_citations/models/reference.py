# kg_citations/models/reference.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ReferenceSource(str, Enum):
    """
    Where a raw reference came from.

    GROBID is the structural extractor; Semantic Scholar and OpenAlex are
    scholarly-graph enrichers consulted by DOI. CROSSREF never contributes
    references of its own, it only back-fills metadata of cited DOIs.
    """

    GROBID = "grobid"
    SEMANTIC_SCHOLAR = "semantic-scholar"
    OPENALEX = "openalex"
    CROSSREF = "crossref"


@dataclass(frozen=True)
class Author:
    last_name: str
    first_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        # "Surname, Forename", the same shape the TEI parser has always used
        if self.first_name:
            return f"{self.last_name}, {self.first_name}"
        return self.last_name


@dataclass
class RawReference:
    """
    One bibliography entry as reported by a single source.

    These are transient: they live for one extraction run and are turned
    into CanonicalCitation rows by the deduplicator.
    """

    # Full citation text as it appeared in the source
    raw_text: str
    source: ReferenceSource

    # Optional structured fields
    title: Optional[str] = None
    authors: List[Author] = field(default_factory=list)
    doi: Optional[str] = None
    year: Optional[int] = None
    venue: Optional[str] = None
    volume: Optional[str] = None
    pages: Optional[str] = None
