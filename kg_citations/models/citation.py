# kg_citations/models/citation.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .reference import Author, RawReference, ReferenceSource


class MatchMethod(str, Enum):
    DOI = "doi"
    TITLE = "title"
    NONE = "none"


@dataclass
class CanonicalCitation:
    """
    The deduplicated, per-document record that gets persisted.

    `chive_match_uri` is the local corpus document this reference resolved
    to, if any. A citation with match_method NONE never carries a match uri
    or a confidence.
    """

    citing_uri: str
    raw_text: str
    source: ReferenceSource

    title: Optional[str] = None
    doi: Optional[str] = None
    authors: List[Author] = field(default_factory=list)
    year: Optional[int] = None
    venue: Optional[str] = None
    volume: Optional[str] = None
    pages: Optional[str] = None

    chive_match_uri: Optional[str] = None
    match_confidence: Optional[float] = None
    match_method: MatchMethod = MatchMethod.NONE

    @classmethod
    def from_raw(cls, citing_uri: str, ref: RawReference) -> "CanonicalCitation":
        return cls(
            citing_uri=citing_uri,
            raw_text=ref.raw_text,
            source=ref.source,
            title=ref.title,
            doi=ref.doi,
            authors=list(ref.authors),
            year=ref.year,
            venue=ref.venue,
            volume=ref.volume,
            pages=ref.pages,
        )

    @property
    def is_matched(self) -> bool:
        return self.chive_match_uri is not None

    def with_match(
        self,
        uri: Optional[str],
        method: MatchMethod,
        confidence: Optional[float],
    ) -> "CanonicalCitation":
        if uri is None or method is MatchMethod.NONE:
            return replace(
                self,
                chive_match_uri=None,
                match_confidence=None,
                match_method=MatchMethod.NONE,
            )
        return replace(
            self,
            chive_match_uri=uri,
            match_confidence=confidence,
            match_method=method,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CitationRelationship:
    """
    Directed citation-graph edge: citing_uri -> cited_uri.
    """

    citing_uri: str
    cited_uri: str
    confidence: float
    created_at: datetime = field(default_factory=_utcnow)
    source: Optional[ReferenceSource] = None
    match_method: Optional[MatchMethod] = None

    @classmethod
    def from_citation(cls, citation: CanonicalCitation) -> "CitationRelationship":
        if citation.chive_match_uri is None:
            raise ValueError("only matched citations become graph edges")
        return cls(
            citing_uri=citation.citing_uri,
            cited_uri=citation.chive_match_uri,
            confidence=citation.match_confidence or 0.0,
            source=citation.source,
            match_method=citation.match_method,
        )
