# kg_citations/citations/matcher.py

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from kg_citations.citations.normalize import normalize_doi, normalize_title
from kg_citations.models import CanonicalCitation, MatchMethod

if TYPE_CHECKING:  # pragma: no cover
    from kg_citations.storage.corpus_index import CorpusIndex

logger = logging.getLogger(__name__)

DOI_MATCH_CONFIDENCE = 1.0


class CorpusMatcher:
    """
    Resolve canonical citations to documents already in the local corpus.

    Matching is two-phase and exact only:

    1. DOI: case-insensitive equality on the normalized DOI (confidence 1.0).
    2. Title: equality on the normalized title (fixed, lower confidence),
       tried when there is no DOI or the DOI found nothing.

    A hit on the citing document itself, or an ambiguous hit, leaves the
    citation unmatched. Corpus read failures (PersistenceError) propagate.
    """

    def __init__(
        self,
        corpus: "CorpusIndex",
        *,
        title_confidence: float = 0.8,
        min_title_length: int = 10,
    ) -> None:
        if not 0.0 < title_confidence < 1.0:
            raise ValueError("title_confidence must lie strictly between 0 and 1")
        self.corpus = corpus
        self.title_confidence = title_confidence
        self.min_title_length = min_title_length

    def match(self, citations: Sequence[CanonicalCitation]) -> List[CanonicalCitation]:
        return [self.match_one(c) for c in citations]

    def match_one(self, citation: CanonicalCitation) -> CanonicalCitation:
        uri, method, confidence = self._resolve(citation)

        if uri is not None and uri == citation.citing_uri:
            logger.debug("Ignoring self-citation match for %s", citation.citing_uri)
            uri, method, confidence = None, MatchMethod.NONE, None

        return citation.with_match(uri, method, confidence)

    def _resolve(
        self, citation: CanonicalCitation
    ) -> Tuple[Optional[str], MatchMethod, Optional[float]]:
        doi = normalize_doi(citation.doi)
        if doi:
            uri = self.corpus.find_by_doi(doi)
            if uri is not None:
                return uri, MatchMethod.DOI, DOI_MATCH_CONFIDENCE

        title = normalize_title(citation.title)
        if title and len(title) >= self.min_title_length:
            uri = self.corpus.find_by_title(title)
            if uri is not None:
                return uri, MatchMethod.TITLE, self.title_confidence

        return None, MatchMethod.NONE, None
