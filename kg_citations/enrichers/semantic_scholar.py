# kg_citations/enrichers/semantic_scholar.py

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import requests

from kg_citations.citations.normalize import normalize_doi
from kg_citations.config.settings import Settings, settings
from kg_citations.enrichers.base import EnricherError, RateLimiter
from kg_citations.models import Author, RawReference, ReferenceSource

logger = logging.getLogger(__name__)

REFERENCE_FIELDS = "title,externalIds,year,venue,authors"
PAGE_SIZE = 100

_DOI_SHAPE = re.compile(r"^10\.\d{4,}/\S+$")


class SemanticScholarEnricher:
    """
    Reference lists from the Semantic Scholar Graph API.

        GET /paper/DOI:{doi}?fields=paperId
        GET /paper/{paperId}/references?fields=...&limit=&offset=

    Reference pages are followed through the `next` offset until the API
    stops returning one or `max_references` entries have been collected.
    """

    name = ReferenceSource.SEMANTIC_SCHOLAR

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        min_interval: Optional[float] = None,
        max_references: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or settings.SEMANTIC_SCHOLAR_URL).rstrip("/")
        if api_key is None and settings.SEMANTIC_SCHOLAR_API_KEY is not None:
            api_key = settings.SEMANTIC_SCHOLAR_API_KEY.get_secret_value()
        self.timeout = timeout if timeout is not None else settings.ENRICHER_TIMEOUT
        self.max_references = (
            max_references if max_references is not None else settings.ENRICHER_MAX_REFERENCES
        )
        self._limiter = RateLimiter(
            min_interval if min_interval is not None else settings.SEMANTIC_SCHOLAR_MIN_INTERVAL
        )

        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if api_key:
            self.session.headers.update({"x-api-key": api_key})

    @classmethod
    def from_settings(cls, config: Settings) -> "SemanticScholarEnricher":
        key = config.SEMANTIC_SCHOLAR_API_KEY
        return cls(
            base_url=config.SEMANTIC_SCHOLAR_URL,
            api_key=key.get_secret_value() if key is not None else "",
            timeout=config.ENRICHER_TIMEOUT,
            min_interval=config.SEMANTIC_SCHOLAR_MIN_INTERVAL,
            max_references=config.ENRICHER_MAX_REFERENCES,
        )

    def get_paper_by_doi(self, doi: str) -> Optional[str]:
        normalized = normalize_doi(doi)
        if not normalized or not _DOI_SHAPE.match(normalized):
            logger.debug("Not a DOI, skipping Semantic Scholar lookup: %r", doi)
            return None

        data = self._get(f"/paper/DOI:{normalized}", {"fields": "paperId"})
        if data is None:
            return None
        return data.get("paperId") or None

    def get_references(self, external_id: str) -> List[RawReference]:
        references: List[RawReference] = []
        offset: Optional[int] = 0

        while offset is not None and len(references) < self.max_references:
            data = self._get(
                f"/paper/{external_id}/references",
                {"fields": REFERENCE_FIELDS, "limit": PAGE_SIZE, "offset": offset},
            )
            if data is None:
                break

            for item in data.get("data") or []:
                ref = self._parse_cited_paper(item.get("citedPaper") or {})
                if ref is not None:
                    references.append(ref)

            next_offset = data.get("next")
            offset = int(next_offset) if next_offset is not None else None

        return references[: self.max_references]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """GET a JSON object; None on 404, EnricherError on anything else unexpected."""
        url = f"{self.base_url}{path}"
        self._limiter.wait()
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise EnricherError(
                f"Error contacting Semantic Scholar at {url}: {exc}", source=self.name
            ) from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise EnricherError(
                f"Semantic Scholar returned HTTP {resp.status_code} for {url}",
                source=self.name,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise EnricherError(
                f"Malformed JSON from Semantic Scholar at {url}", source=self.name
            ) from exc
        if not isinstance(data, dict):
            raise EnricherError(
                f"Unexpected payload from Semantic Scholar at {url}", source=self.name
            )
        return data

    def _parse_cited_paper(self, paper: Dict[str, Any]) -> Optional[RawReference]:
        title = (paper.get("title") or "").strip()
        if not title:
            return None

        external_ids = paper.get("externalIds") or {}
        authors = [
            _author_from_name(a.get("name"))
            for a in paper.get("authors") or []
            if a.get("name")
        ]
        year = paper.get("year")

        return RawReference(
            raw_text=title,
            source=self.name,
            title=title,
            authors=authors,
            doi=external_ids.get("DOI"),
            year=int(year) if year else None,
            venue=paper.get("venue") or None,
        )


def _author_from_name(name: str) -> Author:
    """Split 'Ada M. Lovelace' into last name 'Lovelace', first 'Ada M.'."""
    parts = name.strip().rsplit(" ", 1)
    if len(parts) == 2:
        return Author(last_name=parts[1], first_name=parts[0])
    return Author(last_name=parts[0])
