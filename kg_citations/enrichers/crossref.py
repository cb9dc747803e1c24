# kg_citations/enrichers/crossref.py

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from kg_citations.citations.normalize import normalize_doi
from kg_citations.config.settings import Settings, settings
from kg_citations.enrichers.base import EnricherError, RateLimiter
from kg_citations.models import CanonicalCitation, ReferenceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrossrefWork:
    doi: str
    title: Optional[str] = None
    year: Optional[int] = None
    venue: Optional[str] = None


def _first(values: Any) -> Optional[str]:
    if isinstance(values, list) and values and isinstance(values[0], str):
        return values[0].strip() or None
    return None


def _year(message: Dict[str, Any]) -> Optional[int]:
    # e.g. {"date-parts": [[2021, 5, 20]]}; "published" first, then "issued"
    for key in ("published", "issued"):
        parts = (message.get(key) or {}).get("date-parts")
        if isinstance(parts, list) and parts and isinstance(parts[0], list) and parts[0]:
            try:
                return int(parts[0][0])
            except (TypeError, ValueError):
                continue
    return None


class CrossrefClient:
    """
    DOI metadata from the Crossref REST API (GET /works/{doi}).

    Used after deduplication to fill the title, year and venue of cited
    works that only came with a DOI. Values already present are never
    overwritten, so which source a citation came from does not change.
    """

    name = ReferenceSource.CROSSREF

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        mailto: Optional[str] = None,
        timeout: Optional[int] = None,
        min_interval: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or settings.CROSSREF_URL).rstrip("/")
        self.mailto = mailto if mailto is not None else settings.CROSSREF_MAILTO
        self.timeout = timeout if timeout is not None else settings.ENRICHER_TIMEOUT
        self._limiter = RateLimiter(
            min_interval if min_interval is not None else settings.CROSSREF_MIN_INTERVAL
        )
        self.session = session or requests.Session()
        # Crossref asks for a descriptive User-Agent that includes a contact address
        agent = "kg-citations/0.1"
        if self.mailto:
            agent += f" (mailto:{self.mailto})"
        self.session.headers.update({"User-Agent": agent, "Accept": "application/json"})

    @classmethod
    def from_settings(cls, config: Settings) -> "CrossrefClient":
        return cls(
            base_url=config.CROSSREF_URL,
            mailto=config.CROSSREF_MAILTO or "",
            timeout=config.ENRICHER_TIMEOUT,
            min_interval=config.CROSSREF_MIN_INTERVAL,
        )

    def get_work(self, doi: str) -> Optional[CrossrefWork]:
        """Metadata for `doi`, or None if Crossref does not know it."""
        normalized = normalize_doi(doi)
        if not normalized:
            return None

        url = f"{self.base_url}/works/{quote(normalized, safe='/')}"
        params = {"mailto": self.mailto} if self.mailto else None

        self._limiter.wait()
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise EnricherError(f"Error contacting Crossref at {url}: {exc}", source=self.name) from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise EnricherError(
                f"Crossref returned HTTP {resp.status_code} for {url}",
                source=self.name,
                status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise EnricherError(f"Malformed JSON from Crossref at {url}", source=self.name) from exc

        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, dict):
            raise EnricherError(f"Unexpected payload from Crossref at {url}", source=self.name)

        return CrossrefWork(
            doi=normalized,
            title=_first(message.get("title")),
            year=_year(message),
            venue=_first(message.get("container-title")),
        )

    def backfill(
        self, citations: Sequence[CanonicalCitation]
    ) -> Tuple[List[CanonicalCitation], int]:
        """
        Return `citations` with missing title/year/venue filled from Crossref,
        and how many citations gained at least one field.

        Only citations with a DOI and a gap are looked up. An unknown DOI is
        skipped; any other error aborts the whole pass.
        """
        filled: List[CanonicalCitation] = []
        enriched = 0
        for citation in citations:
            if not citation.doi or (citation.title and citation.year and citation.venue):
                filled.append(citation)
                continue

            work = self.get_work(citation.doi)
            if work is None:
                logger.debug("Crossref has no work for DOI %s", citation.doi)
                filled.append(citation)
                continue

            updated = replace(
                citation,
                title=citation.title or work.title,
                year=citation.year or work.year,
                venue=citation.venue or work.venue,
            )
            if updated != citation:
                enriched += 1
            filled.append(updated)

        return filled, enriched
