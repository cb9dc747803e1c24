# kg_citations/enrichers/openalex.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from kg_citations.citations.normalize import normalize_doi
from kg_citations.config.settings import Settings, settings
from kg_citations.enrichers.base import EnricherError, RateLimiter
from kg_citations.models import Author, RawReference, ReferenceSource

logger = logging.getLogger(__name__)

OPENALEX_ID_PREFIX = "https://openalex.org/"
# OpenAlex caps OR-filters at 50 values per request
BATCH_SIZE = 50
WORK_FIELDS = "id,doi,title,display_name,publication_year,authorships,primary_location"


def _short_id(openalex_id: str) -> str:
    if openalex_id.startswith(OPENALEX_ID_PREFIX):
        return openalex_id[len(OPENALEX_ID_PREFIX):]
    return openalex_id


class OpenAlexEnricher:
    """
    Reference lists from OpenAlex.

    A work is resolved by DOI; its `referenced_works` ids are then fetched in
    batches through the `openalex_id` filter until every id has been read.
    """

    name = ReferenceSource.OPENALEX

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        mailto: Optional[str] = None,
        timeout: Optional[int] = None,
        min_interval: Optional[float] = None,
        max_references: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or settings.OPENALEX_URL).rstrip("/")
        self.mailto = mailto if mailto is not None else settings.OPENALEX_MAILTO
        self.timeout = timeout if timeout is not None else settings.ENRICHER_TIMEOUT
        self.max_references = (
            max_references if max_references is not None else settings.ENRICHER_MAX_REFERENCES
        )
        self._limiter = RateLimiter(
            min_interval if min_interval is not None else settings.OPENALEX_MIN_INTERVAL
        )
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, config: Settings) -> "OpenAlexEnricher":
        return cls(
            base_url=config.OPENALEX_URL,
            mailto=config.OPENALEX_MAILTO or "",
            timeout=config.ENRICHER_TIMEOUT,
            min_interval=config.OPENALEX_MIN_INTERVAL,
            max_references=config.ENRICHER_MAX_REFERENCES,
        )

    def get_paper_by_doi(self, doi: str) -> Optional[str]:
        normalized = normalize_doi(doi)
        if not normalized:
            return None
        data = self._get(f"/works/https://doi.org/{normalized}", {"select": "id"})
        if data is None or not data.get("id"):
            return None
        return _short_id(data["id"])

    def get_references(self, external_id: str) -> List[RawReference]:
        work = self._get(f"/works/{_short_id(external_id)}", {"select": "id,referenced_works"})
        if work is None:
            return []

        ref_ids = [_short_id(w) for w in work.get("referenced_works") or []]
        ref_ids = ref_ids[: self.max_references]

        by_id: Dict[str, RawReference] = {}
        for start in range(0, len(ref_ids), BATCH_SIZE):
            chunk = ref_ids[start : start + BATCH_SIZE]
            data = self._get(
                "/works",
                {
                    "filter": "openalex_id:" + "|".join(chunk),
                    "per-page": BATCH_SIZE,
                    "select": WORK_FIELDS,
                },
            )
            for item in (data or {}).get("results") or []:
                ref = self._parse_work(item)
                if ref is not None:
                    by_id[_short_id(item.get("id") or "")] = ref

        logger.debug(
            "OpenAlex work %s: %d referenced works, %d usable", external_id, len(ref_ids), len(by_id)
        )
        # keep the order of referenced_works, not the order results came back in
        return [by_id[w] for w in ref_ids if w in by_id]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        if self.mailto:
            params = {**params, "mailto": self.mailto}

        self._limiter.wait()
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise EnricherError(f"Error contacting OpenAlex at {url}: {exc}", source=self.name) from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise EnricherError(
                f"OpenAlex returned HTTP {resp.status_code} for {url}",
                source=self.name,
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise EnricherError(f"Malformed JSON from OpenAlex at {url}", source=self.name) from exc
        if not isinstance(data, dict):
            raise EnricherError(f"Unexpected payload from OpenAlex at {url}", source=self.name)
        return data

    def _parse_work(self, work: Dict[str, Any]) -> Optional[RawReference]:
        title = (work.get("title") or work.get("display_name") or "").strip()
        if not title:
            return None

        authors: List[Author] = []
        for authorship in work.get("authorships") or []:
            name = ((authorship.get("author") or {}).get("display_name") or "").strip()
            if not name:
                continue
            parts = name.rsplit(" ", 1)
            if len(parts) == 2:
                authors.append(Author(last_name=parts[1], first_name=parts[0]))
            else:
                authors.append(Author(last_name=parts[0]))

        source = ((work.get("primary_location") or {}).get("source") or {})
        year = work.get("publication_year")

        return RawReference(
            raw_text=title,
            source=self.name,
            title=title,
            authors=authors,
            doi=normalize_doi(work.get("doi")),
            year=int(year) if year else None,
            venue=source.get("display_name") or None,
        )
