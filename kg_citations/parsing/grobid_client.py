# kg_citations/parsing/grobid_client.py

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests

from kg_citations.config.settings import settings
from kg_citations.models.reference import RawReference, ReferenceSource
from kg_citations.parsing.tei_parser import extract_references_from_tei

logger = logging.getLogger(__name__)

HEALTHCHECK_TIMEOUT = 5
CITATION_STRING_CONCURRENCY = 5


@dataclass
class GrobidClientConfig:
    """
    Configuration for talking to a GROBID server.
    """

    base_url: str
    timeout: int = 60
    enabled: bool = True

    @classmethod
    def from_settings(cls) -> "GrobidClientConfig":
        return cls(
            base_url=settings.GROBID_URL.rstrip("/"),
            timeout=settings.GROBID_TIMEOUT,
            enabled=settings.GROBID_ENABLED,
        )


class GrobidClientError(RuntimeError):
    """
    Error raised when a GROBID request fails.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class GrobidClient:
    """
    Structural reference extractor backed by the GROBID REST API.

    Methods:
        - is_available() -> bool
        - extract_references(pdf_bytes) -> List[RawReference]
        - parse_citation_strings(citations) -> List[RawReference]
    """

    name = ReferenceSource.GROBID

    def __init__(
        self,
        config: Optional[GrobidClientConfig] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if config is None:
            config = GrobidClientConfig.from_settings()

        if base_url is not None:
            config.base_url = base_url.rstrip("/")
        if timeout is not None:
            config.timeout = timeout

        self.config = config
        self.base_url: str = config.base_url
        self.timeout: int = config.timeout
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Healthcheck
    # ------------------------------------------------------------------
    def is_available(self) -> bool:
        """
        Call /api/isalive and return True if the service answers with HTTP 200.

        Always False when the client is disabled in configuration.
        """
        if not self.config.enabled:
            return False

        url = f"{self.base_url}/api/isalive"
        try:
            resp = self.session.get(url, timeout=HEALTHCHECK_TIMEOUT)
        except requests.exceptions.RequestException:
            return False

        return resp.ok

    # ------------------------------------------------------------------
    # PDF -> references
    # ------------------------------------------------------------------
    def extract_references(self, pdf_bytes: bytes) -> List[RawReference]:
        """
        Send a PDF to /api/processReferences and parse the TEI response.

        Citation consolidation is requested so GROBID resolves DOIs where it
        can. Raises GrobidClientError on any transport or HTTP failure.
        """
        if not self.config.enabled:
            logger.debug("GROBID is disabled, skipping reference extraction")
            return []

        url = f"{self.base_url}/api/processReferences"
        files = {"input": ("document.pdf", pdf_bytes, "application/pdf")}
        data: Dict[str, Any] = {
            "consolidateCitations": 1,
            "includeRawCitations": 1,
        }

        tei_xml = self._post(url, files=files, data=data)
        references = extract_references_from_tei(tei_xml, source=ReferenceSource.GROBID)

        logger.info(
            "GROBID reference extraction completed: %d references from %d bytes",
            len(references),
            len(pdf_bytes),
        )
        return references

    def parse_citation_strings(self, citations: Sequence[str]) -> List[RawReference]:
        """
        Parse free-text citation strings via /api/processCitation.

        Requests run a few at a time; a string GROBID cannot parse is logged
        and skipped, the rest are returned in input order.
        """
        if not self.config.enabled or not citations:
            return []

        url = f"{self.base_url}/api/processCitation"

        def parse_one(index_and_text):
            index, text = index_and_text
            try:
                tei_xml = self._post(url, data={"citations": text})
                return extract_references_from_tei(tei_xml, source=ReferenceSource.GROBID)
            except (GrobidClientError, SyntaxError) as exc:
                logger.warning("Failed to parse citation string %d via GROBID: %s", index, exc)
                return []

        references: List[RawReference] = []
        with ThreadPoolExecutor(max_workers=CITATION_STRING_CONCURRENCY) as pool:
            for parsed in pool.map(parse_one, enumerate(citations)):
                references.extend(parsed)

        logger.info(
            "GROBID citation string parsing completed: %d strings -> %d references",
            len(citations),
            len(references),
        )
        return references

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    def _post(self, url: str, **kwargs: Any) -> str:
        try:
            resp = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as exc:
            raise GrobidClientError(
                f"Error connecting to GROBID at {url}: {exc}",
                url=url,
            ) from exc

        if not resp.ok:
            raise GrobidClientError(
                f"GROBID returned HTTP {resp.status_code} for {url}: {(resp.text or '')[:200]}",
                status_code=resp.status_code,
                url=url,
            )

        return resp.text
