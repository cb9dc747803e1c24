# kg_citations/enrichers/base.py

from __future__ import annotations

import threading
import time
from typing import List, Optional, Protocol, Sequence, Tuple

from kg_citations.models import CanonicalCitation, RawReference, ReferenceSource


class EnricherError(RuntimeError):
    """
    An enricher request failed (transport error, unexpected status, or a
    response we could not read).
    """

    def __init__(
        self,
        message: str,
        *,
        source: ReferenceSource,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class ScholarlyGraphEnricher(Protocol):
    """
    External bibliographic graph consulted by DOI.

    get_paper_by_doi returns the service's own id for the paper, or None
    when the service does not know it. get_references drains every page
    before returning.
    """

    name: ReferenceSource

    def get_paper_by_doi(self, doi: str) -> Optional[str]:
        ...

    def get_references(self, external_id: str) -> List[RawReference]:
        ...


class MetadataResolver(Protocol):
    """
    Fills gaps in already deduplicated citations without adding any.

    backfill returns the citations (same order, same length) and the number
    that gained a field.
    """

    name: ReferenceSource

    def backfill(
        self, citations: Sequence[CanonicalCitation]
    ) -> Tuple[List[CanonicalCitation], int]:
        ...


class RateLimiter:
    """
    Enforce a minimum interval between consecutive requests, across threads.
    """

    def __init__(self, min_interval: float) -> None:
        self.min_interval = max(0.0, min_interval)
        self._lock = threading.Lock()
        self._last = 0.0

    def wait(self) -> None:
        if self.min_interval <= 0:
            return
        with self._lock:
            elapsed = time.monotonic() - self._last
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self._last = time.monotonic()
