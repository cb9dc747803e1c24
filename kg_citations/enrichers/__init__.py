# kg_citations/enrichers/__init__.py

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from kg_citations.config.settings import Settings, get_settings
from kg_citations.enrichers.base import (
    EnricherError,
    MetadataResolver,
    RateLimiter,
    ScholarlyGraphEnricher,
)
from kg_citations.enrichers.crossref import CrossrefClient, CrossrefWork
from kg_citations.enrichers.openalex import OpenAlexEnricher
from kg_citations.enrichers.semantic_scholar import SemanticScholarEnricher

logger = logging.getLogger(__name__)

ENRICHER_CLASSES = {
    "semantic-scholar": SemanticScholarEnricher,
    "openalex": OpenAlexEnricher,
}


def build_enrichers(
    names: Optional[Iterable[str]] = None,
    config: Optional[Settings] = None,
) -> List[ScholarlyGraphEnricher]:
    """
    Instantiate enrichers by name, keeping the given (priority) order.

    `names` defaults to config.ENRICHERS. An empty list is valid and means
    no enricher is consulted. Unknown names raise ValueError.
    """
    config = config or get_settings()
    if names is None:
        names = config.ENRICHERS

    enrichers: List[ScholarlyGraphEnricher] = []
    for name in names:
        key = name.strip().lower()
        if key not in ENRICHER_CLASSES:
            raise ValueError(
                f"Unknown enricher {name!r}; expected one of {sorted(ENRICHER_CLASSES)}"
            )
        enrichers.append(ENRICHER_CLASSES[key].from_settings(config))

    logger.debug("Configured enrichers: %s", [e.name.value for e in enrichers])
    return enrichers


def build_metadata_resolver(config: Optional[Settings] = None) -> Optional[MetadataResolver]:
    """The Crossref back-fill pass, or None when CROSSREF_ENABLED is off."""
    config = config or get_settings()
    if not config.CROSSREF_ENABLED:
        return None
    return CrossrefClient.from_settings(config)


__all__ = [
    "CrossrefClient",
    "CrossrefWork",
    "EnricherError",
    "MetadataResolver",
    "OpenAlexEnricher",
    "RateLimiter",
    "ScholarlyGraphEnricher",
    "SemanticScholarEnricher",
    "build_enrichers",
    "build_metadata_resolver",
]
