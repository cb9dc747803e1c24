# kg_citations/extraction/factory.py

from __future__ import annotations

import logging
from typing import Optional, Sequence

from kg_citations.citations.matcher import CorpusMatcher
from kg_citations.config.settings import Settings, get_settings
from kg_citations.documents import FileDocumentSource
from kg_citations.enrichers import (
    MetadataResolver,
    ScholarlyGraphEnricher,
    build_enrichers,
    build_metadata_resolver,
)
from kg_citations.extraction.service import CitationExtractionService
from kg_citations.graph.citation_graph import CitationGraph
from kg_citations.parsing.grobid_client import GrobidClient, GrobidClientConfig
from kg_citations.storage.citation_store import CitationStore
from kg_citations.storage.corpus_index import CorpusIndex
from kg_citations.storage.database import Database

logger = logging.getLogger(__name__)


def build_extraction_service(
    config: Optional[Settings] = None,
    *,
    enrichers: Optional[Sequence[ScholarlyGraphEnricher]] = None,
    metadata_resolver: Optional[MetadataResolver] = None,
) -> CitationExtractionService:
    """
    Wire a CitationExtractionService from settings:

    - SQLite database at config.database_path (corpus index + citation rows)
    - citation graph snapshot at config.graph_path
    - GROBID client, PDFs from config.raw_papers_dir
    - enrichers from config.ENRICHERS unless given explicitly
    - Crossref back-fill when config.CROSSREF_ENABLED, unless a resolver is given
    """
    config = config or get_settings()

    db = Database(config.database_path)
    corpus = CorpusIndex(db)

    extractor = GrobidClient(
        GrobidClientConfig(
            base_url=config.GROBID_URL.rstrip("/"),
            timeout=config.GROBID_TIMEOUT,
            enabled=config.GROBID_ENABLED,
        )
    )
    if enrichers is None:
        enrichers = build_enrichers(config=config)
    if metadata_resolver is None:
        metadata_resolver = build_metadata_resolver(config)

    logger.debug(
        "Citation extraction wired: db=%s graph=%s grobid=%s enrichers=%s crossref=%s",
        config.database_path,
        config.graph_path,
        extractor.base_url,
        [e.name.value for e in enrichers],
        metadata_resolver is not None,
    )

    return CitationExtractionService(
        corpus=corpus,
        citation_store=CitationStore(db),
        citation_graph=CitationGraph(path=config.graph_path),
        extractor=extractor,
        document_source=FileDocumentSource(config.raw_papers_dir),
        enrichers=enrichers,
        metadata_resolver=metadata_resolver,
        matcher=CorpusMatcher(
            corpus,
            title_confidence=config.TITLE_MATCH_CONFIDENCE,
            min_title_length=config.MIN_TITLE_MATCH_LENGTH,
        ),
        source_timeout=config.SOURCE_TIMEOUT_SECONDS,
        parallel=config.PARALLEL_SOURCES,
    )
