# kg_citations/extraction/__init__.py

from kg_citations.extraction.batch import BatchStats, BatchTarget, run_batch, targets_from_corpus
from kg_citations.extraction.factory import build_extraction_service
from kg_citations.extraction.locks import KeyedLock
from kg_citations.extraction.results import (
    ExtractionCancelled,
    ExtractionOptions,
    ExtractionResult,
    SourceFailure,
    SourceUnavailable,
)
from kg_citations.extraction.service import CitationExtractionService

__all__ = [
    "BatchStats",
    "BatchTarget",
    "CitationExtractionService",
    "ExtractionCancelled",
    "ExtractionOptions",
    "ExtractionResult",
    "KeyedLock",
    "SourceFailure",
    "SourceUnavailable",
    "build_extraction_service",
    "run_batch",
    "targets_from_corpus",
]
