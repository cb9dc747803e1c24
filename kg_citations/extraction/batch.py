# kg_citations/extraction/batch.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from kg_citations.config.settings import settings
from kg_citations.extraction.results import ExtractionOptions, ExtractionResult
from kg_citations.extraction.service import CitationExtractionService
from kg_citations.storage.corpus_index import CorpusIndex

logger = logging.getLogger(__name__)


@dataclass
class BatchTarget:
    """One document to extract citations for."""

    document_uri: str
    owner_id: Optional[str] = None
    content_id: Optional[str] = None
    doi: Optional[str] = None


@dataclass
class BatchStats:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    total_citations: int = 0
    total_matched: int = 0
    errors: List[str] = field(default_factory=list)


def targets_from_corpus(corpus: CorpusIndex) -> List[BatchTarget]:
    """Every indexed document, with its PDF location and DOI."""
    return [
        BatchTarget(
            document_uri=doc.uri,
            owner_id=doc.owner_id,
            content_id=doc.content_id,
            doi=doc.doi,
        )
        for doc in corpus.iter_documents()
    ]


def run_batch(
    service: CitationExtractionService,
    targets: Sequence[BatchTarget],
    batch_size: Optional[int] = None,
    delay_seconds: Optional[float] = None,
    *,
    options: Optional[ExtractionOptions] = None,
    on_result: Optional[Callable[[ExtractionResult], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchStats:
    """
    Extract citations for many documents, `batch_size` at a time, pausing
    `delay_seconds` between batches to stay polite to external services.

    `options` supplies the source switches; each target contributes its own
    DOI and PDF location. A failed document is counted and the batch moves on.
    """
    batch_size = batch_size or settings.BATCH_SIZE
    delay_seconds = settings.BATCH_DELAY_SECONDS if delay_seconds is None else delay_seconds
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    base = options or ExtractionOptions()
    stats = BatchStats()

    for start in range(0, len(targets), batch_size):
        if start and delay_seconds > 0:
            sleep(delay_seconds)

        batch = targets[start : start + batch_size]
        logger.info(
            "Processing batch %d (%d documents)", start // batch_size + 1, len(batch)
        )

        for target in batch:
            run_options = base.model_copy(
                update={
                    "doi": target.doi,
                    "owner_id": target.owner_id,
                    "content_id": target.content_id,
                }
            )
            result = service.extract_citations(target.document_uri, run_options)
            _record(stats, result)
            if on_result is not None:
                on_result(result)

    logger.info(
        "Batch extraction finished: %d processed, %d succeeded, %d failed, %d citations",
        stats.processed,
        stats.succeeded,
        stats.failed,
        stats.total_citations,
    )
    return stats


def _record(stats: BatchStats, result: ExtractionResult) -> None:
    stats.processed += 1
    if result.success:
        stats.succeeded += 1
        stats.total_citations += result.total_extracted
        stats.total_matched += result.matched_to_chive
    else:
        stats.failed += 1
        stats.errors.append(f"{result.document_uri}: {result.error}")

