# kg_citations/extraction/service.py

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from kg_citations.citations.matcher import CorpusMatcher
from kg_citations.citations.normalize import merge_references
from kg_citations.config.settings import settings
from kg_citations.documents import DocumentSource
from kg_citations.enrichers.base import MetadataResolver, ScholarlyGraphEnricher
from kg_citations.extraction.locks import KeyedLock
from kg_citations.extraction.results import (
    ExtractionCancelled,
    ExtractionOptions,
    ExtractionResult,
    SourceFailure,
    SourceUnavailable,
)
from kg_citations.graph.citation_graph import CitationGraph
from kg_citations.models import (
    CanonicalCitation,
    CitationRelationship,
    RawReference,
    ReferenceSource,
)
from kg_citations.storage.citation_store import CitationStore
from kg_citations.storage.corpus_index import CorpusIndex
from kg_citations.storage.database import PersistenceError

logger = logging.getLogger(__name__)

SourceTask = Tuple[ReferenceSource, Callable[[], List[RawReference]]]


class StructuralReferenceExtractor(Protocol):
    name: ReferenceSource

    def is_available(self) -> bool:
        ...

    def extract_references(self, pdf_bytes: bytes) -> List[RawReference]:
        ...


class CitationExtractionService:
    """
    Extract, deduplicate, match and persist the reference list of one document.

    A run moves through

        extracting -> normalizing -> back-filling -> matching -> persisting -> graph writing

    Sources (structural extractor, enrichers) are isolated from each other:
    a failing, unavailable or slow source contributes nothing and is noted in
    the result. Only a local store failure (PersistenceError) fails the run.

    Writes happen after everything else is computed, under a per-document
    lock. If the graph write fails, the previous citation rows are put back
    so the two stores never disagree about the run.
    """

    def __init__(
        self,
        *,
        corpus: CorpusIndex,
        citation_store: CitationStore,
        citation_graph: CitationGraph,
        extractor: Optional[StructuralReferenceExtractor] = None,
        document_source: Optional[DocumentSource] = None,
        enrichers: Optional[Sequence[ScholarlyGraphEnricher]] = None,
        metadata_resolver: Optional[MetadataResolver] = None,
        matcher: Optional[CorpusMatcher] = None,
        source_timeout: Optional[float] = None,
        parallel: Optional[bool] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self.corpus = corpus
        self.citation_store = citation_store
        self.citation_graph = citation_graph
        self.extractor = extractor
        self.document_source = document_source
        self.enrichers: List[ScholarlyGraphEnricher] = list(enrichers or [])
        self.metadata_resolver = metadata_resolver
        self.matcher = matcher or CorpusMatcher(
            corpus,
            title_confidence=settings.TITLE_MATCH_CONFIDENCE,
            min_title_length=settings.MIN_TITLE_MATCH_LENGTH,
        )
        self.source_timeout = (
            source_timeout if source_timeout is not None else settings.SOURCE_TIMEOUT_SECONDS
        )
        self.parallel = parallel if parallel is not None else settings.PARALLEL_SOURCES
        self.locks = locks or KeyedLock()

    @property
    def source_order(self) -> List[ReferenceSource]:
        """Dedup priority: structural extractor first, then enrichers as configured."""
        order: List[ReferenceSource] = []
        if self.extractor is not None:
            order.append(self.extractor.name)
        order.extend(e.name for e in self.enrichers)
        return order

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    def extract_citations(
        self,
        document_uri: str,
        options: Optional[ExtractionOptions] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExtractionResult:
        """
        Run the full pipeline for `document_uri` and return a summary.

        Raises ExtractionCancelled if `cancel_event` is set before the write
        phase; in that case neither store is touched.
        """
        options = options or ExtractionOptions()
        started = time.monotonic()

        with self.locks.hold(document_uri):
            logger.debug("[%s] extracting", document_uri)
            contributions, failures = self._gather(document_uri, options)
            source_counts = {
                source.value: len(contributions.get(source, ()))
                for source in self.source_order
            }
            self._check_cancelled(cancel_event, document_uri)

            logger.debug("[%s] normalizing", document_uri)
            citations = merge_references(document_uri, contributions, self.source_order)
            if options.use_crossref and self.metadata_resolver is not None:
                logger.debug("[%s] back-filling metadata", document_uri)
                citations, filled = self._backfill(document_uri, citations, failures)
                source_counts[self.metadata_resolver.name.value] = filled

            result = ExtractionResult(
                document_uri=document_uri,
                source_counts=source_counts,
                total_extracted=len(citations),
                failures=failures,
            )

            logger.debug("[%s] matching %d citations", document_uri, len(citations))
            try:
                matched = self.match_citations_to_chive(citations)
            except PersistenceError as exc:
                return self._failed(result, exc, started)
            self._check_cancelled(cancel_event, document_uri)

            edges = [CitationRelationship.from_citation(c) for c in matched if c.is_matched]
            result.matched_to_chive = len(edges)

            try:
                self._write(document_uri, matched, edges)
            except PersistenceError as exc:
                return self._failed(result, exc, started)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Extracted %d citations for %s (%d matched, sources %s, %d failed) in %d ms",
            result.total_extracted,
            document_uri,
            result.matched_to_chive,
            result.source_counts,
            len(result.failures),
            result.duration_ms,
        )
        return result

    def match_citations_to_chive(
        self, citations: Sequence[CanonicalCitation]
    ) -> List[CanonicalCitation]:
        """
        Resolve citations against the local corpus without storing anything.
        """
        return self.matcher.match(citations)

    def get_extracted_citations(
        self,
        document_uri: str,
        *,
        limit: Optional[int] = 100,
        offset: int = 0,
        matched_only: bool = False,
    ) -> List[CanonicalCitation]:
        return self.citation_store.get_citations(
            document_uri, limit=limit, offset=offset, matched_only=matched_only
        )

    # ------------------------------------------------------------------
    # Extracting
    # ------------------------------------------------------------------
    def _plan(
        self, document_uri: str, options: ExtractionOptions, failures: List[SourceFailure]
    ) -> List[SourceTask]:
        tasks: List[SourceTask] = []

        if options.use_structural_extractor and self.extractor is not None:
            if options.owner_id and options.content_id and self.document_source is not None:
                tasks.append((self.extractor.name, lambda: self._run_extractor(options)))
            else:
                failures.append(
                    SourceFailure(
                        source=self.extractor.name.value,
                        reason="no document location (owner_id/content_id) to read the PDF from",
                    )
                )

        if options.use_enrichers:
            for enricher in self.enrichers:
                known_id = options.enricher_ids.get(enricher.name.value)
                if known_id or options.doi:
                    tasks.append(
                        (
                            enricher.name,
                            lambda e=enricher, i=known_id: self._run_enricher(e, options.doi, i),
                        )
                    )
                else:
                    logger.debug(
                        "[%s] no DOI or %s id given, not consulted", document_uri, enricher.name.value
                    )

        return tasks

    def _gather(
        self, document_uri: str, options: ExtractionOptions
    ) -> Tuple[Dict[ReferenceSource, List[RawReference]], List[SourceFailure]]:
        failures: List[SourceFailure] = []
        contributions: Dict[ReferenceSource, List[RawReference]] = {}

        tasks = self._plan(document_uri, options, failures)
        if not tasks:
            return contributions, failures

        # one worker per source, so a hung source never delays the next one
        pool = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="kgcite-source")
        try:
            if self.parallel:
                deadline = time.monotonic() + self.source_timeout
                futures = [(source, pool.submit(fn)) for source, fn in tasks]
                for source, future in futures:
                    self._collect(
                        document_uri, source, future, deadline - time.monotonic(),
                        contributions, failures,
                    )
            else:
                for source, fn in tasks:
                    self._collect(
                        document_uri, source, pool.submit(fn), self.source_timeout,
                        contributions, failures,
                    )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return contributions, failures

    def _collect(
        self,
        document_uri: str,
        source: ReferenceSource,
        future: Future,
        timeout: float,
        contributions: Dict[ReferenceSource, List[RawReference]],
        failures: List[SourceFailure],
    ) -> None:
        try:
            refs = future.result(timeout=max(0.0, timeout))
        except FutureTimeout:
            future.cancel()
            reason = f"timed out after {self.source_timeout:g}s"
            logger.warning("[%s] %s %s", document_uri, source.value, reason)
            failures.append(SourceFailure(source=source.value, reason=reason))
        except Exception as exc:
            # any source failure only zeroes that source's contribution
            logger.warning(
                "[%s] %s contributed no references: %s", document_uri, source.value, exc
            )
            failures.append(SourceFailure(source=source.value, reason=str(exc) or type(exc).__name__))
        else:
            contributions[source] = list(refs)
            logger.debug("[%s] %s returned %d references", document_uri, source.value, len(refs))

    def _run_extractor(self, options: ExtractionOptions) -> List[RawReference]:
        if self.extractor is None or self.document_source is None:
            raise SourceUnavailable("no structural extractor or document source configured")
        if not self.extractor.is_available():
            raise SourceUnavailable(f"{self.extractor.name.value} is not available")
        pdf_bytes = self.document_source.get_bytes(options.owner_id, options.content_id)
        return self.extractor.extract_references(pdf_bytes)

    @staticmethod
    def _run_enricher(
        enricher: ScholarlyGraphEnricher,
        doi: Optional[str],
        external_id: Optional[str] = None,
    ) -> List[RawReference]:
        # a known enricher id saves the DOI lookup
        if external_id is None:
            external_id = enricher.get_paper_by_doi(doi) if doi else None
            if external_id is None:
                raise SourceUnavailable(f"no {enricher.name.value} paper for DOI {doi}")
        return enricher.get_references(external_id)

    def _backfill(
        self,
        document_uri: str,
        citations: List[CanonicalCitation],
        failures: List[SourceFailure],
    ) -> Tuple[List[CanonicalCitation], int]:
        """
        Run the metadata resolver over the merged citations under the source
        timeout. On any failure the citations come back unchanged.
        """
        resolver = self.metadata_resolver
        if resolver is None:
            return citations, 0

        source = resolver.name.value
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kgcite-backfill")
        try:
            future = pool.submit(resolver.backfill, citations)
            try:
                filled, count = future.result(timeout=self.source_timeout)
            except FutureTimeout:
                future.cancel()
                reason = f"timed out after {self.source_timeout:g}s"
                logger.warning("[%s] %s %s", document_uri, source, reason)
                failures.append(SourceFailure(source=source, reason=reason))
                return citations, 0
            except Exception as exc:
                logger.warning("[%s] %s back-fill failed: %s", document_uri, source, exc)
                failures.append(SourceFailure(source=source, reason=str(exc) or type(exc).__name__))
                return citations, 0
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        logger.debug("[%s] %s filled metadata of %d citations", document_uri, source, count)
        return list(filled), count

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def _write(
        self,
        document_uri: str,
        citations: List[CanonicalCitation],
        edges: List[CitationRelationship],
    ) -> None:
        previous = self.citation_store.get_citations(document_uri, limit=None)

        logger.debug("[%s] persisting %d citations", document_uri, len(citations))
        self.citation_store.replace_citations(document_uri, citations)

        logger.debug("[%s] writing %d graph edges", document_uri, len(edges))
        try:
            self.citation_graph.replace_edges(document_uri, edges)
        except PersistenceError:
            logger.debug("[%s] graph write failed, restoring %d citations", document_uri, len(previous))
            self.citation_store.replace_citations(document_uri, previous)
            raise

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], document_uri: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Citation extraction for %s cancelled before writing", document_uri)
            raise ExtractionCancelled(document_uri)

    @staticmethod
    def _failed(result: ExtractionResult, exc: PersistenceError, started: float) -> ExtractionResult:
        logger.error(
            "Citation extraction for %s failed in the %s store", result.document_uri, exc.store,
            exc_info=exc,
        )
        result.success = False
        result.error = str(exc)
        result.duration_ms = int((time.monotonic() - started) * 1000)
        return result
