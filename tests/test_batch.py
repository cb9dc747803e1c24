# tests/test_batch.py

import pytest

from kg_citations.extraction import BatchTarget, ExtractionOptions, run_batch, targets_from_corpus
from kg_citations.extraction.results import ExtractionResult
from kg_citations.storage import IndexedDocument


class RecordingService:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def extract_citations(self, document_uri, options=None, cancel_event=None):
        self.calls.append((document_uri, options))
        if document_uri in self.failing:
            return ExtractionResult(document_uri=document_uri, success=False, error="database is locked")
        return ExtractionResult(document_uri=document_uri, total_extracted=3, matched_to_chive=1)


def test_run_batch_sleeps_between_batches_and_collects_stats():
    service = RecordingService(failing={"d3"})
    sleeps = []
    targets = [BatchTarget(f"d{i}", owner_id="o", content_id=f"c{i}", doi=f"10.1/{i}") for i in range(5)]

    stats = run_batch(service, targets, batch_size=2, delay_seconds=1.5, sleep=sleeps.append)

    assert sleeps == [1.5, 1.5]
    assert [uri for uri, _ in service.calls] == ["d0", "d1", "d2", "d3", "d4"]
    assert (stats.processed, stats.succeeded, stats.failed) == (5, 4, 1)
    assert stats.total_citations == 12
    assert stats.total_matched == 4
    assert stats.errors == ["d3: database is locked"]


def test_run_batch_applies_per_target_options():
    service = RecordingService()
    base = ExtractionOptions(use_enrichers=False)

    run_batch(
        service,
        [BatchTarget("d0", owner_id="o", content_id="c", doi="10.1/x")],
        batch_size=10,
        delay_seconds=0,
        options=base,
    )

    [(_, options)] = service.calls
    assert options.doi == "10.1/x"
    assert (options.owner_id, options.content_id) == ("o", "c")
    assert options.use_enrichers is False
    assert base.doi is None


def test_run_batch_reports_each_result():
    seen = []
    run_batch(RecordingService(), [BatchTarget("a"), BatchTarget("b")], 1, 0, on_result=seen.append)
    assert [r.document_uri for r in seen] == ["a", "b"]


def test_run_batch_rejects_bad_batch_size():
    with pytest.raises(ValueError):
        run_batch(RecordingService(), [BatchTarget("a")], batch_size=-1)


def test_targets_from_corpus(corpus):
    corpus.add_document(IndexedDocument(uri="P1", doi="10.1/p1", owner_id="o", content_id="c"))

    [target] = targets_from_corpus(corpus)

    assert (target.document_uri, target.owner_id, target.content_id, target.doi) == (
        "P1",
        "o",
        "c",
        "10.1/p1",
    )


def test_batch_end_to_end_with_real_service(indexed, store, make_service):
    from conftest import FakeExtractor, ref

    service = make_service(FakeExtractor([ref("cites P2", doi="10.1000/d1")]))

    stats = run_batch(service, targets_from_corpus(indexed), batch_size=2, delay_seconds=0)

    # only P1 has a PDF; the others degrade to zero references
    assert stats.processed == 3
    assert stats.failed == 0
    assert store.get_citations("P1", matched_only=True)[0].chive_match_uri == "P2"
