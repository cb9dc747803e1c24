# tests/conftest.py

import os
import tempfile
from typing import Any, Callable, Dict, List, Optional

import pytest

# Settings are built on first import; keep their data directory out of the repo.
os.environ.setdefault("KGCITE_DATA_DIR", tempfile.mkdtemp(prefix="kgcite-tests-"))

from kg_citations.documents import DocumentNotFoundError  # noqa: E402
from kg_citations.extraction.service import CitationExtractionService  # noqa: E402
from kg_citations.graph.citation_graph import CitationGraph  # noqa: E402
from kg_citations.models import RawReference, ReferenceSource  # noqa: E402
from kg_citations.storage import CitationStore, CorpusIndex, Database, IndexedDocument  # noqa: E402


def pytest_collection_modifyitems(config, items):
    if os.environ.get("KGCITE_RUN_INTEGRATION"):
        return
    skip = pytest.mark.skip(reason="integration test (set KGCITE_RUN_INTEGRATION=1 to run)")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._json = json_data
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json


class FakeSession:
    """
    Minimal stand-in for requests.Session.

    `handler(method, url, kwargs)` returns a FakeResponse or raises.
    Every call is recorded in `calls`.
    """

    def __init__(self, handler: Callable[[str, str, Dict[str, Any]], FakeResponse]) -> None:
        self.handler = handler
        self.headers: Dict[str, str] = {}
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self.handler("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": "POST", "url": url, **kwargs})
        return self.handler("POST", url, kwargs)


# ---------------------------------------------------------------------------
# Source fakes
# ---------------------------------------------------------------------------

def ref(
    raw_text: str,
    source: ReferenceSource = ReferenceSource.GROBID,
    *,
    title: Optional[str] = None,
    doi: Optional[str] = None,
    year: Optional[int] = None,
) -> RawReference:
    return RawReference(raw_text=raw_text, source=source, title=title, doi=doi, year=year)


class FakeExtractor:
    name = ReferenceSource.GROBID

    def __init__(
        self,
        references: Optional[List[RawReference]] = None,
        *,
        available: bool = True,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.references = references or []
        self.available = available
        self.error = error
        self.delay = delay
        self.calls: List[bytes] = []

    def is_available(self) -> bool:
        return self.available

    def extract_references(self, pdf_bytes: bytes) -> List[RawReference]:
        import time

        self.calls.append(pdf_bytes)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.references)


class FakeEnricher:
    def __init__(
        self,
        name: ReferenceSource,
        references: Optional[List[RawReference]] = None,
        *,
        known_dois: Optional[Dict[str, str]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.name = name
        self.references = references or []
        self.known_dois = known_dois if known_dois is not None else {}
        self.error = error
        self.lookups: List[str] = []
        self.fetched: List[str] = []

    def get_paper_by_doi(self, doi: str) -> Optional[str]:
        self.lookups.append(doi)
        if self.error is not None:
            raise self.error
        return self.known_dois.get(doi)

    def get_references(self, external_id: str) -> List[RawReference]:
        self.fetched.append(external_id)
        return list(self.references)


class FakeDocumentSource:
    def __init__(self, documents: Optional[Dict[tuple, bytes]] = None) -> None:
        self.documents = documents or {}

    def get_bytes(self, owner_id: str, content_id: str) -> bytes:
        try:
            return self.documents[(owner_id, content_id)]
        except KeyError:
            raise DocumentNotFoundError(owner_id, content_id) from None


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "citations.sqlite3")
    yield database
    database.close()


@pytest.fixture
def corpus(db):
    return CorpusIndex(db)


@pytest.fixture
def store(db):
    return CitationStore(db)


@pytest.fixture
def graph(tmp_path):
    return CitationGraph(path=tmp_path / "graph" / "citations.gpickle")


@pytest.fixture
def documents():
    return FakeDocumentSource({("alice", "p1"): b"%PDF-1.4 fake"})


@pytest.fixture
def make_service(corpus, store, graph, documents):
    def _make(
        extractor: Optional[FakeExtractor] = None,
        enrichers: Optional[List[FakeEnricher]] = None,
        **kwargs: Any,
    ) -> CitationExtractionService:
        kwargs.setdefault("source_timeout", 5.0)
        kwargs.setdefault("parallel", True)
        return CitationExtractionService(
            corpus=corpus,
            citation_store=store,
            citation_graph=graph,
            extractor=extractor,
            document_source=documents,
            enrichers=enrichers,
            **kwargs,
        )

    return _make


@pytest.fixture
def indexed(corpus):
    """A small corpus: P2 (DOI D1) and P3 (title only)."""
    corpus.add_document(
        IndexedDocument(uri="P1", title="The Citing Paper Itself", doi="10.1000/p1", owner_id="alice", content_id="p1")
    )
    corpus.add_document(IndexedDocument(uri="P2", title="Deep Learning for Graphs", doi="10.1000/d1"))
    corpus.add_document(IndexedDocument(uri="P3", title="Attention Is All You Need"))
    return corpus
