# tests/test_storage.py

import sqlite3

import pytest

from kg_citations.models import Author, CanonicalCitation, MatchMethod, ReferenceSource
from kg_citations.storage import CitationStore, Database, IndexedDocument, PersistenceError


def _citation(raw, *, citing="P1", match=None, **kwargs):
    c = CanonicalCitation(citing_uri=citing, raw_text=raw, source=ReferenceSource.GROBID, **kwargs)
    if match is not None:
        c = c.with_match(match, MatchMethod.DOI, 1.0)
    return c


# ---------------------------------------------------------------------------
# Corpus index
# ---------------------------------------------------------------------------

def test_corpus_add_and_lookup(corpus):
    corpus.add_document(
        IndexedDocument(uri="P2", title="Déjà Vu: A Study", doi="https://doi.org/10.1/ABC", owner_id="o", content_id="c")
    )

    assert corpus.find_by_doi("10.1/abc") == "P2"
    assert corpus.find_by_doi("DOI:10.1/ABC") == "P2"
    assert corpus.find_by_title("deja vu a study") == "P2"
    assert corpus.find_by_doi("10.1/other") is None

    doc = corpus.get_document("P2")
    assert doc.doi == "10.1/abc"
    assert doc.owner_id == "o"
    assert corpus.get_document("missing") is None


def test_corpus_add_is_an_upsert(corpus):
    corpus.add_document(IndexedDocument(uri="P2", title="Old Title"))
    corpus.add_document(IndexedDocument(uri="P2", title="New Title", doi="10.1/new"))

    docs = list(corpus.iter_documents())
    assert [(d.uri, d.title, d.doi) for d in docs] == [("P2", "New Title", "10.1/new")]


def test_corpus_ambiguous_doi(corpus):
    corpus.add_document(IndexedDocument(uri="A", doi="10.1/dup"))
    corpus.add_document(IndexedDocument(uri="B", doi="10.1/DUP"))

    assert corpus.find_by_doi("10.1/dup") is None


# ---------------------------------------------------------------------------
# Citation store
# ---------------------------------------------------------------------------

def test_replace_citations_round_trip(store):
    cited = _citation(
        "Smith 2020",
        title="A Title",
        doi="10.1/x",
        authors=[Author("Smith", "Alice"), Author("Plato")],
        year=2020,
        venue="Venue",
        volume="3",
        pages="1-9",
        match="P2",
    )
    store.replace_citations("P1", [cited, _citation("Unknown reference")])

    rows = store.get_citations("P1")
    assert len(rows) == 2
    first, second = rows
    assert first == cited
    assert second.match_method is MatchMethod.NONE
    assert second.chive_match_uri is None
    assert store.get_citations("P1", matched_only=True) == [cited]


def test_replace_citations_is_idempotent_and_replaces(store):
    batch = [_citation("a"), _citation("b")]
    store.replace_citations("P1", batch)
    store.replace_citations("P1", batch)
    assert store.count_citations("P1") == 2

    store.replace_citations("P1", [_citation("c")])
    assert [c.raw_text for c in store.get_citations("P1")] == ["c"]

    store.replace_citations("P1", [])
    assert store.count_citations("P1") == 0


def test_replace_citations_leaves_other_documents_alone(store):
    store.replace_citations("P1", [_citation("a")])
    store.replace_citations("P2", [_citation("b", citing="P2")])
    store.replace_citations("P1", [])

    assert store.count_citations("P2") == 1


def test_replace_citations_rejects_foreign_citations(store):
    with pytest.raises(ValueError):
        store.replace_citations("P1", [_citation("x", citing="P9")])


def test_get_citations_pagination(store):
    store.replace_citations("P1", [_citation(str(i)) for i in range(5)])

    assert [c.raw_text for c in store.get_citations("P1", limit=2, offset=1)] == ["1", "2"]
    assert len(store.get_citations("P1", limit=None)) == 5


def test_failed_replace_rolls_back(db, store):
    store.replace_citations("P1", [_citation("kept")])
    # NOT NULL on raw_text makes the second insert fail mid-transaction
    bad = _citation("x")
    bad.raw_text = None

    with pytest.raises(PersistenceError):
        store.replace_citations("P1", [_citation("new"), bad])

    assert [c.raw_text for c in store.get_citations("P1")] == ["kept"]


def test_failed_commit_rolls_back_and_connection_recovers(db, store):
    store.replace_citations("P1", [_citation("kept")])
    db._conn.execute("PRAGMA busy_timeout = 50")

    # another connection holding a read transaction blocks our COMMIT
    reader = sqlite3.connect(db.path, isolation_level=None)
    reader.execute("BEGIN")
    reader.execute("SELECT * FROM extracted_citations").fetchall()
    try:
        with pytest.raises(PersistenceError, match="locked"):
            store.replace_citations("P1", [_citation("new")])

        assert not db._conn.in_transaction
        assert [c.raw_text for c in store.get_citations("P1")] == ["kept"]
    finally:
        reader.execute("ROLLBACK")
        reader.close()

    store.replace_citations("P1", [_citation("after")])
    assert [c.raw_text for c in store.get_citations("P1")] == ["after"]


def test_closed_database_raises_persistence_error(tmp_path):
    db = Database(tmp_path / "closed.sqlite3")
    store = CitationStore(db)
    db.close()

    with pytest.raises(PersistenceError):
        store.get_citations("P1")
