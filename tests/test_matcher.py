# tests/test_matcher.py

import pytest

from kg_citations.citations.matcher import DOI_MATCH_CONFIDENCE, CorpusMatcher
from kg_citations.models import CanonicalCitation, MatchMethod, ReferenceSource
from kg_citations.storage import IndexedDocument


def _citation(citing="P1", *, doi=None, title=None, raw="raw"):
    return CanonicalCitation(
        citing_uri=citing, raw_text=raw, source=ReferenceSource.GROBID, doi=doi, title=title
    )


def test_doi_match_has_full_confidence(indexed):
    matcher = CorpusMatcher(indexed)

    [c] = matcher.match([_citation(doi="HTTPS://DOI.ORG/10.1000/D1")])

    assert c.chive_match_uri == "P2"
    assert c.match_method is MatchMethod.DOI
    assert c.match_confidence == DOI_MATCH_CONFIDENCE == 1.0


def test_title_match_has_sub_unity_confidence(indexed):
    matcher = CorpusMatcher(indexed, title_confidence=0.7)

    [c] = matcher.match([_citation(title="attention is all you need.")])

    assert c.chive_match_uri == "P3"
    assert c.match_method is MatchMethod.TITLE
    assert c.match_confidence == 0.7


def test_unknown_doi_falls_back_to_title(indexed):
    [c] = CorpusMatcher(indexed).match(
        [_citation(doi="10.9999/unknown", title="Deep Learning for Graphs")]
    )

    assert c.chive_match_uri == "P2"
    assert c.match_method is MatchMethod.TITLE
    assert c.match_confidence < 1.0


def test_no_match_leaves_citation_unresolved(indexed):
    [c] = CorpusMatcher(indexed).match([_citation(title="Something Entirely Different")])

    assert c.chive_match_uri is None
    assert c.match_method is MatchMethod.NONE
    assert c.match_confidence is None
    assert not c.is_matched


def test_self_citation_is_unmatched(indexed):
    matcher = CorpusMatcher(indexed)

    by_doi, by_title = matcher.match(
        [_citation(doi="10.1000/p1"), _citation(title="The citing paper itself")]
    )

    for c in (by_doi, by_title):
        assert c.chive_match_uri is None
        assert c.match_method is MatchMethod.NONE


def test_short_titles_are_not_looked_up(corpus):
    corpus.add_document(IndexedDocument(uri="P9", title="Intro"))

    [c] = CorpusMatcher(corpus).match([_citation(title="Intro")])

    assert c.match_method is MatchMethod.NONE


def test_ambiguous_title_is_unmatched(corpus):
    corpus.add_document(IndexedDocument(uri="A", title="A Survey of Citation Graphs"))
    corpus.add_document(IndexedDocument(uri="B", title="A survey of citation graphs"))

    [c] = CorpusMatcher(corpus).match([_citation(title="A Survey of Citation Graphs")])

    assert c.chive_match_uri is None


def test_match_does_not_mutate_input(indexed):
    original = _citation(doi="10.1000/d1")
    CorpusMatcher(indexed).match([original])
    assert original.chive_match_uri is None


@pytest.mark.parametrize("confidence", [0.0, 1.0, 1.5])
def test_title_confidence_must_be_below_one(corpus, confidence):
    with pytest.raises(ValueError):
        CorpusMatcher(corpus, title_confidence=confidence)
