# tests/test_normalize.py

import pytest

from kg_citations.citations.normalize import (
    dedup_key,
    merge_references,
    normalize_doi,
    normalize_title,
)
from kg_citations.models import MatchMethod, ReferenceSource

from conftest import ref

GROBID = ReferenceSource.GROBID
S2 = ReferenceSource.SEMANTIC_SCHOLAR
OA = ReferenceSource.OPENALEX


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("10.1000/ABC", "10.1000/abc"),
        ("https://doi.org/10.1000/ABC", "10.1000/abc"),
        ("http://doi.org/10.1000/abc", "10.1000/abc"),
        ("https://dx.doi.org/10.1000/abc", "10.1000/abc"),
        ("doi:10.1000/abc", "10.1000/abc"),
        ("  DOI:10.1000/abc  ", "10.1000/abc"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_doi(raw, expected):
    assert normalize_doi(raw) == expected


def test_normalize_title_strips_case_punctuation_and_diacritics():
    assert normalize_title("  Über  die Graph-Théorie: A Study!  ") == "uber die graphtheorie a study"
    assert normalize_title("...") is None
    assert normalize_title(None) is None


def test_dedup_key_prefers_doi_then_title_then_raw_text():
    assert dedup_key(ref("x", doi="https://doi.org/10.1/A", title="T")) == ("doi", "10.1/a")
    assert dedup_key(ref("x", title="Some Title")) == ("title", "some title")
    assert dedup_key(ref("Smith 2020, unpublished")) == ("raw", "Smith 2020, unpublished")


def test_merge_first_writer_wins_across_sources():
    contributions = {
        S2: [ref("s2 copy", S2, doi="10.1/a", title="From Semantic Scholar")],
        GROBID: [ref("grobid copy", GROBID, doi="https://doi.org/10.1/A")],
    }

    merged = merge_references("P1", contributions, [GROBID, S2])

    assert len(merged) == 1
    survivor = merged[0]
    assert survivor.source is GROBID
    assert survivor.raw_text == "grobid copy"
    # no field-level union: the enricher's title is not merged in
    assert survivor.title is None
    assert survivor.citing_uri == "P1"
    assert survivor.match_method is MatchMethod.NONE
    assert survivor.chive_match_uri is None


def test_merge_keeps_unidentifiable_references_and_order():
    contributions = {
        GROBID: [
            ref("Anonymous. Notes.", GROBID),
            ref("a", GROBID, title="A Paper About Graphs"),
            ref("Anonymous. Notes.", GROBID),
        ],
        OA: [ref("b", OA, title="a paper about graphs!"), ref("c", OA, title="Another One")],
    }

    merged = merge_references("P1", contributions, [GROBID, OA])

    assert [c.raw_text for c in merged] == ["Anonymous. Notes.", "a", "c"]


def test_merge_appends_sources_missing_from_order():
    contributions = {
        OA: [ref("o", OA, title="Only In OpenAlex")],
        GROBID: [ref("g", GROBID, title="Only In Grobid")],
    }

    merged = merge_references("P1", contributions, [GROBID])

    assert [c.source for c in merged] == [GROBID, OA]


def test_merge_empty():
    assert merge_references("P1", {}, [GROBID, S2]) == []
