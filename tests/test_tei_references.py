# tests/test_tei_references.py

from kg_citations.models import RawReference, ReferenceSource
from kg_citations.parsing.tei_parser import extract_references_from_tei

TEI_REFERENCES = """<?xml version="1.0" encoding="UTF-8"?>
<TEI xmlns="http://www.tei-c.org/ns/1.0">
  <text>
    <back>
      <listBibl>
        <biblStruct xml:id="b0">
          <analytic>
            <title level="a" type="main">First cited paper</title>
            <author>
              <persName>
                <forename type="first">Alice</forename>
                <forename type="middle">B</forename>
                <surname>Smith</surname>
              </persName>
            </author>
            <author>
              <persName><forename>Nobody</forename></persName>
            </author>
            <idno type="DOI">10.1000/xyz123</idno>
          </analytic>
          <monogr>
            <title level="j">Journal of Examples</title>
            <imprint>
              <biblScope unit="volume">12</biblScope>
              <biblScope unit="page" from="100" to="110" />
              <date type="published" when="2020-05-01" />
            </imprint>
          </monogr>
          <note type="raw_reference">Smith A. B. First cited paper. J. Examples 12:100-110, 2020.</note>
        </biblStruct>

        <biblStruct xml:id="b1">
          <monogr>
            <title level="m">A Book Without Analytic Part</title>
            <imprint><date>circa 1999</date></imprint>
          </monogr>
        </biblStruct>

        <biblStruct xml:id="b2">
          <monogr><imprint/></monogr>
        </biblStruct>
      </listBibl>
    </back>
  </text>
</TEI>
"""


def test_extract_references_fields():
    refs = extract_references_from_tei(TEI_REFERENCES)

    assert len(refs) == 2
    assert all(isinstance(r, RawReference) for r in refs)
    first, second = refs

    assert first.source is ReferenceSource.GROBID
    assert first.title == "First cited paper"
    assert first.raw_text.startswith("Smith A. B. First cited paper.")
    assert first.doi == "10.1000/xyz123"
    assert first.year == 2020
    assert first.venue == "Journal of Examples"
    assert first.volume == "12"
    assert first.pages == "100-110"
    # the author without a surname is dropped
    assert [a.display_name for a in first.authors] == ["Smith, Alice B"]

    assert second.title == "A Book Without Analytic Part"
    assert second.venue is None
    assert second.year == 1999
    # no raw_reference note: falls back to the entry text
    assert "A Book Without Analytic Part" in second.raw_text


def test_extract_references_without_namespace_and_custom_source():
    tei = """<TEI><text><back><listBibl>
      <biblStruct><analytic><title>Plain</title></analytic></biblStruct>
    </listBibl></back></text></TEI>"""

    refs = extract_references_from_tei(tei, source=ReferenceSource.OPENALEX)

    assert len(refs) == 1
    assert refs[0].title == "Plain"
    assert refs[0].source is ReferenceSource.OPENALEX


def test_extract_single_bibl_struct_root_and_bytes(tmp_path):
    tei = (
        '<biblStruct xmlns="http://www.tei-c.org/ns/1.0">'
        "<analytic><title>Parsed Citation String</title></analytic>"
        "</biblStruct>"
    ).encode("utf-8")

    refs = extract_references_from_tei(tei)
    assert [r.title for r in refs] == ["Parsed Citation String"]

    path = tmp_path / "refs.tei.xml"
    path.write_text(TEI_REFERENCES, encoding="utf-8")
    assert len(extract_references_from_tei(path)) == 2
