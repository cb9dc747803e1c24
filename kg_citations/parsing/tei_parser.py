# kg_citations/parsing/tei_parser.py

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple, Union
import re
import xml.etree.ElementTree as ET

from kg_citations.models.reference import Author, RawReference, ReferenceSource


# ---------------------------------------------------------------------------
# TEI parsing helpers
# ---------------------------------------------------------------------------


def _load_tei_content(tei: Union[str, bytes, Path]) -> str:
    """
    Accept a TEI XML string, raw response bytes, or a filesystem path and
    return the XML text.
    """
    if isinstance(tei, Path):
        return tei.read_text(encoding="utf-8")
    if isinstance(tei, bytes):
        return tei.decode("utf-8", errors="replace")

    s = str(tei)
    if "<" in s:
        return s

    p = Path(s)
    if p.exists():
        return p.read_text(encoding="utf-8")

    return s


def _parse_tei_any(tei: Union[str, bytes, Path]) -> Tuple[ET.Element, Optional[dict]]:
    """
    Parse TEI and detect the namespace.

    Returns (root_element, namespace_dict_or_None).
    """
    xml_text = _load_tei_content(tei).strip()
    root = ET.fromstring(xml_text)

    if root.tag.startswith("{"):
        uri = root.tag.split("}")[0].strip("{")
        ns = {"tei": uri}
    else:
        ns = None

    return root, ns


def _q(path: str, ns: Optional[dict]) -> str:
    """Turn 'a/b' into 'tei:a/tei:b' when the document is namespaced."""
    if not ns:
        return path
    parts = []
    for part in path.split("/"):
        if part in ("", ".", "..") or part.startswith("@"):
            parts.append(part)
        else:
            parts.append(f"tei:{part}")
    return "/".join(parts)


def _normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def _text_of(el: Optional[ET.Element]) -> Optional[str]:
    if el is None:
        return None
    text = _normalize_whitespace(" ".join(el.itertext()))
    return text or None


# ---------------------------------------------------------------------------
# biblStruct field extraction
# ---------------------------------------------------------------------------


def _findall_bibl_structs(root: ET.Element, ns: Optional[dict]) -> List[ET.Element]:
    # processReferences wraps entries in listBibl; processCitation may return
    # a bare biblStruct as the root element.
    local = root.tag.split("}")[-1]
    if local == "biblStruct":
        return [root]
    return root.findall(_q(".//biblStruct", ns), ns)


def _get_raw_text(bibl: ET.Element, ns: Optional[dict]) -> Optional[str]:
    for note in bibl.findall(_q("note", ns), ns):
        if (note.get("type") or "").lower() == "raw_reference":
            return _text_of(note)
    return None


def _get_bibl_title(bibl: ET.Element, ns: Optional[dict]) -> Optional[str]:
    # Prefer analytic/title, then monogr/title
    el = bibl.find(_q("analytic/title", ns), ns)
    if el is None:
        el = bibl.find(_q("monogr/title", ns), ns)
    return _text_of(el)


def _get_bibl_venue(bibl: ET.Element, ns: Optional[dict]) -> Optional[str]:
    """
    The monogr title is the venue only when an analytic title exists;
    otherwise it is the title of the work itself.
    """
    if bibl.find(_q("analytic/title", ns), ns) is None:
        return None
    return _text_of(bibl.find(_q("monogr/title", ns), ns))


def _get_bibl_authors(bibl: ET.Element, ns: Optional[dict]) -> List[Author]:
    authors: List[Author] = []

    pers_elems: List[ET.Element] = []
    pers_elems.extend(bibl.findall(_q("analytic/author/persName", ns), ns))
    pers_elems.extend(bibl.findall(_q("monogr/author/persName", ns), ns))

    for pers in pers_elems:
        surname = _text_of(pers.find(_q("surname", ns), ns))
        if not surname:
            continue
        forenames = [
            _text_of(fn) for fn in pers.findall(_q("forename", ns), ns)
        ]
        forename = " ".join(f for f in forenames if f) or None
        authors.append(Author(last_name=surname, first_name=forename))

    return authors


def _get_bibl_year(bibl: ET.Element, ns: Optional[dict]) -> Optional[int]:
    """
    Extract a 4-digit publication year from imprint/date or any date element.
    """
    date_el = bibl.find(_q(".//imprint/date", ns), ns)
    if date_el is None:
        date_el = bibl.find(_q(".//date", ns), ns)
    if date_el is None:
        return None

    when = date_el.get("when") or date_el.get("when-iso")
    if when:
        m = re.match(r"(\d{4})", when)
        if m:
            return int(m.group(1))

    m = re.search(r"\b(19|20)\d{2}\b", date_el.text or "")
    return int(m.group(0)) if m else None


def _get_bibl_doi(bibl: ET.Element, ns: Optional[dict]) -> Optional[str]:
    for idno in bibl.findall(_q(".//idno", ns), ns):
        if (idno.get("type") or "").lower() == "doi":
            text = (idno.text or "").strip()
            if text:
                return text
    return None


def _get_bibl_scope(bibl: ET.Element, ns: Optional[dict], unit: str) -> Optional[str]:
    for scope in bibl.findall(_q(".//biblScope", ns), ns):
        if (scope.get("unit") or "").lower() != unit:
            continue
        start, end = scope.get("from"), scope.get("to")
        if start and end:
            return f"{start}-{end}"
        text = _text_of(scope)
        if text:
            return text
        if start:
            return start
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_references_from_tei(
    tei_xml_or_path: Union[str, bytes, Path],
    source: ReferenceSource = ReferenceSource.GROBID,
) -> List[RawReference]:
    """
    Parse GROBID TEI XML and extract one RawReference per <biblStruct>.

    We try to be robust to:
    - TEI default namespaces (xmlns="http://www.tei-c.org/ns/1.0")
    - Titles in <analytic><title> or <monogr><title>
    - Authors encoded as <persName><forename>/<surname>
    - Dates with @when/@when-iso or text
    - Raw citation strings in <note type="raw_reference">

    Entries carrying neither a title nor any text are dropped.
    """
    root, ns = _parse_tei_any(tei_xml_or_path)

    references: List[RawReference] = []

    for bibl in _findall_bibl_structs(root, ns):
        title = _get_bibl_title(bibl, ns)
        raw_text = _get_raw_text(bibl, ns) or _text_of(bibl) or title

        if not raw_text:
            continue

        references.append(
            RawReference(
                raw_text=raw_text,
                source=source,
                title=title,
                authors=_get_bibl_authors(bibl, ns),
                doi=_get_bibl_doi(bibl, ns),
                year=_get_bibl_year(bibl, ns),
                venue=_get_bibl_venue(bibl, ns),
                volume=_get_bibl_scope(bibl, ns, "volume"),
                pages=_get_bibl_scope(bibl, ns, "page"),
            )
        )

    return references
