# kg_citations/citations/normalize.py

"""
Reference normalization and first-writer-wins deduplication.

Every raw reference gets a dedup key:

    ("doi", <normalized doi>)      if a DOI is present
    ("title", <normalized title>)  else if a title is present
    ("raw", <raw text verbatim>)   otherwise

Sources are walked in a fixed priority order and the first reference seen
for a key becomes the CanonicalCitation; later duplicates are dropped whole.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from kg_citations.models import CanonicalCitation, RawReference, ReferenceSource

DedupKey = Tuple[str, str]

_DOI_PREFIXES = (
    "https://doi.org/",
    "http://doi.org/",
    "https://dx.doi.org/",
    "http://dx.doi.org/",
    "doi:",
)
_WS = re.compile(r"\s+")
_PUNCT = re.compile(r"[^\w\s]|_")


def normalize_doi(doi: Optional[str]) -> Optional[str]:
    """
    Lowercase a DOI and strip any resolver URL or "doi:" prefix.

    Returns None for empty input.
    """
    if not doi:
        return None
    normalized = doi.strip().lower()
    for prefix in _DOI_PREFIXES:
        if normalized.startswith(prefix):
            normalized = normalized[len(prefix):].strip()
            break
    return normalized or None


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_title(title: Optional[str]) -> Optional[str]:
    """
    Lowercase, strip diacritics and punctuation, collapse whitespace.

    Returns None when nothing is left.
    """
    if not title:
        return None
    s = _strip_diacritics(title).lower()
    s = _PUNCT.sub("", s)
    s = _WS.sub(" ", s).strip()
    return s or None


def dedup_key(ref: RawReference) -> DedupKey:
    doi = normalize_doi(ref.doi)
    if doi:
        return ("doi", doi)
    title = normalize_title(ref.title)
    if title:
        return ("title", title)
    return ("raw", ref.raw_text)


def merge_references(
    citing_uri: str,
    contributions: Mapping[ReferenceSource, Sequence[RawReference]],
    source_order: Iterable[ReferenceSource],
) -> List[CanonicalCitation]:
    """
    Merge per-source reference lists into one ordered, deduplicated list.

    `source_order` is the priority order (structural extractor first, then
    enrichers as configured). Sources present in `contributions` but missing
    from `source_order` are appended after it in mapping order so nothing is
    silently lost.
    """
    order: List[ReferenceSource] = list(source_order)
    for source in contributions:
        if source not in order:
            order.append(source)

    seen: Set[DedupKey] = set()
    merged: List[CanonicalCitation] = []

    for source in order:
        for ref in contributions.get(source, ()):
            key = dedup_key(ref)
            if key in seen:
                continue
            seen.add(key)
            merged.append(CanonicalCitation.from_raw(citing_uri, ref))

    return merged

