from .reference import Author, RawReference, ReferenceSource
from .citation import CanonicalCitation, CitationRelationship, MatchMethod

__all__ = [
    "Author",
    "RawReference",
    "ReferenceSource",
    "CanonicalCitation",
    "CitationRelationship",
    "MatchMethod",
]
