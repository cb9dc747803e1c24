"""
Structural reference extraction: PDF -> GROBID TEI -> RawReference.
"""

from .grobid_client import GrobidClient, GrobidClientConfig, GrobidClientError
from .tei_parser import extract_references_from_tei

__all__ = [
    "GrobidClient",
    "GrobidClientConfig",
    "GrobidClientError",
    "extract_references_from_tei",
]
