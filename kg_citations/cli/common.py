# kg_citations/cli/common.py

from __future__ import annotations

from typing import Optional

from rich.console import Console

from kg_citations.extraction.factory import build_extraction_service
from kg_citations.extraction.service import CitationExtractionService

console = Console()

_service: Optional[CitationExtractionService] = None


def get_service() -> CitationExtractionService:
    """
    Build the extraction service from settings on first use and reuse it
    for the rest of the process.
    """
    global _service
    if _service is None:
        _service = build_extraction_service()
    return _service
