# kg_citations/extraction/results.py

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ExtractionCancelled(RuntimeError):
    """
    The caller cancelled a run before its write phase; nothing was stored.
    """

    def __init__(self, document_uri: str) -> None:
        super().__init__(f"Citation extraction for {document_uri} was cancelled")
        self.document_uri = document_uri


class SourceUnavailable(RuntimeError):
    """A source could not contribute (service down, paper unknown, no PDF)."""


class ExtractionOptions(BaseModel):
    """
    Per-run switches for citation extraction.
    """

    use_structural_extractor: bool = Field(
        True, description="Run the structural extractor over the document PDF."
    )
    use_enrichers: bool = Field(
        True, description="Consult the configured enrichers (each needs a DOI or its own id)."
    )
    use_crossref: bool = Field(
        True, description="Back-fill missing title, year and venue of cited DOIs from Crossref."
    )
    doi: Optional[str] = Field(None, description="DOI of the citing document.")
    owner_id: Optional[str] = Field(None, description="Owner of the document PDF.")
    content_id: Optional[str] = Field(None, description="Content id of the document PDF.")
    enricher_ids: Dict[str, str] = Field(
        default_factory=dict,
        description=(
            "Known enricher ids of the citing document keyed by enricher name, "
            "e.g. {'semantic-scholar': 'abc123'}. Skips that enricher's DOI lookup."
        ),
    )


class SourceFailure(BaseModel):
    """
    One source that contributed nothing to a run, and why.
    """

    source: str = Field(..., description="Source name, e.g. 'grobid' or 'semantic-scholar'.")
    reason: str = Field(..., description="Human-readable failure reason.")


class ExtractionResult(BaseModel):
    """
    Summary of one extraction run. Returned to the caller, never persisted.
    """

    document_uri: str
    source_counts: Dict[str, int] = Field(
        default_factory=dict,
        description=(
            "Raw references contributed by each considered source, before dedup. "
            "For the Crossref back-fill: citations that gained metadata."
        ),
    )
    total_extracted: int = Field(0, description="Canonical citations after dedup.")
    matched_to_chive: int = Field(
        0, description="Canonical citations resolved to a local corpus document (self excluded)."
    )
    duration_ms: int = 0
    success: bool = True
    error: Optional[str] = Field(None, description="Storage-layer error when success is False.")
    failures: List[SourceFailure] = Field(default_factory=list)
