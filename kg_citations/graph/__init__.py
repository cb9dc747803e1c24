from .citation_graph import (
    CitationCounts,
    CitationGraph,
    CitationQueryResult,
    CoCitedPaper,
)

__all__ = [
    "CitationCounts",
    "CitationGraph",
    "CitationQueryResult",
    "CoCitedPaper",
]
