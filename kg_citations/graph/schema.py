# kg_citations/graph/schema.py

from enum import Enum


class NodeType(str, Enum):
    PAPER = "paper"


class EdgeType(str, Enum):
    # Paper -> paper citation edges, created only for matched references
    PAPER_CITES_PAPER = "PAPER_CITES_PAPER"
