"""
Citation extraction and citation-graph indexing for a local paper corpus.
"""

__version__ = "0.1.0"
