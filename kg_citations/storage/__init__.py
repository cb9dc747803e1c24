from .database import Database, PersistenceError
from .corpus_index import CorpusIndex, IndexedDocument
from .citation_store import CitationStore

__all__ = [
    "Database",
    "PersistenceError",
    "CorpusIndex",
    "IndexedDocument",
    "CitationStore",
]
