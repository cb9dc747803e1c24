from .normalize import dedup_key, merge_references, normalize_doi, normalize_title
from .matcher import CorpusMatcher

__all__ = [
    "CorpusMatcher",
    "dedup_key",
    "merge_references",
    "normalize_doi",
    "normalize_title",
]
