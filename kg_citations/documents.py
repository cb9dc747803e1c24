# kg_citations/documents.py

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Union

from kg_citations.config.settings import settings


class DocumentNotFoundError(LookupError):
    def __init__(self, owner_id: str, content_id: str) -> None:
        super().__init__(f"No document {content_id!r} for owner {owner_id!r}")
        self.owner_id = owner_id
        self.content_id = content_id


class DocumentSource(Protocol):
    """
    Read-only supplier of document bytes, addressed by owner and content id.
    """

    def get_bytes(self, owner_id: str, content_id: str) -> bytes:
        ...


class FileDocumentSource:
    """
    Document source backed by the raw papers directory:

        {base_dir}/{owner_id}/{content_id}.pdf

    Ids that would resolve outside `base_dir` are treated as not found.
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else settings.raw_papers_dir

    def path_for(self, owner_id: str, content_id: str) -> Path:
        return self.base_dir / owner_id / f"{content_id}.pdf"

    def get_bytes(self, owner_id: str, content_id: str) -> bytes:
        path = self.path_for(owner_id, content_id)

        root = self.base_dir.resolve()
        resolved = path.resolve()
        if root not in resolved.parents or not resolved.is_file():
            raise DocumentNotFoundError(owner_id, content_id)

        return resolved.read_bytes()
