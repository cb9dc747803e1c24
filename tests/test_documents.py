# tests/test_documents.py

import pytest

from kg_citations.documents import DocumentNotFoundError, FileDocumentSource


def test_get_bytes_reads_owner_content_pdf(tmp_path):
    (tmp_path / "alice").mkdir()
    (tmp_path / "alice" / "p1.pdf").write_bytes(b"%PDF-1.4")

    source = FileDocumentSource(tmp_path)

    assert source.get_bytes("alice", "p1") == b"%PDF-1.4"


def test_missing_document(tmp_path):
    with pytest.raises(DocumentNotFoundError) as excinfo:
        FileDocumentSource(tmp_path).get_bytes("alice", "nope")
    assert excinfo.value.content_id == "nope"


def test_paths_outside_base_dir_are_not_found(tmp_path):
    base = tmp_path / "papers"
    base.mkdir()
    (tmp_path / "secret.pdf").write_bytes(b"x")

    with pytest.raises(DocumentNotFoundError):
        FileDocumentSource(base).get_bytes("..", "secret")
