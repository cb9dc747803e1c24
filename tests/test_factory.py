# tests/test_factory.py

from kg_citations.config.settings import Settings
from kg_citations.enrichers import CrossrefClient
from kg_citations.extraction import ExtractionOptions, build_extraction_service
from kg_citations.models import ReferenceSource
from kg_citations.storage import IndexedDocument


def test_build_extraction_service_from_settings(tmp_path):
    config = Settings(
        DATA_DIR=tmp_path,
        ENRICHERS=["openalex"],
        GROBID_ENABLED=False,
        TITLE_MATCH_CONFIDENCE=0.6,
        PARALLEL_SOURCES=False,
        CROSSREF_ENABLED=False,
    )

    service = build_extraction_service(config, enrichers=[])

    assert service.source_order == [ReferenceSource.GROBID]
    assert service.matcher.title_confidence == 0.6
    assert service.parallel is False
    assert service.metadata_resolver is None
    assert service.citation_graph.path == config.graph_path

    service.corpus.add_document(IndexedDocument(uri="P1", owner_id="o", content_id="c"))
    result = service.extract_citations("P1", ExtractionOptions(owner_id="o", content_id="c"))

    # GROBID disabled: the run degrades instead of failing
    assert result.success is True
    assert result.source_counts == {"grobid": 0}
    assert (tmp_path / "citations.sqlite3").exists()
    assert config.graph_path.exists()


def test_build_extraction_service_uses_configured_enrichers(tmp_path):
    config = Settings(DATA_DIR=tmp_path, ENRICHERS=["openalex", "semantic-scholar"])

    service = build_extraction_service(config)

    assert service.source_order == [
        ReferenceSource.GROBID,
        ReferenceSource.OPENALEX,
        ReferenceSource.SEMANTIC_SCHOLAR,
    ]
    assert isinstance(service.metadata_resolver, CrossrefClient)
    assert service.metadata_resolver.base_url == config.CROSSREF_URL
