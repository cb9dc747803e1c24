# tests/test_settings.py

import pytest
from pydantic import ValidationError

from kg_citations.config.settings import Settings, get_settings


def test_settings_paths_exist():
    settings = get_settings()

    assert settings.DATA_DIR.exists()
    assert settings.raw_papers_dir.exists()
    assert settings.graph_dir.exists()
    assert settings is get_settings()


def test_defaults():
    settings = Settings()

    assert settings.ENRICHERS == ["semantic-scholar", "openalex"]
    assert settings.TITLE_MATCH_CONFIDENCE == 0.8
    assert settings.MIN_TITLE_MATCH_LENGTH == 10
    assert settings.database_path == settings.DATA_DIR / "citations.sqlite3"
    assert settings.graph_path.name == "citations.gpickle"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("KGCITE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("KGCITE_ENRICHERS", '["openalex"]')
    monkeypatch.setenv("KGCITE_GROBID_ENABLED", "false")
    monkeypatch.setenv("KGCITE_SEMANTIC_SCHOLAR_API_KEY", "secret")

    settings = Settings()

    assert settings.DATA_DIR == tmp_path
    assert settings.ENRICHERS == ["openalex"]
    assert settings.GROBID_ENABLED is False
    assert settings.SEMANTIC_SCHOLAR_API_KEY.get_secret_value() == "secret"
    assert "secret" not in repr(settings)


@pytest.mark.parametrize("value", ["1.0", "0", "1.2"])
def test_title_confidence_must_be_sub_unity(monkeypatch, value):
    monkeypatch.setenv("KGCITE_TITLE_MATCH_CONFIDENCE", value)
    with pytest.raises(ValidationError):
        Settings()
