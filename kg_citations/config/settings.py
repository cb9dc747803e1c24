from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
        env_prefix="KGCITE_",
    )

    # ------------------------------------------------------------------
    # Core paths / stores
    # ------------------------------------------------------------------
    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Base data directory for raw PDFs, the citation database and graph snapshots.",
    )

    DATABASE_PATH: Optional[Path] = Field(
        default=None,
        description=(
            "SQLite file holding the corpus index and extracted citations. "
            "Defaults to DATA_DIR/citations.sqlite3."
        ),
    )

    GRAPH_DEFAULT_NAME: str = Field(
        default="citations",
        description="Default graph name for data/graph/{name}.gpickle",
    )

    # ------------------------------------------------------------------
    # Structural extractor (GROBID)
    # ------------------------------------------------------------------
    GROBID_URL: str = Field(
        default="http://localhost:8070",
        description="Base URL of the running Grobid service.",
    )

    GROBID_ENABLED: bool = Field(
        default=True,
        description="If False, the structural extractor reports itself unavailable.",
    )

    GROBID_TIMEOUT: int = Field(
        default=60,
        description="Timeout in seconds for a single Grobid request.",
    )

    # ------------------------------------------------------------------
    # Enrichers
    # ------------------------------------------------------------------
    ENRICHERS: List[str] = Field(
        default_factory=lambda: ["semantic-scholar", "openalex"],
        description=(
            "Enrichers to consult, in priority order. The order decides which "
            "copy of a duplicated reference survives deduplication."
        ),
    )

    SEMANTIC_SCHOLAR_URL: str = Field(
        default="https://api.semanticscholar.org/graph/v1",
        description="Semantic Scholar Graph API base URL.",
    )

    SEMANTIC_SCHOLAR_API_KEY: Optional[SecretStr] = Field(
        default=None,
        description="Optional API key sent as x-api-key for higher rate limits.",
    )

    SEMANTIC_SCHOLAR_MIN_INTERVAL: float = Field(
        default=3.0,
        description="Minimum seconds between Semantic Scholar requests (public limit is 100 per 5 minutes).",
    )

    OPENALEX_URL: str = Field(
        default="https://api.openalex.org",
        description="OpenAlex API base URL.",
    )

    OPENALEX_MAILTO: Optional[str] = Field(
        default=None,
        description="Contact e-mail passed as mailto= to join the OpenAlex polite pool.",
    )

    OPENALEX_MIN_INTERVAL: float = Field(
        default=0.1,
        description="Minimum seconds between OpenAlex requests.",
    )

    CROSSREF_ENABLED: bool = Field(
        default=True,
        description="Back-fill missing title, year and venue of cited DOIs from Crossref before matching.",
    )

    CROSSREF_URL: str = Field(
        default="https://api.crossref.org",
        description="Crossref REST API base URL.",
    )

    CROSSREF_MAILTO: Optional[str] = Field(
        default=None,
        description="Contact e-mail sent in the User-Agent and as mailto= for the Crossref polite pool.",
    )

    CROSSREF_MIN_INTERVAL: float = Field(
        default=0.05,
        description="Minimum seconds between Crossref requests.",
    )

    ENRICHER_TIMEOUT: int = Field(
        default=30,
        description="Timeout in seconds for a single enricher HTTP request.",
    )

    ENRICHER_MAX_REFERENCES: int = Field(
        default=1000,
        description="Upper bound on references drained from one enricher for one paper.",
    )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    TITLE_MATCH_CONFIDENCE: float = Field(
        default=0.8,
        description="Confidence assigned to normalized-title matches. Must be below 1.0.",
    )

    MIN_TITLE_MATCH_LENGTH: int = Field(
        default=10,
        description="Normalized titles shorter than this are never used for corpus lookup.",
    )

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------
    SOURCE_TIMEOUT_SECONDS: float = Field(
        default=180.0,
        description="Upper bound on one source's contribution; a timed-out source contributes nothing.",
    )

    PARALLEL_SOURCES: bool = Field(
        default=True,
        description="Query the structural extractor and enrichers concurrently.",
    )

    BATCH_SIZE: int = Field(
        default=10,
        description="Documents per batch for batch extraction.",
    )

    BATCH_DELAY_SECONDS: float = Field(
        default=2.0,
        description="Pause between batches for batch extraction.",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level used by the CLI.",
    )

    @field_validator("TITLE_MATCH_CONFIDENCE")
    @classmethod
    def _title_confidence_below_one(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError("TITLE_MATCH_CONFIDENCE must lie strictly between 0 and 1")
        return value

    # ------------------------------------------------------------------
    # Convenience derived paths
    # ------------------------------------------------------------------
    @property
    def raw_dir(self) -> Path:
        return self.DATA_DIR / "raw"

    @property
    def raw_papers_dir(self) -> Path:
        return self.raw_dir / "papers"

    @property
    def graph_dir(self) -> Path:
        return self.DATA_DIR / "graph"

    @property
    def graph_path(self) -> Path:
        return self.graph_dir / f"{self.GRAPH_DEFAULT_NAME}.gpickle"

    @property
    def database_path(self) -> Path:
        if self.DATABASE_PATH is not None:
            return self.DATABASE_PATH
        return self.DATA_DIR / "citations.sqlite3"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Singleton-style accessor so we only construct Settings once and
    ensure directories exist on first access.
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        _settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
        _settings.raw_papers_dir.mkdir(parents=True, exist_ok=True)
        _settings.graph_dir.mkdir(parents=True, exist_ok=True)

    return _settings


settings = get_settings()
