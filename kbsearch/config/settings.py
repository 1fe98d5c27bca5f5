"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Embedding provider (OpenAI-compatible /embeddings endpoint)
    embedding_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("embedding_api_key", "openai_api_key"),
    )
    embedding_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-3-large"
    embedding_dimension: int = 1536
    embedding_timeout_seconds: float = 30.0

    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data/kbsearch.db")
    faiss_index_path: Path = Path("data/indices/faiss")

    # Search
    bulk_scan_limit: int = 2000
    keyword_candidate_limit: int = 500
    fast_path_oversample: int = 4

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
