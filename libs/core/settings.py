"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_postgres_uri_from_env() -> str:
    """Build Postgres URI from component env vars if POSTGRES_URI is not set.

    Keeps a single source of truth for DB name via .env variables
    (POSTGRES_USER/PASSWORD/HOST/PORT/DB). If POSTGRES_URI is provided, it
    will override this default.
    """
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    host = os.getenv("POSTGRES_HOST", "postgres")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "smartnotes")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"


def _default_prompts_path() -> Path:
    # libs/core/settings.py -> project_root/config/prompts.yaml
    return Path(__file__).resolve().parents[2] / "config" / "prompts.yaml"


class Settings(BaseSettings):
    """Runtime settings for the application."""

    replicate_api_token: str = Field(default="")
    # Text generation models (Replicate refs)
    summary_model: str = Field(default="openai/gpt-4o-mini")
    tags_model: str = Field(default="openai/gpt-4o-mini")
    # Embeddings configuration
    embeddings_model: str = Field(default="nomic-ai/nomic-embed-text-v1.5")
    embedding_dim: int = Field(default=768)
    # Optional direct URI override (env: POSTGRES_URI). If not set, a default
    # is assembled from POSTGRES_USER/PASSWORD/HOST/PORT/DB.
    postgres_uri: str = Field(default_factory=_default_postgres_uri_from_env)
    prompts_path: Path = Field(default_factory=_default_prompts_path)
    log_level: str = Field(default="INFO")
    # Log full model request payloads at INFO instead of DEBUG
    llm_log_payloads: bool = Field(default=False)
    service_name: str = Field(default="api")
    environment: str = Field(default="development")

    # Enrichment admission and chunking policy
    min_content_chars: int = Field(default=10, ge=0)
    max_words: int = Field(default=5000, ge=1)
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=150, ge=0)

    # Upper bounds for a single upstream model call, in seconds
    llm_timeout_seconds: float = Field(default=30.0, gt=0)
    embedding_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Be lenient with env var names (e.g., POSTGRES_URI vs postgres_uri)
        case_sensitive=False,
        # Allow environment variables that don't have a matching field.
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_chunking(self) -> "Settings":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return application settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
