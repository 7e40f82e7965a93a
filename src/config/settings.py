"""Application settings loaded from environment variables via pydantic-settings.

Configuration is read from two sources, in priority order:

  1. **Environment variables** -- e.g. ``CHUNK_SIZE=1500`` (always wins)
  2. **.env file** -- key=value lines in the project root ``.env`` file

Field names map to upper-cased env vars automatically (``chunk_size`` ->
``CHUNK_SIZE``).  Defaults apply when neither source sets a value.

The chunking invariant ``CHUNK_OVERLAP < CHUNK_SIZE`` is enforced here, at
load time, so a misconfigured process fails on startup rather than
stalling inside the chunking loop.
"""

from __future__ import annotations

import json
from typing import Annotated, Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from src.models.rag import DEFAULT_TARGET_SECTIONS, CanonicalSection


class Settings(BaseSettings):
    """wayfinder application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Chunking / ingestion ===
    chunk_size: int = Field(default=2000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    embed_batch_size: int = Field(default=100, gt=0)
    # NoDecode keeps pydantic-settings from JSON-decoding the raw env
    # string so the validator below can accept "Safety,Eat" as well.
    target_sections: Annotated[list[CanonicalSection], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_TARGET_SECTIONS)
    )
    ingest_concurrency: int = Field(default=2, ge=1)
    fetch_timeout: float = Field(default=30.0, gt=0)

    # === Embeddings ===
    # Empty string = "not configured"; provider selection in main.py
    # skips providers with empty keys and falls through to the next.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    embedding_timeout: float = Field(default=60.0, gt=0)

    # === Vector store ===
    # A non-empty URL selects a remote Chroma server; otherwise the
    # collection persists locally under chromadb_persist_dir.
    chromadb_url: str = ""
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "travel_guides"

    # === Retrieval ===
    retrieval_top_k: int = Field(default=5, ge=1)
    retrieval_similarity_threshold: float = Field(default=0.4, ge=0.0)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    @field_validator("target_sections", mode="before")
    @classmethod
    def _parse_target_sections(cls, value: Any) -> Any:
        """Accept a JSON list or a comma-separated string of section labels."""
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                return json.loads(stripped)
            return [part.strip() for part in stripped.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def _check_chunk_overlap(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding provider names that have their endpoint configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
