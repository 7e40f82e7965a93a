"""Unit tests for environment-driven Settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.config.settings import Settings
from src.models.rag import CanonicalSection


class TestDefaults:
    def test_chunking_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.chunk_size == 2000
        assert settings.chunk_overlap == 200
        assert settings.embed_batch_size == 100
        assert set(settings.target_sections) == {
            CanonicalSection.SAFETY,
            CanonicalSection.EAT,
            CanonicalSection.GET_AROUND,
            CanonicalSection.WEATHER,
        }

    def test_retrieval_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.retrieval_top_k == 5
        assert settings.retrieval_similarity_threshold == 0.4
        assert settings.chromadb_collection == "travel_guides"


class TestEnvironment:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "1500")
        monkeypatch.setenv("CHUNK_OVERLAP", "150")
        monkeypatch.setenv("CHROMADB_URL", "http://chroma:8000")

        settings = Settings(_env_file=None)

        assert settings.chunk_size == 1500
        assert settings.chunk_overlap == 150
        assert settings.chromadb_url == "http://chroma:8000"

    def test_target_sections_comma_separated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TARGET_SECTIONS", "Safety, Get Around")
        settings = Settings(_env_file=None)
        assert settings.target_sections == [CanonicalSection.SAFETY, CanonicalSection.GET_AROUND]

    def test_target_sections_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TARGET_SECTIONS", '["Eat", "Sleep"]')
        settings = Settings(_env_file=None)
        assert settings.target_sections == [CanonicalSection.EAT, CanonicalSection.SLEEP]

    def test_unknown_target_section_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TARGET_SECTIONS", "Nightlife")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestValidation:
    def test_overlap_must_be_below_size(self) -> None:
        with pytest.raises(ValidationError, match="chunk_overlap"):
            Settings(_env_file=None, chunk_size=100, chunk_overlap=100)

    def test_non_positive_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, chunk_size=0, chunk_overlap=0)

    def test_available_embedding_providers(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="sk-x", ollama_base_url="")
        assert settings.get_available_embedding_providers() == ["openai"]
