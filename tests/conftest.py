"""Shared pytest fixtures for the wayfinder test suite."""

from __future__ import annotations

import hashlib
import math
import re
from typing import Any

import pytest
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import (
    ChunkMetadata,
    CorpusStats,
    DocumentChunk,
    ParsedPage,
    RAGSource,
    RetrievalFilters,
    RetrievalResult,
)
from src.utils.errors import FetchError, IndexValidationError, VectorStoreError

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _in_memory_structlog():
    """Send structlog output nowhere and never cache loggers.

    Cached loggers keep whatever stream was current when they were first
    used, which breaks once pytest swaps or closes its capture streams.
    """
    structlog.configure(
        processors=[structlog.processors.add_log_level],
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# RAG fixtures
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 128
_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic bag-of-words vector for *text*.

    Each lower-cased token is hashed (SHA-256) into one of *dim* buckets
    and the bucket counts are normalised to unit length, so texts sharing
    words have a high cosine similarity and identical texts have
    similarity 1.  Text without tokens maps to a fixed unit vector.
    """
    values = [0.0] * dim
    for token in _TOKEN_RE.findall(text.lower()):
        bucket = int.from_bytes(hashlib.sha256(token.encode("utf-8")).digest()[:4], "little")
        values[bucket % dim] += 1.0

    magnitude = math.sqrt(sum(v * v for v in values))
    if magnitude == 0.0:
        values[0] = 1.0
        return values
    return [v / magnitude for v in values]


def _cosine_distance(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=False))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return 1.0
    return max(0.0, 1.0 - dot / norm)


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store with the same contract as the ChromaDB adapter.

    Exact cosine-distance search over a dict; filters are conjunctive
    equality on ``place`` and ``section``.
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[DocumentChunk, list[float]]] = {}
        self._counter = 0
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def insert(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        if len(chunks) != len(embeddings):
            raise IndexValidationError(
                message=f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}",
                provider_name="mock-store",
            )
        for chunk, vector in zip(chunks, embeddings, strict=True):
            self._counter += 1
            self._store[f"mock-{self._counter}"] = (chunk, vector)
        return len(chunks)

    async def query(
        self,
        query_vector: list[float],
        filters: RetrievalFilters | None = None,
        limit: int = 5,
    ) -> list[RetrievalResult]:
        if limit < 1:
            raise IndexValidationError(message="limit must be at least 1", provider_name="mock-store")

        results: list[RetrievalResult] = []
        for chunk, vector in self._store.values():
            meta = chunk.metadata
            if filters is not None:
                if filters.place is not None and meta.place != filters.place:
                    continue
                if filters.section is not None and meta.section != filters.section:
                    continue
            results.append(
                RetrievalResult(
                    text=chunk.text,
                    metadata=meta,
                    distance=_cosine_distance(query_vector, vector),
                )
            )

        results.sort(key=lambda r: r.distance)
        return results[:limit]

    async def delete_by_place(self, place: str, source: str | None = None) -> int:
        doomed = [
            key
            for key, (chunk, _) in self._store.items()
            if chunk.metadata.place == place
            and (source is None or chunk.metadata.source.value == source)
        ]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    async def count(self) -> int:
        return len(self._store)

    async def get_stats(self) -> CorpusStats:
        by_source: dict[str, int] = {}
        by_section: dict[str, int] = {}
        places: set[str] = set()
        for chunk, _ in self._store.values():
            meta = chunk.metadata
            places.add(meta.place)
            by_source[meta.source.value] = by_source.get(meta.source.value, 0) + 1
            by_section[meta.section.value] = by_section.get(meta.section.value, 0) + 1
        return CorpusStats(
            total_chunks=len(self._store),
            places=sorted(places),
            chunks_by_source=by_source,
            chunks_by_section=by_section,
        )

    def get_provider_name(self) -> str:
        return "mock-store"

    def is_available(self) -> bool:
        return True

    @property
    def chunks(self) -> list[DocumentChunk]:
        return [chunk for chunk, _ in self._store.values()]


class FailingVectorStore(MockVectorStore):
    """Vector store whose writes and reads always fail."""

    async def insert(self, chunks: list[DocumentChunk], embeddings: list[list[float]]) -> int:
        raise VectorStoreError(message="store unavailable", provider_name="mock-store")

    async def query(
        self,
        query_vector: list[float],
        filters: RetrievalFilters | None = None,
        limit: int = 5,
    ) -> list[RetrievalResult]:
        raise VectorStoreError(message="store unavailable", provider_name="mock-store")


class MockPageFetcher(IPageFetcher):
    """Page fetcher serving canned pages.

    ``pages`` maps ``(place, source)`` to a :class:`ParsedPage`; missing
    pairs are not-found.  Pairs in ``failures`` raise :class:`FetchError`.
    """

    def __init__(
        self,
        pages: dict[tuple[str, RAGSource], ParsedPage] | None = None,
        failures: set[tuple[str, RAGSource]] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.failures = failures or set()
        self.requests: list[tuple[str, RAGSource]] = []
        self.closed = False

    async def fetch_page(self, place: str, source: RAGSource) -> ParsedPage | None:
        self.requests.append((place, source))
        if (place, source) in self.failures:
            raise FetchError(message=f"connection reset fetching {place}", provider_name="mock-fetcher")
        return self.pages.get((place, source))

    async def aclose(self) -> None:
        self.closed = True

    def get_provider_name(self) -> str:
        return "mock-fetcher"


def make_page(
    place: str = "Testville",
    source: RAGSource = RAGSource.WIKIVOYAGE,
    sections: dict[str, str] | None = None,
) -> ParsedPage:
    """Build a :class:`ParsedPage` with a URL derived from place and source."""
    return ParsedPage(
        place=place,
        source=source,
        url=f"https://en.{source.value}.org/wiki/{place.replace(' ', '_')}",
        sections=sections or {},
    )


def make_chunk(
    text: str,
    place: str = "Testville",
    source: RAGSource = RAGSource.WIKIVOYAGE,
    section: str = "Safety",
    chunk_index: int = 0,
    total_chunks: int = 1,
) -> DocumentChunk:
    """Build a :class:`DocumentChunk` with sensible metadata defaults."""
    return DocumentChunk(
        text=text,
        metadata=ChunkMetadata(
            place=place,
            source=source,
            section=section,
            url=f"https://en.{source.value}.org/wiki/{place}",
            chunk_index=chunk_index,
            total_chunks=total_chunks,
        ),
    )


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Return a deterministic in-memory embedding provider."""
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    """Return an empty in-memory vector store."""
    return MockVectorStore()


@pytest.fixture
def testville_page() -> ParsedPage:
    """Wikivoyage-style page with one long target section and one short non-target one."""
    sentence = "Street food stalls near the clock tower serve spicy lentil fritters. "
    eat = (sentence * ((5000 // len(sentence)) + 1))[:5000]
    return make_page(
        sections={
            "Eat": eat,
            "Sleep": "Guesthouses line the river road.",
        }
    )


@pytest.fixture
def mock_settings(tmp_path: Any) -> Settings:
    """Return Settings with dummy keys and a temporary ChromaDB directory."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test-key",
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        app_env="test",
    )
