"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` (or ``chromadb.HttpClient`` when a
server URL is configured) to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.

Index schema, one entry per chunk:

    id         "{place}_{source}_{section}_{chunkIndex}_{ingested_ms}_{suffix}"
    document   chunk text
    embedding  pre-computed vector (ChromaDB never embeds anything itself)
    metadata   {place, source, section, url, chunkIndex, totalChunks}

Identifiers embed the ingestion time, so re-ingesting a page adds new
entries next to the old ones rather than replacing them.  Use
:meth:`ChromaDBProvider.delete_by_place` before re-ingesting when that
is not wanted.
"""

from __future__ import annotations

import hashlib
import os
import time
import uuid
from typing import Any
from urllib.parse import urlparse

# Disable ChromaDB telemetry before importing chromadb.  A version mismatch
# between ChromaDB's bundled PostHog client and the installed one raises
# "capture() takes 1 positional argument but 3 were given".
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import (
    ChunkMetadata,
    CorpusStats,
    DocumentChunk,
    IndexedDocument,
    RetrievalFilters,
    RetrievalResult,
)
from src.utils.errors import IndexValidationError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_COLLECTION = "travel_guides"

# Rows per ChromaDB write / metadata page.  Keeps each call well under
# SQLite's bind-parameter ceiling.
_WRITE_BATCH = 500
_PAGE_SIZE = 5000


def generate_chunk_id(chunk: DocumentChunk, ingested_at_ms: int | None = None) -> str:
    """Return a fresh store identifier for *chunk*.

    The identifier is readable (place, source, section, index and
    ingestion time in milliseconds) and ends in a short random suffix so
    chunks inserted in the same millisecond never collide.
    """
    if ingested_at_ms is None:
        ingested_at_ms = int(time.time() * 1000)
    meta = chunk.metadata
    return (
        f"{meta.place}_{meta.source.value}_{meta.section.value}_"
        f"{meta.chunk_index}_{ingested_at_ms}_{uuid.uuid4().hex[:8]}"
    )


def content_chunk_id(chunk: DocumentChunk) -> str:
    """Return a deterministic identifier derived from *chunk*'s content.

    Two chunks with the same place, source, section, index and text get the
    same identifier.  Not used by :meth:`ChromaDBProvider.insert`; callers
    that want idempotent writes can key on it themselves.
    """
    meta = chunk.metadata
    digest = hashlib.sha256(
        "\x1f".join(
            (
                meta.place,
                meta.source.value,
                meta.section.value,
                str(meta.chunk_index),
                chunk.text,
            )
        ).encode("utf-8")
    ).hexdigest()
    return f"{meta.place}_{meta.source.value}_{meta.section.value}_{meta.chunk_index}_{digest[:16]}"


def build_indexed_documents(
    chunks: list[DocumentChunk],
    embeddings: list[list[float]],
    ingested_at_ms: int | None = None,
) -> list[IndexedDocument]:
    """Pair each chunk with its vector and a fresh :func:`generate_chunk_id`.

    Raises
    ------
    IndexValidationError
        If *chunks* and *embeddings* differ in length.
    """
    if len(chunks) != len(embeddings):
        raise IndexValidationError(
            message=(
                f"chunks and embeddings length mismatch: "
                f"{len(chunks)} != {len(embeddings)}"
            ),
            provider_name="chromadb",
        )
    if ingested_at_ms is None:
        ingested_at_ms = int(time.time() * 1000)
    return [
        IndexedDocument(
            id=generate_chunk_id(chunk, ingested_at_ms),
            chunk=chunk,
            embedding=embedding,
        )
        for chunk, embedding in zip(chunks, embeddings)
    ]


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    wayfinder always passes pre-computed embeddings, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default all-MiniLM-L6-v2 ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "wayfinder uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB.

    Construction does no I/O.  Call :meth:`open` (or use ``async with``)
    before the first insert or query, and :meth:`close` at shutdown.

    Parameters
    ----------
    persist_directory:
        On-disk location of the local collection.  Ignored when
        *host_url* is set.
    collection_name:
        Name of the ChromaDB collection (default ``"travel_guides"``).
    host_url:
        URL of a remote ChromaDB server, e.g. ``"http://localhost:8000"``.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = DEFAULT_COLLECTION,
        host_url: str | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._host_url = host_url or None
        self._client: Any = None
        self._collection: Any = None

    async def __aenter__(self) -> ChromaDBProvider:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._collection is not None

    @property
    def collection_name(self) -> str:
        return self._collection_name

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the client and get or create the collection.  Idempotent."""
        if self._collection is not None:
            return

        try:
            self._client = self._build_client()
            # Newer ChromaDB versions reject an embedding function that does
            # not match the one persisted with an existing collection.  Fall
            # back to whatever was persisted; embeddings are pre-computed
            # either way.
            try:
                self._collection = self._client.get_or_create_collection(
                    name=self._collection_name,
                    metadata={"hnsw:space": "cosine"},
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                self._collection = self._client.get_or_create_collection(
                    name=self._collection_name,
                    metadata={"hnsw:space": "cosine"},
                )
        except Exception as exc:
            self._client = None
            raise VectorStoreError(
                message=f"Failed to open ChromaDB collection '{self._collection_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_opened",
            collection=self._collection_name,
            mode="http" if self._host_url else "persistent",
            location=self._host_url or self._persist_directory,
        )

    async def close(self) -> None:
        """Drop the client reference.  Safe to call more than once."""
        if self._client is None:
            return
        self._collection = None
        self._client = None
        logger.info("chromadb_closed", collection=self._collection_name)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def insert(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Add pre-embedded chunks to the collection.

        Uses ``collection.add`` (never upsert); every call writes new
        entries.  Writes are paginated in slices of 500.
        """
        documents = build_indexed_documents(chunks, embeddings)
        collection = self._require_collection()
        if not documents:
            return 0

        try:
            total_stored = 0
            for start in range(0, len(documents), _WRITE_BATCH):
                batch = documents[start : start + _WRITE_BATCH]
                collection.add(
                    ids=[d.id for d in batch],
                    embeddings=[d.embedding for d in batch],
                    documents=[d.chunk.text for d in batch],
                    metadatas=[d.chunk.metadata.to_store_metadata() for d in batch],
                )
                total_stored += len(batch)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB insert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_insert",
            count=total_stored,
            place=chunks[0].metadata.place,
            source=chunks[0].metadata.source.value,
        )
        return total_stored

    async def query(
        self,
        query_vector: list[float],
        filters: RetrievalFilters | None = None,
        limit: int = 5,
    ) -> list[RetrievalResult]:
        """Return up to *limit* nearest chunks, closest first."""
        if limit < 1:
            raise IndexValidationError(
                message=f"query limit must be at least 1, got {limit}",
                provider_name=self.get_provider_name(),
            )
        collection = self._require_collection()
        where = filters.to_where() if filters is not None else None

        try:
            stored = collection.count()
            if stored == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_vector],
                "n_results": min(limit, stored),
                "include": ["documents", "metadatas", "distances"],
            }
            if where:
                kwargs["where"] = where

            raw = collection.query(**kwargs)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        documents = (raw.get("documents") or [[]])[0]
        if not documents:
            return []
        metadatas = (raw.get("metadatas") or [[{}] * len(documents)])[0]
        distances = (raw.get("distances") or [[0.0] * len(documents)])[0]

        results = [
            RetrievalResult(
                text=text,
                metadata=ChunkMetadata.from_store_metadata(dict(meta or {})),
                # Cosine distance of identical vectors can come back as -1e-7.
                distance=max(0.0, float(distance)),
            )
            for text, meta, distance in zip(documents, metadatas, distances, strict=True)
        ]
        results.sort(key=lambda r: r.distance)

        logger.debug(
            "chromadb_query",
            where=where,
            limit=limit,
            results_count=len(results),
            top_distance=results[0].distance,
        )
        return results[:limit]

    async def delete_by_place(self, place: str, source: str | None = None) -> int:
        """Delete every chunk for *place*, optionally restricted to *source*."""
        collection = self._require_collection()
        where: dict[str, Any] = {"place": place}
        if source is not None:
            where = {"$and": [{"place": place}, {"source": str(source)}]}

        try:
            existing = collection.get(where=where, include=["metadatas"])
            ids = existing["ids"] or []
            if ids:
                collection.delete(ids=ids)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_by_place failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_place", place=place, source=source, deleted_count=len(ids))
        return len(ids)

    async def count(self) -> int:
        collection = self._require_collection()
        try:
            return int(collection.count())
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_stats(self) -> CorpusStats:
        """Return aggregate statistics about the corpus.

        Metadata is fetched in 5K-row pages to stay under SQLite's
        "too many SQL variables" limit on large collections.
        """
        collection = self._require_collection()
        try:
            current_count = collection.count()
            places: set[str] = set()
            by_source: dict[str, int] = {}
            by_section: dict[str, int] = {}

            for offset in range(0, current_count, _PAGE_SIZE):
                page = collection.get(include=["metadatas"], limit=_PAGE_SIZE, offset=offset)
                for meta in page["metadatas"] or []:
                    places.add(str(meta.get("place", "")))
                    source = str(meta.get("source", "unknown"))
                    section = str(meta.get("section", "Other"))
                    by_source[source] = by_source.get(source, 0) + 1
                    by_section[section] = by_section.get(section, 0) + 1
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return CorpusStats(
            total_chunks=current_count,
            places=sorted(p for p in places if p),
            chunks_by_source=by_source,
            chunks_by_section=by_section,
        )

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the collection is open and answers a count."""
        if self._collection is None:
            return False
        try:
            self._collection.count()
            return True
        except Exception:  # noqa: BLE001
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_client(self) -> Any:
        settings = chromadb.config.Settings(anonymized_telemetry=False)
        if self._host_url:
            parsed = urlparse(self._host_url)
            ssl = parsed.scheme == "https"
            return chromadb.HttpClient(
                host=parsed.hostname or "localhost",
                port=parsed.port or (443 if ssl else 8000),
                ssl=ssl,
                settings=settings,
            )
        return chromadb.PersistentClient(path=self._persist_directory, settings=settings)

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise VectorStoreError(
                message="ChromaDB collection is not open; call open() first",
                provider_name=self.get_provider_name(),
            )
        return self._collection
