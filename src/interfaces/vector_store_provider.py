"""Abstract base class for vector-store service providers.

Defines the index schema and the insert / query contract the RAG layer
needs.  The nearest-neighbour algorithm itself (exact or approximate) is
the store's business; this interface only fixes request and response
shapes and the filter semantics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import CorpusStats, DocumentChunk, RetrievalFilters, RetrievalResult


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector stores holding travel-guide chunks.

    Every stored entry is keyed by a generated identifier and carries the
    chunk text, its embedding, and metadata with exactly the keys
    ``place``, ``source``, ``section``, ``url``, ``chunkIndex`` and
    ``totalChunks``.

    Stores are constructed explicitly and have an explicit lifecycle:
    :meth:`open` before first use, :meth:`close` at shutdown.
    """

    @abstractmethod
    async def open(self) -> None:
        """Connect to the backend and create the collection if needed."""

    @abstractmethod
    async def close(self) -> None:
        """Release the backend connection.  Safe to call more than once."""

    @abstractmethod
    async def insert(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Store pre-embedded chunks.

        Parameters
        ----------
        chunks:
            The chunks to store.
        embeddings:
            Embedding vectors corresponding positionally to *chunks*.

        Returns
        -------
        int
            The number of chunks stored.

        Raises
        ------
        src.utils.errors.IndexValidationError
            If ``len(chunks) != len(embeddings)``.  Nothing is written.
        src.utils.errors.VectorStoreError
            If the backend rejects the write.
        """

    @abstractmethod
    async def query(
        self,
        query_vector: list[float],
        filters: RetrievalFilters | None = None,
        limit: int = 5,
    ) -> list[RetrievalResult]:
        """Return the stored chunks nearest to *query_vector*.

        Results are ordered by ascending distance and truncated to *limit*.
        An empty store, or a filter that matches nothing, yields ``[]``.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the backend query fails.
        """

    @abstractmethod
    async def delete_by_place(self, place: str, source: str | None = None) -> int:
        """Delete every chunk for *place* (optionally only from *source*).

        Returns the number of chunks deleted.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored chunks."""

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        """Return aggregate statistics about the stored corpus."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is open and reachable."""
