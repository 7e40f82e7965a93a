"""Public interface definitions for the RAG pipeline's external collaborators.

Every external service -- page fetching, embedding, vector storage -- is
accessed through the abstract base classes defined in this package.
Concrete adapters implement these interfaces and are injected at runtime,
so tests can swap in in-memory fakes without touching the services.

CONCRETE PROVIDER MAP:
    Interface               ->  Concrete implementations (in src/providers/)
    ------------------------------------------------------------------
    IPageFetcher            ->  WikimediaPageFetcher
    IEmbeddingProvider      ->  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    IVectorStoreProvider    ->  ChromaDBProvider
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "IPageFetcher",
    "IVectorStoreProvider",
]
