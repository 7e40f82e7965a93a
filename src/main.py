"""wayfinder composition root.

Wires together the page fetcher, chunker, embedding provider, vector store,
ingestion service and retrieval layer via dependency injection.  Nothing
here runs at import time: callers build components from a
:class:`~src.config.settings.Settings` instance and drive their lifecycle
through :func:`rag_runtime`.

    async with rag_runtime(Settings()) as rag:
        results = await rag.ingestion.ingest(["Jaipur"], ["wikivoyage"])
        bundle = await rag.retriever.retrieve("Is it safe at night?", place="Jaipur")
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.fetcher.wikimedia_fetcher import WikimediaPageFetcher
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.citation_service import CitationService
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.retrieval.query_engine import QueryEngine
from src.services.retrieval.retriever import Retriever
from src.utils.errors import ConfigurationError

_logger = structlog.get_logger(logger_name=__name__)


@dataclass
class RAGComponents:
    """Every constructed collaborator, ready for :func:`rag_runtime` to open."""

    settings: Settings
    fetcher: IPageFetcher
    chunker: TextChunker
    embedding_provider: IEmbeddingProvider
    vector_store: IVectorStoreProvider
    ingestion: IngestionService
    query_engine: QueryEngine
    retriever: Retriever
    citations: CitationService


# ---------------------------------------------------------------------------
# Embedding provider selection
# ---------------------------------------------------------------------------


def build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the first available embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) ->
              Nomic/Ollama (if reachable).

    Raises
    ------
    ConfigurationError
        If no embedding provider is available.
    """
    if app_settings.openai_api_key:
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    provider = NomicEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    raise ConfigurationError(
        message=(
            "No embedding provider available: set OPENAI_API_KEY or run Ollama "
            f"at {app_settings.ollama_base_url}"
        ),
        provider_name="embedding",
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    embedding_provider: IEmbeddingProvider | None = None,
    fetcher: IPageFetcher | None = None,
    vector_store: IVectorStoreProvider | None = None,
) -> RAGComponents:
    """Construct every provider and service from *app_settings*.

    Any of the three external collaborators may be passed in to replace
    the configured one (tests pass in-memory fakes).  No I/O happens here;
    the vector store is opened by :func:`rag_runtime`.

    Raises
    ------
    ConfigurationError
        If chunking settings are inconsistent or no embedding provider
        is available.
    """
    embedding_provider = embedding_provider or build_embedding_provider(app_settings)
    fetcher = fetcher or WikimediaPageFetcher(timeout=app_settings.fetch_timeout)
    vector_store = vector_store or ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        host_url=app_settings.chromadb_url or None,
    )

    chunker = TextChunker(
        chunk_size=app_settings.chunk_size,
        overlap=app_settings.chunk_overlap,
        target_sections=app_settings.target_sections,
    )
    ingestion = IngestionService(
        fetcher=fetcher,
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        embed_batch_size=app_settings.embed_batch_size,
        concurrency=app_settings.ingest_concurrency,
    )
    citations = CitationService()
    query_engine = QueryEngine(vector_store)
    retriever = Retriever(
        embedding_provider=embedding_provider,
        query_engine=query_engine,
        top_k=app_settings.retrieval_top_k,
        similarity_threshold=app_settings.retrieval_similarity_threshold,
        citation_service=citations,
    )

    _logger.info(
        "components_built",
        embedding_provider=embedding_provider.get_provider_name(),
        vector_store=vector_store.get_provider_name(),
        fetcher=fetcher.get_provider_name(),
        chunk_size=app_settings.chunk_size,
        chunk_overlap=app_settings.chunk_overlap,
    )
    return RAGComponents(
        settings=app_settings,
        fetcher=fetcher,
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        ingestion=ingestion,
        query_engine=query_engine,
        retriever=retriever,
        citations=citations,
    )


# ---------------------------------------------------------------------------
# Runtime lifecycle (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def rag_runtime(
    app_settings: Settings,
    components: RAGComponents | None = None,
) -> AsyncIterator[RAGComponents]:
    """Open the vector store on entry; close store and fetcher on exit."""
    components = components or build_components(app_settings)
    await components.vector_store.open()
    _logger.info("rag_runtime_started", environment=app_settings.app_env)
    try:
        yield components
    finally:
        await components.vector_store.close()
        await components.fetcher.aclose()
        _logger.info("rag_runtime_stopped")
