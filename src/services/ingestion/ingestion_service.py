"""Orchestrator for the travel-guide ingestion pipeline.

Pipeline stages: **fetch -> normalize -> chunk -> embed -> store**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates four collaborators (page fetcher, chunker, embedding provider,
vector store) without any of them knowing about each other.

    1. IPageFetcher -- fetches one place's page from one source, split by heading
    2. TextChunker -- normalizes headings, keeps target sections, cuts windows
    3. IEmbeddingProvider -- embeds chunk texts in fixed-size batches
    4. IVectorStoreProvider -- persists chunks + vectors + citation metadata

Every (place, source) pair is independent: pairs run concurrently behind a
semaphore, and a failure in one pair is recorded on that pair's
:class:`~src.models.rag.IngestionResult` without touching the others.
:meth:`IngestionService.ingest` never raises for a pair-level failure.

All dependencies are injected via constructor (Dependency Injection), so
providers can be swapped (e.g. OpenAI -> Ollama) without changing this class.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from src.models.rag import IngestionResult, IngestionSummary, ParsedPage, RAGSource
from src.services.ingestion.chunker import TextChunker
from src.utils.concurrency import throttled_gather
from src.utils.errors import IndexValidationError

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.page_fetcher import IPageFetcher
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_EMBED_BATCH_SIZE = 100
DEFAULT_CONCURRENCY = 2

PAGE_NOT_FOUND = "Page not found"
NO_TARGET_SECTIONS = "No target sections found"


def resolve_source(source: RAGSource | str) -> RAGSource | str:
    """Return the :class:`RAGSource` named by *source*, or the cleaned text.

    Unknown identifiers are kept as lower-cased strings so the pair can be
    reported as failed instead of aborting the whole run.
    """
    if isinstance(source, RAGSource):
        return source
    key = str(source).strip().lower()
    try:
        return RAGSource(key)
    except ValueError:
        return key


def _source_label(source: RAGSource | str) -> str:
    return source.value if isinstance(source, RAGSource) else source


async def batch_embed(
    provider: IEmbeddingProvider,
    texts: list[str],
    batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
) -> list[list[float]]:
    """Embed *texts* in slices of *batch_size*, preserving order.

    Raises
    ------
    IndexValidationError
        If the provider returns a different number of vectors than it was
        given texts for any slice.
    """
    if batch_size < 1:
        raise IndexValidationError(
            message=f"embed batch size must be positive, got {batch_size}",
            provider_name=provider.get_provider_name(),
        )

    vectors: list[list[float]] = []
    for i in range(0, len(texts), batch_size):
        batch = texts[i : i + batch_size]
        embedded = await provider.embed(batch)
        if len(embedded) != len(batch):
            raise IndexValidationError(
                message=(
                    f"Embedding provider returned {len(embedded)} vectors "
                    f"for {len(batch)} texts"
                ),
                provider_name=provider.get_provider_name(),
            )
        vectors.extend(embedded)
    return vectors


class IngestionService:
    """Orchestrates fetch -> chunk -> embed -> store for place/source pairs.

    Parameters
    ----------
    fetcher:
        Fetches and section-splits guide pages.
    chunker:
        Selects target sections and splits them into overlapping windows.
    embedding_provider:
        Generates embedding vectors for chunk text.
    vector_store:
        Stores embedded chunks for semantic retrieval.  Must already be open.
    embed_batch_size:
        Maximum number of texts per embedding call.
    concurrency:
        Maximum number of pairs in flight at once.
    """

    def __init__(
        self,
        fetcher: IPageFetcher,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        embed_batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._fetcher = fetcher
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._embed_batch_size = embed_batch_size
        self._concurrency = max(1, concurrency)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        places: Iterable[str],
        sources: Iterable[RAGSource | str],
    ) -> list[IngestionResult]:
        """Ingest every (place, source) pair.

        Duplicate places or sources are dropped, keeping first occurrence.
        Results come back one per pair, ordered by place and then by
        source in the order given.

        Returns
        -------
        list[IngestionResult]
            Exactly ``len(places) * len(sources)`` results (after
            de-duplication).  Failed pairs have ``success=False`` and a
            non-empty ``error``.
        """
        unique_places = list(dict.fromkeys(p.strip() for p in places if p.strip()))
        unique_sources = list(dict.fromkeys(resolve_source(s) for s in sources))
        pairs = [(place, source) for place in unique_places for source in unique_sources]

        logger.info(
            "ingestion_run_started",
            places=len(unique_places),
            sources=[_source_label(s) for s in unique_sources],
            pairs=len(pairs),
        )

        semaphore = asyncio.Semaphore(self._concurrency)
        outcomes = await throttled_gather(
            [self.ingest_page(place, source) for place, source in pairs],
            semaphore=semaphore,
        )

        results: list[IngestionResult] = []
        for (place, source), outcome in zip(pairs, outcomes):
            if isinstance(outcome, BaseException):
                results.append(self._failed(place, source, str(outcome) or type(outcome).__name__))
            else:
                results.append(outcome)

        summary = self.summarize(results)
        logger.info(
            "ingestion_run_complete",
            succeeded=summary.succeeded,
            failed=summary.failed,
            total_chunks=summary.total_chunks,
        )
        return results

    async def ingest_page(self, place: str, source: RAGSource | str) -> IngestionResult:
        """Fetch one page and run it through chunk -> embed -> store.

        Never raises: an unknown source, a missing page, a fetch failure,
        an embedding failure or a store failure all produce a failed result.
        """
        start = time.monotonic()
        resolved = resolve_source(source)
        if not isinstance(resolved, RAGSource):
            error = f"Unknown source '{resolved}'"
            logger.warning(
                "ingestion_failed", place=place, source=resolved, stage="resolve", error=error
            )
            return self._failed(place, resolved, error, start=start)
        source = resolved

        try:
            page = await self._fetcher.fetch_page(place, source)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "ingestion_failed",
                place=place,
                source=source.value,
                stage="fetch",
                error=str(exc),
            )
            return self._failed(place, source, str(exc), start=start)

        if page is None:
            logger.info("page_not_found", place=place, source=source.value)
            return self._failed(place, source, PAGE_NOT_FOUND, start=start)

        logger.info(
            "page_fetched",
            place=place,
            source=source.value,
            url=page.url,
            sections=len(page.sections),
        )
        return await self._chunk_embed_store(page, start)

    async def ingest_pages(self, pages: Iterable[ParsedPage]) -> list[IngestionResult]:
        """Ingest already-parsed pages, skipping the fetch stage.

        Used for offline fixtures and re-ingesting cached pages.  Pages are
        processed concurrently under the same bound as :meth:`ingest`.
        """
        page_list = list(pages)
        semaphore = asyncio.Semaphore(self._concurrency)
        outcomes = await throttled_gather(
            [self._chunk_embed_store(page, time.monotonic()) for page in page_list],
            semaphore=semaphore,
        )

        results: list[IngestionResult] = []
        for page, outcome in zip(page_list, outcomes):
            if isinstance(outcome, BaseException):
                results.append(
                    self._failed(page.place, page.source, str(outcome), url=page.url)
                )
            else:
                results.append(outcome)
        return results

    @staticmethod
    def summarize(results: Iterable[IngestionResult]) -> IngestionSummary:
        """Aggregate *results* into success / failure / chunk totals."""
        return IngestionSummary(results=list(results))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _chunk_embed_store(self, page: ParsedPage, start: float) -> IngestionResult:
        """Run the chunk -> embed -> store stages shared by every entry point."""
        try:
            chunks = self._chunker.chunk_page(page)
            if not chunks:
                logger.info(
                    "ingestion_failed",
                    place=page.place,
                    source=page.source.value,
                    stage="chunk",
                    error=NO_TARGET_SECTIONS,
                )
                return self._failed(
                    page.place, page.source, NO_TARGET_SECTIONS, url=page.url, start=start
                )

            embeddings = await batch_embed(
                self._embedding_provider,
                [c.text for c in chunks],
                self._embed_batch_size,
            )
            stored = await self._vector_store.insert(chunks, embeddings)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "ingestion_failed",
                place=page.place,
                source=page.source.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return self._failed(page.place, page.source, str(exc), url=page.url, start=start)

        result = IngestionResult(
            place=page.place,
            source=page.source,
            url=page.url,
            sections_processed=self._chunker.count_target_sections(page),
            chunks_created=stored,
            success=True,
            ingestion_time=round(time.monotonic() - start, 3),
        )
        logger.info(
            "ingestion_complete",
            place=page.place,
            source=page.source.value,
            sections=result.sections_processed,
            chunks=result.chunks_created,
            time_s=result.ingestion_time,
        )
        return result

    @staticmethod
    def _failed(
        place: str,
        source: RAGSource | str,
        error: str,
        url: str = "",
        start: float | None = None,
    ) -> IngestionResult:
        """Return a failed :class:`IngestionResult` carrying *error*."""
        elapsed = time.monotonic() - start if start is not None else 0.0
        return IngestionResult(
            place=place,
            source=source,
            url=url,
            success=False,
            error=error or "Unknown ingestion error",
            ingestion_time=round(elapsed, 3),
        )
