"""Integration tests for the ingestion pipeline.

Drives IngestionService end to end (fetch -> chunk -> embed -> store)
with the in-memory fakes from conftest, then once more against a real
ChromaDB collection in a temporary directory.
"""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from src.models.rag import CanonicalSection, RAGSource
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import (
    NO_TARGET_SECTIONS,
    PAGE_NOT_FOUND,
    IngestionService,
    batch_embed,
)
from src.utils.errors import IndexValidationError
from tests.conftest import (
    FailingVectorStore,
    MockEmbeddingProvider,
    MockPageFetcher,
    MockVectorStore,
    make_page,
)

_SAFE_TEXT = "Keep valuables out of sight on crowded buses and avoid unlit lanes after dark."


def _service(
    fetcher: MockPageFetcher,
    store: MockVectorStore | None = None,
    embedder: MockEmbeddingProvider | None = None,
    **kwargs,
) -> IngestionService:
    return IngestionService(
        fetcher=fetcher,
        chunker=TextChunker(),
        embedding_provider=embedder or MockEmbeddingProvider(),
        vector_store=store or MockVectorStore(),
        **kwargs,
    )


# ======================================================================
# Single page
# ======================================================================


class TestIngestPage:
    @pytest.mark.asyncio
    async def test_testville(self, testville_page, mock_vector_store) -> None:
        fetcher = MockPageFetcher(pages={("Testville", RAGSource.WIKIVOYAGE): testville_page})
        service = _service(fetcher, store=mock_vector_store)

        result = await service.ingest_page("Testville", RAGSource.WIKIVOYAGE)

        assert result.success is True
        assert result.error is None
        assert result.sections_processed == 1
        assert result.chunks_created >= 2
        assert result.url == "https://en.wikivoyage.org/wiki/Testville"
        assert result.ingestion_time >= 0.0

        stored = mock_vector_store.chunks
        assert len(stored) == result.chunks_created
        assert {c.metadata.section for c in stored} == {CanonicalSection.EAT}
        assert [c.metadata.chunk_index for c in stored] == list(range(len(stored)))
        assert {c.metadata.total_chunks for c in stored} == {len(stored)}

    @pytest.mark.asyncio
    async def test_page_not_found(self, mock_vector_store) -> None:
        service = _service(MockPageFetcher(), store=mock_vector_store)

        result = await service.ingest_page("Atlantis", RAGSource.WIKIVOYAGE)

        assert result.success is False
        assert result.error == PAGE_NOT_FOUND
        assert result.url == ""
        assert await mock_vector_store.count() == 0

    @pytest.mark.asyncio
    async def test_no_target_sections(self, mock_vector_store) -> None:
        page = make_page(sections={"Sleep": "Guesthouses line the river road.", "See": "The fort."})
        fetcher = MockPageFetcher(pages={("Testville", RAGSource.WIKIVOYAGE): page})

        result = await _service(fetcher, store=mock_vector_store).ingest_page(
            "Testville", RAGSource.WIKIVOYAGE
        )

        assert result.success is False
        assert result.error == NO_TARGET_SECTIONS
        assert result.url == page.url
        assert await mock_vector_store.count() == 0

    @pytest.mark.asyncio
    async def test_fetch_error_recorded(self) -> None:
        fetcher = MockPageFetcher(failures={("Testville", RAGSource.WIKIPEDIA)})

        with capture_logs() as logs:
            result = await _service(fetcher).ingest_page("Testville", "wikipedia")

        assert result.success is False
        assert "connection reset" in (result.error or "")
        assert any(
            entry["event"] == "ingestion_failed" and entry.get("stage") == "fetch" for entry in logs
        )

    @pytest.mark.asyncio
    async def test_store_error_recorded(self, testville_page) -> None:
        fetcher = MockPageFetcher(pages={("Testville", RAGSource.WIKIVOYAGE): testville_page})

        result = await _service(fetcher, store=FailingVectorStore()).ingest_page(
            "Testville", RAGSource.WIKIVOYAGE
        )

        assert result.success is False
        assert "store unavailable" in (result.error or "")
        assert result.url == testville_page.url


# ======================================================================
# Many pairs
# ======================================================================


class TestIngestMany:
    @pytest.mark.asyncio
    async def test_one_result_per_pair(self, mock_vector_store) -> None:
        pages = {
            ("Jaipur", RAGSource.WIKIVOYAGE): make_page("Jaipur", sections={"Stay safe": _SAFE_TEXT}),
            ("Jaipur", RAGSource.WIKIPEDIA): make_page(
                "Jaipur", RAGSource.WIKIPEDIA, sections={"Climate": "Hot, semi-arid summers."}
            ),
            ("Delhi", RAGSource.WIKIVOYAGE): make_page("Delhi", sections={"Eat": "Chaat in Chandni Chowk."}),
        }
        fetcher = MockPageFetcher(pages=pages, failures={("Kyoto", RAGSource.WIKIPEDIA)})
        service = _service(fetcher, store=mock_vector_store, concurrency=3)

        results = await service.ingest(
            ["Jaipur", "Delhi", "Kyoto"], [RAGSource.WIKIVOYAGE, RAGSource.WIKIPEDIA]
        )

        assert [(r.place, r.source) for r in results] == [
            ("Jaipur", RAGSource.WIKIVOYAGE),
            ("Jaipur", RAGSource.WIKIPEDIA),
            ("Delhi", RAGSource.WIKIVOYAGE),
            ("Delhi", RAGSource.WIKIPEDIA),
            ("Kyoto", RAGSource.WIKIVOYAGE),
            ("Kyoto", RAGSource.WIKIPEDIA),
        ]
        summary = service.summarize(results)
        assert summary.succeeded == 3
        assert summary.failed == 3
        assert summary.total_chunks == 3
        assert all(r.error for r in results if not r.success)
        assert await mock_vector_store.count() == 3

    @pytest.mark.asyncio
    async def test_duplicates_dropped(self) -> None:
        fetcher = MockPageFetcher()
        results = await _service(fetcher).ingest(
            ["Jaipur", "Jaipur", " "], ["wikivoyage", RAGSource.WIKIVOYAGE]
        )
        assert len(results) == 1
        assert fetcher.requests == [("Jaipur", RAGSource.WIKIVOYAGE)]

    @pytest.mark.asyncio
    async def test_unknown_source_fails_only_its_pair(self, testville_page, mock_vector_store) -> None:
        fetcher = MockPageFetcher(pages={("Testville", RAGSource.WIKIVOYAGE): testville_page})
        service = _service(fetcher, store=mock_vector_store)

        results = await service.ingest(["Testville"], ["wikivoyage", "Wikitravel"])

        assert [(r.source_name, r.success) for r in results] == [
            ("wikivoyage", True),
            ("wikitravel", False),
        ]
        assert results[1].error == "Unknown source 'wikitravel'"
        assert fetcher.requests == [("Testville", RAGSource.WIKIVOYAGE)]

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failed_result(self, testville_page) -> None:
        class ExplodingFetcher(MockPageFetcher):
            async def fetch_page(self, place, source):
                raise KeyError("boom")

        results = await _service(ExplodingFetcher()).ingest(["Testville"], ["wikivoyage"])

        assert len(results) == 1
        assert results[0].success is False
        assert "boom" in (results[0].error or "")

    @pytest.mark.asyncio
    async def test_ingest_pages_skips_fetch(self, testville_page, mock_vector_store) -> None:
        fetcher = MockPageFetcher()
        service = _service(fetcher, store=mock_vector_store)

        results = await service.ingest_pages([testville_page])

        assert results[0].success is True
        assert fetcher.requests == []
        assert await mock_vector_store.count() == results[0].chunks_created


# ======================================================================
# Embedding batches
# ======================================================================


class TestBatchEmbed:
    @pytest.mark.asyncio
    async def test_batches_preserve_order(self) -> None:
        embedder = MockEmbeddingProvider()
        texts = [f"text number {i}" for i in range(7)]

        vectors = await batch_embed(embedder, texts, batch_size=3)

        assert [len(call) for call in embedder.calls] == [3, 3, 1]
        assert vectors == await embedder.embed(texts)

    @pytest.mark.asyncio
    async def test_service_uses_batch_size(self, testville_page) -> None:
        embedder = MockEmbeddingProvider()
        fetcher = MockPageFetcher(pages={("Testville", RAGSource.WIKIVOYAGE): testville_page})

        result = await _service(fetcher, embedder=embedder, embed_batch_size=1).ingest_page(
            "Testville", RAGSource.WIKIVOYAGE
        )

        assert len(embedder.calls) == result.chunks_created
        assert all(len(call) == 1 for call in embedder.calls)

    @pytest.mark.asyncio
    async def test_short_provider_response_rejected(self) -> None:
        class ShortEmbedder(MockEmbeddingProvider):
            async def embed(self, texts):
                return (await super().embed(texts))[:-1]

        with pytest.raises(IndexValidationError):
            await batch_embed(ShortEmbedder(), ["a", "b"], batch_size=10)

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self) -> None:
        with pytest.raises(IndexValidationError):
            await batch_embed(MockEmbeddingProvider(), ["a"], batch_size=0)


# ======================================================================
# Real ChromaDB
# ======================================================================


class TestIngestIntoChromaDB:
    @pytest.mark.asyncio
    async def test_testville_round_trip(self, testville_page, tmp_path) -> None:
        fetcher = MockPageFetcher(pages={("Testville", RAGSource.WIKIVOYAGE): testville_page})
        embedder = MockEmbeddingProvider()

        async with ChromaDBProvider(persist_directory=str(tmp_path / "chroma")) as store:
            service = IngestionService(
                fetcher=fetcher,
                chunker=TextChunker(),
                embedding_provider=embedder,
                vector_store=store,
            )
            results = await service.ingest(["Testville"], ["wikivoyage"])
            stats = await store.get_stats()

        assert results[0].success is True
        assert stats.total_chunks == results[0].chunks_created
        assert stats.places == ["Testville"]
        assert stats.chunks_by_section == {"Eat": results[0].chunks_created}
