"""Unit tests for QueryEngine and filter coercion."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import CanonicalSection, RetrievalFilters, RetrievalResult
from src.services.retrieval.query_engine import QueryEngine, coerce_filters
from src.utils.errors import IndexValidationError, VectorStoreError
from tests.conftest import MockEmbeddingProvider, MockVectorStore, make_chunk


async def _seeded_store() -> MockVectorStore:
    store = MockVectorStore()
    embedder = MockEmbeddingProvider()
    chunks = [
        make_chunk("Avoid unlicensed taxis at night near the station.", place="Jaipur", section="Safety"),
        make_chunk("Dal baati churma is served in thali restaurants.", place="Jaipur", section="Eat"),
        make_chunk("Pickpockets work crowded metro trains at night.", place="Delhi", section="Safety"),
        make_chunk("The metro is the fastest way across the city.", place="Delhi", section="Get Around"),
    ]
    await store.insert(chunks, await embedder.embed([c.text for c in chunks]))
    return store


class TestCoerceFilters:
    def test_none(self) -> None:
        assert coerce_filters(None) is None

    def test_passthrough(self) -> None:
        filters = RetrievalFilters(place="Jaipur")
        assert coerce_filters(filters) is filters

    def test_mapping(self) -> None:
        filters = coerce_filters({"place": " Jaipur ", "section": "Eat"})
        assert filters == RetrievalFilters(place="Jaipur", section=CanonicalSection.EAT)

    def test_blank_values_dropped(self) -> None:
        assert coerce_filters({"place": "", "section": "  "}) == RetrievalFilters()

    @pytest.mark.parametrize("raw", ["Get Around", "get_around", "GetAround", "GET_AROUND"])
    def test_section_spellings(self, raw: str) -> None:
        filters = coerce_filters({"section": raw})
        assert filters is not None
        assert filters.section is CanonicalSection.GET_AROUND

    @pytest.mark.parametrize("raw", ["Climate", "Theatre", "getting around", "Nightlife"])
    def test_non_canonical_section_rejected(self, raw: str) -> None:
        with pytest.raises(IndexValidationError, match="Unknown section"):
            coerce_filters({"section": raw})

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(IndexValidationError, match="source"):
            coerce_filters({"place": "Jaipur", "source": "wikipedia"})


class TestQueryEngine:
    @pytest.mark.asyncio
    async def test_closest_first(self) -> None:
        engine = QueryEngine(await _seeded_store())
        vector = await MockEmbeddingProvider().embed_single(
            "Avoid unlicensed taxis at night near the station."
        )

        results = await engine.query(vector, limit=4)

        assert results[0].text == "Avoid unlicensed taxis at night near the station."
        assert results[0].distance == pytest.approx(0.0, abs=1e-9)
        distances = [r.distance for r in results]
        assert distances == sorted(distances)

    @pytest.mark.asyncio
    async def test_limit_respected(self) -> None:
        engine = QueryEngine(await _seeded_store())
        vector = await MockEmbeddingProvider().embed_single("night")
        assert len(await engine.query(vector, limit=2)) == 2

    @pytest.mark.asyncio
    async def test_place_filter(self) -> None:
        engine = QueryEngine(await _seeded_store())
        vector = await MockEmbeddingProvider().embed_single("safety at night")

        results = await engine.query(vector, filters={"place": "Delhi"}, limit=10)

        assert len(results) == 2
        assert {r.metadata.place for r in results} == {"Delhi"}

    @pytest.mark.asyncio
    async def test_place_and_section_conjunctive(self) -> None:
        engine = QueryEngine(await _seeded_store())
        vector = await MockEmbeddingProvider().embed_single("safety at night")

        results = await engine.query(
            vector,
            filters=RetrievalFilters(place="Delhi", section=CanonicalSection.SAFETY),
            limit=10,
        )

        assert [r.text for r in results] == ["Pickpockets work crowded metro trains at night."]

    @pytest.mark.asyncio
    async def test_no_match_is_empty_list(self) -> None:
        engine = QueryEngine(await _seeded_store())
        vector = await MockEmbeddingProvider().embed_single("anything")
        assert await engine.query(vector, filters={"place": "Kyoto"}) == []

    @pytest.mark.asyncio
    async def test_empty_store(self) -> None:
        engine = QueryEngine(MockVectorStore())
        assert await engine.query([1.0, 0.0]) == []

    @pytest.mark.asyncio
    async def test_limit_below_one_rejected(self) -> None:
        engine = QueryEngine(MockVectorStore())
        with pytest.raises(IndexValidationError):
            await engine.query([1.0], limit=0)

    @pytest.mark.asyncio
    async def test_reorders_and_truncates_store_output(self) -> None:
        meta = make_chunk("x").metadata
        store = MagicMock(spec=IVectorStoreProvider)
        store.query = AsyncMock(
            return_value=[
                RetrievalResult(text="far", metadata=meta, distance=0.9),
                RetrievalResult(text="near", metadata=meta, distance=0.1),
                RetrievalResult(text="mid", metadata=meta, distance=0.5),
            ]
        )

        results = await QueryEngine(store).query([1.0], limit=2)

        assert [r.text for r in results] == ["near", "mid"]

    @pytest.mark.asyncio
    async def test_store_failure_surfaces(self) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.query = AsyncMock(side_effect=VectorStoreError(message="down", provider_name="chromadb"))

        with pytest.raises(VectorStoreError):
            await QueryEngine(store).query([1.0])
