"""RAG pipeline data models for the wayfinder travel-guide corpus.

Defines Pydantic v2 models for parsed source pages, document chunks,
ingestion outcomes, and retrieval results.  All models use frozen config
so a chunk or result cannot be mutated once it has been created.

RAG overview:
    1. INGESTION: Travel-guide pages (Wikivoyage, Wikipedia) are fetched
       per place and split into their headed sections.
    2. CHUNKING: Trip-planning sections (Safety, Eat, Get Around, Weather)
       are cut into overlapping ~2000-character windows.
    3. EMBEDDING: Each chunk is converted into a numeric vector.
    4. STORAGE: Chunks + embeddings + citation metadata are stored in
       ChromaDB.
    5. RETRIEVAL: A query vector plus optional place / section filters
       returns the nearest chunks, each carrying enough metadata to cite
       its source page.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


class RAGSource(str, Enum):
    """Provenance of an ingested page."""

    WIKIVOYAGE = "wikivoyage"
    WIKIPEDIA = "wikipedia"


class CanonicalSection(str, Enum):
    """Closed set of travel-guide topic labels used for filtering and citation."""

    SAFETY = "Safety"
    EAT = "Eat"
    GET_AROUND = "Get Around"
    WEATHER = "Weather"
    UNDERSTAND = "Understand"
    SEE = "See"
    DO = "Do"
    BUY = "Buy"
    SLEEP = "Sleep"
    CONNECT = "Connect"
    OTHER = "Other"


# Sections that are chunked and indexed; everything else is parsed but dropped.
DEFAULT_TARGET_SECTIONS: frozenset[CanonicalSection] = frozenset(
    {
        CanonicalSection.SAFETY,
        CanonicalSection.EAT,
        CanonicalSection.GET_AROUND,
        CanonicalSection.WEATHER,
    }
)

# Human-readable source names shown in citations.
SOURCE_DISPLAY_NAMES: dict[RAGSource, str] = {
    RAGSource.WIKIVOYAGE: "Wikivoyage",
    RAGSource.WIKIPEDIA: "Wikipedia",
}


# ---------------------------------------------------------------------------
# ParsedPage -- raw input from a page fetcher.
# ---------------------------------------------------------------------------
class ParsedPage(BaseModel):
    """One source document for one place, split into headed sections."""

    model_config = ConfigDict(frozen=True)

    place: str = Field(description="Place name the page describes, e.g. 'Jaipur'.")
    source: RAGSource = Field(description="Which site the page came from.")
    url: str = Field(description="Canonical page URL used as the citation link.")
    # Raw heading -> raw section text.  Heading order carries no meaning.
    sections: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# ChunkMetadata -- citation provenance stored next to every vector.
# ---------------------------------------------------------------------------
class ChunkMetadata(BaseModel):
    """Citation metadata attached to a chunk.

    ``chunk_index`` is the 0-based position of the chunk within its
    section's chunk sequence and ``total_chunks`` the length of that
    sequence, so ``0 <= chunk_index < total_chunks`` always holds.
    """

    model_config = ConfigDict(frozen=True)

    place: str
    source: RAGSource
    section: CanonicalSection
    url: str
    chunk_index: int = Field(default=0, ge=0)
    total_chunks: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_index_in_range(self) -> ChunkMetadata:
        if self.chunk_index >= self.total_chunks:
            raise ValueError(
                f"chunk_index {self.chunk_index} out of range for total_chunks {self.total_chunks}"
            )
        return self

    def to_store_metadata(self) -> dict[str, str | int]:
        """Return the vector-store metadata dict.

        Keys are exactly ``place``, ``source``, ``section``, ``url``,
        ``chunkIndex`` and ``totalChunks``; values are plain str / int as
        ChromaDB requires.
        """
        return {
            "place": self.place,
            "source": self.source.value,
            "section": self.section.value,
            "url": self.url,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
        }

    @classmethod
    def from_store_metadata(cls, meta: dict[str, Any]) -> ChunkMetadata:
        """Reverse :meth:`to_store_metadata`."""
        return cls(
            place=str(meta.get("place", "")),
            source=RAGSource(meta.get("source", RAGSource.WIKIVOYAGE.value)),
            section=CanonicalSection(meta.get("section", CanonicalSection.OTHER.value)),
            url=str(meta.get("url", "")),
            chunk_index=int(meta.get("chunkIndex", 0)),
            total_chunks=int(meta.get("totalChunks", 1)),
        )


# ---------------------------------------------------------------------------
# DocumentChunk -- the atomic unit stored and retrieved.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A trimmed, non-empty window of section text plus its citation metadata."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="The chunk's textual content.")
    metadata: ChunkMetadata

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chunk text must not be empty")
        return value.strip()


# ---------------------------------------------------------------------------
# IndexedDocument -- persisted form of a chunk.
# ---------------------------------------------------------------------------
class IndexedDocument(BaseModel):
    """A chunk with its generated store identifier and embedding vector."""

    model_config = ConfigDict(frozen=True)

    id: str
    chunk: DocumentChunk
    embedding: list[float]


# ---------------------------------------------------------------------------
# IngestionResult -- outcome for one (place, source) pair.
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Summary of ingesting one page.

    Failed pairs carry ``success=False`` and a non-empty ``error``; the run
    that produced them carries on regardless.
    """

    model_config = ConfigDict(frozen=True)

    place: str
    source: RAGSource | str = Field(
        union_mode="left_to_right",
        description="Source of the page; a plain string only when it names no known source.",
    )
    url: str = Field(default="", description="Page URL; empty when the fetch never succeeded.")
    sections_processed: int = Field(
        default=0, ge=0, description="Number of target sections that were chunked."
    )
    chunks_created: int = Field(default=0, ge=0, description="Number of chunks stored.")
    success: bool = False
    error: str | None = None
    ingestion_time: float = Field(
        default=0.0, ge=0.0, description="Wall-clock seconds spent on this pair."
    )

    @property
    def source_name(self) -> str:
        """Source identifier as text, whether or not it is a known source."""
        return self.source.value if isinstance(self.source, RAGSource) else self.source


class IngestionSummary(BaseModel):
    """Aggregate view over the results of one ingestion run."""

    model_config = ConfigDict(frozen=True)

    results: list[IngestionResult] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_chunks(self) -> int:
        return sum(r.chunks_created for r in self.results if r.success)


# ---------------------------------------------------------------------------
# Retrieval models
# ---------------------------------------------------------------------------
class RetrievalFilters(BaseModel):
    """Optional structured filters for a similarity query.

    Both filters are conjunctive.  An absent filter removes its predicate;
    it never matches on an empty value.
    """

    model_config = ConfigDict(frozen=True)

    place: str | None = None
    section: CanonicalSection | None = None

    def to_where(self) -> dict[str, Any] | None:
        """Build a ChromaDB ``where`` clause, or ``None`` when unfiltered."""
        clauses: list[dict[str, Any]] = []
        if self.place is not None:
            clauses.append({"place": self.place})
        if self.section is not None:
            clauses.append({"section": self.section.value})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}


class RetrievalResult(BaseModel):
    """A chunk returned from a similarity query with its distance."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: ChunkMetadata
    distance: float = Field(ge=0.0, description="Similarity distance; smaller is closer.")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def similarity(self) -> float:
        return max(0.0, min(1.0, 1.0 - self.distance))


class Citation(BaseModel):
    """A displayable reference to the page a retrieved chunk came from."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(description='Display name, e.g. "Wikivoyage".')
    url: str
    excerpt: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class RetrievalBundle(BaseModel):
    """Chunks and citations retrieved for one natural-language question."""

    model_config = ConfigDict(frozen=True)

    query: str
    chunks: list[RetrievalResult] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    place: str | None = None
    section: CanonicalSection | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_data(self) -> bool:
        return len(self.chunks) > 0


class GuardrailCheck(BaseModel):
    """Outcome of a grounding / citation guardrail check."""

    model_config = ConfigDict(frozen=True)

    passed: bool = True
    violations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CorpusStats(BaseModel):
    """Aggregate statistics for the travel-guide collection."""

    model_config = ConfigDict(frozen=True)

    total_chunks: int = Field(default=0, ge=0)
    places: list[str] = Field(default_factory=list, description="Sorted distinct places.")
    chunks_by_source: dict[str, int] = Field(default_factory=dict)
    chunks_by_section: dict[str, int] = Field(default_factory=dict)
