"""wayfinder domain models -- re-exports all public model classes.

Everything lives in ``rag.py``: parsed pages, chunks and their citation
metadata, ingestion results, and retrieval results.
"""

from __future__ import annotations

from src.models.rag import (
    DEFAULT_TARGET_SECTIONS,
    SOURCE_DISPLAY_NAMES,
    CanonicalSection,
    ChunkMetadata,
    Citation,
    CorpusStats,
    DocumentChunk,
    GuardrailCheck,
    IndexedDocument,
    IngestionResult,
    IngestionSummary,
    ParsedPage,
    RAGSource,
    RetrievalBundle,
    RetrievalFilters,
    RetrievalResult,
)

__all__ = [
    "DEFAULT_TARGET_SECTIONS",
    "SOURCE_DISPLAY_NAMES",
    "CanonicalSection",
    "ChunkMetadata",
    "Citation",
    "CorpusStats",
    "DocumentChunk",
    "GuardrailCheck",
    "IndexedDocument",
    "IngestionResult",
    "IngestionSummary",
    "ParsedPage",
    "RAGSource",
    "RetrievalBundle",
    "RetrievalFilters",
    "RetrievalResult",
]
