"""Travel-guide ingestion pipeline for the wayfinder RAG index.

Orchestrates the full pipeline: **fetch -> normalize -> chunk -> embed -> store**.

Pipeline stages overview:

1. **Fetch** (via IPageFetcher) -- Retrieves one place's page from one
   source (Wikivoyage, Wikipedia), split into headed sections.

2. **Normalize** (section_normalizer.py) -- Folds free-form headings into
   canonical labels and decides which sections are worth indexing.

3. **Chunk** (chunker.py / TextChunker) -- Splits target sections into
   ~2000-character overlapping windows, snapping to sentence or paragraph
   boundaries near each window's end.

4. **Embed** (via IEmbeddingProvider) -- Generates dense vector embeddings
   in fixed-size batches.

5. **Store** (via IVectorStoreProvider) -- Persists chunks, vectors and
   citation metadata to the vector database (ChromaDB).
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService, batch_embed
from src.services.ingestion.section_normalizer import (
    SECTION_RULES,
    clean_section_text,
    is_target_section,
    normalize,
)

__all__ = [
    "IngestionService",
    "SECTION_RULES",
    "TextChunker",
    "batch_embed",
    "clean_section_text",
    "is_target_section",
    "normalize",
]
