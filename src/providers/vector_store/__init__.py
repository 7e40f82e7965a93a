"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  It stores travel-guide
chunk embeddings on disk (or on a remote Chroma server) and supports
cosine-similarity search filtered by place and section.  Local data
persists at CHROMADB_PERSIST_DIR (default: ./data/chromadb).

To swap ChromaDB for another vector database, create a new class
implementing IVectorStoreProvider and register it in main.py.
"""

from src.providers.vector_store.chromadb_provider import (
    ChromaDBProvider,
    content_chunk_id,
    generate_chunk_id,
)

__all__ = ["ChromaDBProvider", "content_chunk_id", "generate_chunk_id"]
