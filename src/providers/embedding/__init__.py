"""Embedding provider implementations.

Embeddings turn chunk text into vectors stored in ChromaDB and compared at
retrieval time.  Both backends speak the OpenAI embeddings API and share
:class:`OpenAICompatibleEmbedder`.  Selection order:
    1. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims).
       Requires an API key; also serves OpenAI-compatible hosts.
    2. NomicEmbeddingProvider  -- nomic-embed-text via Ollama (768 dims).
       Free and local, but requires a running Ollama server.
"""

from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_compatible import OpenAICompatibleEmbedder
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAICompatibleEmbedder", "OpenAIEmbeddingProvider", "NomicEmbeddingProvider"]
