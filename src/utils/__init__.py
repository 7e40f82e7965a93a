"""Utility modules for wayfinder.

- **errors** -- Domain-specific exception hierarchy rooted at WayfinderError;
  each failure class (fetch, validation, embedding, store) has its own
  subclass so the ingestion orchestrator can record it per pair.
- **concurrency** -- asyncio semaphore throttling for the per-pair
  ingestion fan-out.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from src.utils.concurrency import throttled_gather
from src.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    FetchError,
    IndexValidationError,
    RAGError,
    VectorStoreError,
    WayfinderError,
)
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "EmbeddingError",
    "FetchError",
    "IndexValidationError",
    "RAGError",
    "VectorStoreError",
    "WayfinderError",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
