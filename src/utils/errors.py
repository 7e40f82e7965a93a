"""Custom exception hierarchy for wayfinder.

All application exceptions inherit from :class:`WayfinderError`, which
carries an optional ``provider_name`` so error handlers can identify which
external collaborator (e.g. "wikivoyage", "openai_embedding", "chromadb")
caused the failure.

The hierarchy follows the ingestion / retrieval failure taxonomy:

    WayfinderError  (base -- catch-all for any wayfinder error)
    +-- ConfigurationError       (startup / invalid settings)
    +-- FetchError               (network / API failure while fetching)
    +-- IndexValidationError     (mismatched chunk / embedding lengths)
    +-- RAGError                 (embedding or vector-store failure)
        +-- EmbeddingError       (embedding provider call failed)
        +-- VectorStoreError     (insert / query backend unavailable)

Ingestion treats every one of these as fatal to a single (place, source)
pair and records it on the pair's ``IngestionResult``.  Retrieval surfaces
:class:`VectorStoreError` directly to its caller.
"""


class WayfinderError(Exception):
    """Base exception for all wayfinder errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[chromadb] collection not found``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(WayfinderError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Fetch boundary
# ---------------------------------------------------------------------------

class FetchError(WayfinderError):
    """Raised on a transient network or API failure while fetching a page."""

    def __init__(
        self,
        message: str = "Page fetch failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class IndexValidationError(WayfinderError, ValueError):
    """Raised when parallel sequences handed to the index disagree in length.

    Also a :class:`ValueError` so generic argument-validation handlers
    still catch it.
    """

    def __init__(
        self,
        message: str = "Index input validation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# RAG / embedding / vector-store errors
# ---------------------------------------------------------------------------

class RAGError(WayfinderError):
    """Raised when a RAG pipeline operation fails (embedding or vector store)."""

    def __init__(
        self,
        message: str = "RAG pipeline operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(RAGError):
    """Raised when the embedding provider call fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(RAGError):
    """Raised when the vector-store backend is unavailable or rejects a call."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
