"""Local ``nomic-embed-text`` embeddings served by Ollama.

Ollama mirrors the OpenAI embeddings route under ``/v1``; no API key is
needed but the server must be running at ``OLLAMA_BASE_URL``.
"""

from __future__ import annotations

import httpx
import openai

from src.config.settings import Settings
from src.providers.embedding.openai_compatible import OpenAICompatibleEmbedder

NOMIC_MODEL = "nomic-embed-text"
NOMIC_DIMENSION = 768

_MAX_INPUTS_PER_REQUEST = 512
_PROBE_TIMEOUT = 3.0


class NomicEmbeddingProvider(OpenAICompatibleEmbedder):
    """768-dimensional embeddings from a local Ollama server."""

    def __init__(self, settings: Settings) -> None:
        self._server = settings.ollama_base_url.rstrip("/")
        super().__init__(
            client=openai.AsyncOpenAI(
                base_url=f"{self._server}/v1",
                api_key="ollama",  # ignored by Ollama, required by the client
                timeout=settings.embedding_timeout,
            ),
            model=NOMIC_MODEL,
            dimension=NOMIC_DIMENSION,
            max_request_size=_MAX_INPUTS_PER_REQUEST,
        )

    def get_provider_name(self) -> str:
        return "nomic_embedding"

    def is_available(self) -> bool:
        """Probe ``/api/tags``; any connection problem means unavailable."""
        if not self._server:
            return False
        try:
            response = httpx.get(f"{self._server}/api/tags", timeout=_PROBE_TIMEOUT)
        except httpx.HTTPError:
            return False
        return response.status_code == 200
