"""Hosted OpenAI (or OpenAI-compatible host) embedding adapter.

Defaults to ``text-embedding-3-small``.  Pointing ``OPENAI_BASE_URL`` at
another host (TogetherAI, Fireworks, a gateway) switches the provider
label, and ``OPENAI_EMBEDDING_MODEL`` picks the model served there.
"""

from __future__ import annotations

import openai

from src.config.settings import Settings
from src.providers.embedding.openai_compatible import OpenAICompatibleEmbedder

DEFAULT_MODEL = "text-embedding-3-small"

# The embeddings endpoint accepts at most this many inputs per call.
_MAX_INPUTS_PER_REQUEST = 2048
_UNSET_KEY = "unset"

_FALLBACK_DIMENSION = 768
_KNOWN_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}


class OpenAIEmbeddingProvider(OpenAICompatibleEmbedder):
    """Embeddings from the OpenAI API; needs ``OPENAI_API_KEY``."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._custom_host = bool(settings.openai_base_url)

        # The client refuses an empty key; is_available() reports the real state.
        options: dict = {
            "api_key": self._api_key or _UNSET_KEY,
            "timeout": settings.embedding_timeout,
        }
        if self._custom_host:
            options["base_url"] = settings.openai_base_url

        model = settings.openai_embedding_model or DEFAULT_MODEL
        super().__init__(
            client=openai.AsyncOpenAI(**options),
            model=model,
            dimension=_KNOWN_DIMENSIONS.get(model, _FALLBACK_DIMENSION),
            max_request_size=_MAX_INPUTS_PER_REQUEST,
        )

    def get_provider_name(self) -> str:
        if self._custom_host:
            return "openai-compatible_embedding"
        return "openai_embedding"

    def is_available(self) -> bool:
        return bool(self._api_key)
