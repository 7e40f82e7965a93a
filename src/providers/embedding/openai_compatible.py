"""Shared batching for embedding backends that speak the OpenAI embeddings API.

Both the hosted OpenAI provider and the local Ollama-served Nomic model
answer ``POST /embeddings`` with the same payload shape, so the request
loop, ordering and error translation live here once.
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)


class OpenAICompatibleEmbedder(IEmbeddingProvider):
    """Base adapter over an ``openai.AsyncOpenAI`` client.

    Subclasses build the client and declare the model, the vector size and
    the largest request their backend accepts.
    """

    def __init__(
        self,
        client: Any,
        model: str,
        dimension: int,
        max_request_size: int,
    ) -> None:
        self._client = client
        self._model = model
        self._dimension = dimension
        self._max_request_size = max_request_size

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, splitting into backend-sized requests.

        Vectors are returned in input order regardless of the order the
        backend lists them in.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        for offset in range(0, len(texts), self._max_request_size):
            request = texts[offset : offset + self._max_request_size]
            try:
                response = await self._client.embeddings.create(input=request, model=self._model)
            except openai.APIError as exc:
                raise EmbeddingError(
                    message=f"embedding request failed for model {self._model}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

            by_position = sorted(response.data, key=lambda item: item.index)
            vectors.extend(list(item.embedding) for item in by_position)

            usage = getattr(response, "usage", None)
            logger.debug(
                "embedding_request_complete",
                provider=self.get_provider_name(),
                model=self._model,
                texts=len(request),
                tokens=getattr(usage, "total_tokens", None),
            )
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        (vector,) = await self.embed([text])
        return vector

    def get_dimension(self) -> int:
        return self._dimension
