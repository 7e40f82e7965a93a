"""Question-level retrieval: embed, query, threshold, cite.

:class:`Retriever` is what answer-generating code calls.  It embeds a
natural-language question, asks the :class:`QueryEngine` for twice as
many candidates as it needs, keeps those within the distance threshold,
and attaches citations for the pages they came from.

Retrieval is best-effort at this level.  If the embedding provider or the
vector store fails, the failure is logged and an empty bundle is returned
so the caller can answer "data not available" instead of erroring.  Code
that needs the failure itself should call :meth:`QueryEngine.query`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.models.rag import CanonicalSection, RetrievalBundle, RetrievalFilters
from src.services.citation_service import CitationService
from src.utils.errors import WayfinderError

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.services.retrieval.query_engine import QueryEngine

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_TOP_K = 5
# Maximum cosine distance of a usable chunk (similarity >= 0.6).
DEFAULT_SIMILARITY_THRESHOLD = 0.4
# Candidates fetched per requested result, to survive threshold filtering.
_OVERFETCH_FACTOR = 2


class Retriever:
    """Retrieves thresholded, cited chunks for a question.

    Parameters
    ----------
    embedding_provider:
        Embeds the question; must match the provider used at ingestion.
    query_engine:
        Executes the filtered similarity query.
    top_k:
        Default maximum number of chunks returned.
    similarity_threshold:
        Default maximum distance for a chunk to be kept.
    citation_service:
        Builds citations from the kept chunks.  A fresh one is created
        when omitted.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        query_engine: QueryEngine,
        top_k: int = DEFAULT_TOP_K,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        citation_service: CitationService | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._query_engine = query_engine
        self._top_k = top_k
        self._similarity_threshold = similarity_threshold
        self._citations = citation_service or CitationService()

    async def retrieve(
        self,
        query: str,
        place: str | None = None,
        section: CanonicalSection | None = None,
        top_k: int | None = None,
        threshold: float | None = None,
    ) -> RetrievalBundle:
        """Return the chunks relevant to *query*, with citations.

        Parameters
        ----------
        query:
            The natural-language question.
        place:
            Restrict to chunks about this place.
        section:
            Restrict to chunks from this canonical section.
        top_k:
            Override the default result count.
        threshold:
            Override the default distance threshold.

        Returns
        -------
        RetrievalBundle
            Possibly empty; ``has_data`` is ``False`` when nothing relevant
            was found or retrieval failed.
        """
        top_k = top_k or self._top_k
        threshold = self._similarity_threshold if threshold is None else threshold
        filters = RetrievalFilters(place=place, section=section)

        try:
            query_vector = await self._embedding_provider.embed_single(query)
            candidates = await self._query_engine.query(
                query_vector,
                filters=filters,
                limit=top_k * _OVERFETCH_FACTOR,
            )
        except WayfinderError as exc:
            logger.warning(
                "retrieval_failed",
                query=query,
                place=place,
                section=section.value if section else None,
                error=str(exc),
            )
            return RetrievalBundle(query=query, place=place, section=section)

        chunks = [c for c in candidates if c.distance <= threshold][:top_k]
        citations = self._citations.extract_citations(chunks)

        logger.info(
            "retrieval_complete",
            place=place,
            section=section.value if section else None,
            candidates=len(candidates),
            kept=len(chunks),
            citations=len(citations),
        )
        return RetrievalBundle(
            query=query,
            chunks=chunks,
            citations=citations,
            place=place,
            section=section,
        )

    async def retrieve_for_explanation(
        self,
        question: str,
        place: str,
        context: str | None = None,
    ) -> RetrievalBundle:
        """Retrieve for a "why" question about *place*, optionally a POI in it.

        The question is expanded to ``"{question} about {context} in
        {place}"`` (or ``"{question} about {place}"``) before embedding, and
        results are restricted to *place*.
        """
        if context:
            enhanced = f"{question} about {context} in {place}"
        else:
            enhanced = f"{question} about {place}"
        return await self.retrieve(enhanced, place=place)
