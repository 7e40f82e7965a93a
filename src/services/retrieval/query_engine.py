"""Filtered nearest-neighbour queries over the travel-guide index.

:class:`QueryEngine` is the thin, read-only request/response layer in
front of the vector store.  The store owns the search algorithm (exact or
approximate); this layer owns the contract:

* results are ordered by ascending distance (closest first),
* at most ``limit`` results are returned,
* ``place`` and ``section`` filters are conjunctive, and an absent
  filter removes its predicate rather than matching an empty value,
* no match is an empty list, not an error,
* store failures surface as :class:`~src.utils.errors.VectorStoreError`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from src.models.rag import CanonicalSection, RetrievalFilters, RetrievalResult
from src.utils.errors import IndexValidationError

if TYPE_CHECKING:
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_LIMIT = 5


def coerce_filters(
    filters: RetrievalFilters | Mapping[str, Any] | None,
) -> RetrievalFilters | None:
    """Turn a ``{place?, section?}`` mapping into :class:`RetrievalFilters`.

    ``None`` and blank values are dropped.  A section given as a string
    must name a canonical label; case, spaces and underscores are ignored
    ("get_around" is Get Around) but raw headings such as "Climate" are
    rejected rather than guessed.
    """
    if filters is None or isinstance(filters, RetrievalFilters):
        return filters

    unknown = set(filters) - {"place", "section"}
    if unknown:
        raise IndexValidationError(
            message=f"Unsupported filter keys: {sorted(unknown)}",
            provider_name="query_engine",
        )

    place = filters.get("place")
    section = filters.get("section")
    if isinstance(place, str):
        place = place.strip() or None
    if isinstance(section, str):
        section = _coerce_section(section)

    return RetrievalFilters(place=place, section=section)


def _coerce_section(raw: str) -> CanonicalSection | None:
    raw = raw.strip()
    if not raw:
        return None
    # "Get Around", "get_around" and "GetAround" all name the same label.
    key = raw.replace(" ", "").replace("_", "").lower()
    for label in CanonicalSection:
        if key == label.value.replace(" ", "").lower():
            return label
    raise IndexValidationError(
        message=(
            f"Unknown section '{raw}'; expected one of "
            f"{[label.value for label in CanonicalSection]}"
        ),
        provider_name="query_engine",
    )


class QueryEngine:
    """Executes filtered similarity queries against a vector store.

    Safe for unlimited concurrent callers: it holds no mutable state.
    """

    def __init__(self, vector_store: IVectorStoreProvider) -> None:
        self._vector_store = vector_store

    async def query(
        self,
        query_vector: list[float],
        filters: RetrievalFilters | Mapping[str, Any] | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[RetrievalResult]:
        """Return up to *limit* chunks nearest to *query_vector*.

        Parameters
        ----------
        query_vector:
            Embedding of the question, from the same provider used at
            ingestion.
        filters:
            Optional :class:`RetrievalFilters` or ``{"place": ..,
            "section": ..}`` mapping.
        limit:
            Maximum number of results; must be at least 1.

        Raises
        ------
        IndexValidationError
            If *limit* is below 1 or *filters* has unsupported keys.
        VectorStoreError
            If the store query fails.
        """
        if limit < 1:
            raise IndexValidationError(
                message=f"query limit must be at least 1, got {limit}",
                provider_name="query_engine",
            )
        resolved = coerce_filters(filters)

        results = await self._vector_store.query(query_vector, filters=resolved, limit=limit)
        ordered = sorted(results, key=lambda r: r.distance)[:limit]

        logger.debug(
            "query_executed",
            place=resolved.place if resolved else None,
            section=resolved.section.value if resolved and resolved.section else None,
            limit=limit,
            results=len(ordered),
        )
        return ordered
