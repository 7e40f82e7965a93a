"""Abstract base class for travel-guide page fetchers.

A fetcher turns a (place, source) pair into a :class:`ParsedPage`: the
page's citation URL plus its text split by section heading.  Network retry
policy and timeouts are the fetcher's concern, not the orchestrator's.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import ParsedPage, RAGSource


# Concrete implementation: WikimediaPageFetcher (src/providers/fetcher/)
class IPageFetcher(ABC):
    """Contract for services that fetch and section-split guide pages."""

    @abstractmethod
    async def fetch_page(self, place: str, source: RAGSource) -> ParsedPage | None:
        """Fetch the page describing *place* from *source*.

        Returns
        -------
        ParsedPage or None
            The parsed page, or ``None`` when the source has no page for
            the place.  Not-found is an ordinary outcome, not an error.

        Raises
        ------
        src.utils.errors.FetchError
            On network or API failure, including timeouts.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Release any network resources held by the fetcher."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this fetcher."""
