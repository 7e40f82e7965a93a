"""Citation extraction, formatting, and validation for retrieved guide chunks.

Every answer built on retrieved travel-guide text must point back at the
pages it came from.  :class:`CitationService` turns retrieved chunks into
:class:`~src.models.rag.Citation` objects (one per distinct source page)
and renders them for the three places they are shown:

    UI        numbered list, one "source - url" line per citation
    Voice     a short "According to ..." phrase suitable for TTS
    Markdown  a "**Sources:**" footer with linked URLs

Validation checks that every citation names its source and carries a
well-formed absolute URL.
"""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlparse

import structlog

from src.models.rag import SOURCE_DISPLAY_NAMES, Citation, RAGSource, RetrievalResult
from src.utils.logging import get_logger

# Number of leading characters of chunk text used as the citation excerpt.
_EXCERPT_CHARS = 100


class CitationService:
    """Builds and renders citations for retrieved chunks.

    Stateless; one instance can be shared across concurrent requests.
    """

    def __init__(self) -> None:
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # -- Public API -----------------------------------------------------------

    @staticmethod
    def source_display_name(source: RAGSource | str) -> str:
        """Return the human-readable name for *source*, e.g. ``"Wikivoyage"``."""
        try:
            return SOURCE_DISPLAY_NAMES[RAGSource(source)]
        except ValueError:
            return str(source).title()

    def extract_citations(self, chunks: Iterable[RetrievalResult]) -> list[Citation]:
        """Return one citation per distinct (source, url) among *chunks*.

        Chunks are expected closest-first; the first chunk seen for a page
        supplies that citation's excerpt and confidence.

        Parameters
        ----------
        chunks:
            Retrieved chunks, ordered by ascending distance.

        Returns
        -------
        list[Citation]
            Citations in first-seen order.
        """
        citations: dict[tuple[str, str], Citation] = {}

        for chunk in chunks:
            meta = chunk.metadata
            key = (meta.source.value, meta.url)
            if key in citations:
                continue

            excerpt = chunk.text[:_EXCERPT_CHARS]
            if len(chunk.text) > _EXCERPT_CHARS:
                excerpt += "..."

            citations[key] = Citation(
                source=self.source_display_name(meta.source),
                url=meta.url,
                excerpt=excerpt,
                confidence=chunk.similarity,
            )

        self._logger.debug("citations_extracted", total=len(citations))
        return list(citations.values())

    @staticmethod
    def format_for_ui(citations: list[Citation]) -> str:
        """Format *citations* as a numbered list, one per line.

        Example: ``"1. Wikivoyage - https://en.wikivoyage.org/wiki/Jaipur"``.
        """
        lines: list[str] = []
        for index, citation in enumerate(citations, start=1):
            name = citation.source or "Source"
            suffix = f" - {citation.url}" if citation.url else ""
            lines.append(f"{index}. {name}{suffix}")
        return "\n".join(lines)

    @staticmethod
    def format_for_voice(citations: list[Citation]) -> str:
        """Return a short spoken attribution, or ``""`` with no citations."""
        names = list(dict.fromkeys(c.source or "Source" for c in citations))
        if not names:
            return ""
        if len(names) == 1:
            return f"According to {names[0]}"
        if len(names) == 2:
            return f"According to {names[0]} and {names[1]}"
        return f"According to {names[0]} and other sources"

    @staticmethod
    def format_as_markdown(citations: list[Citation]) -> str:
        """Return a Markdown "Sources" footer, or ``""`` with no citations."""
        if not citations:
            return ""
        lines = []
        for index, citation in enumerate(citations, start=1):
            url = citation.url or "#"
            lines.append(f"[{index}] {citation.source or 'Source'} - [{url}]({url})")
        return "\n\n**Sources:**\n" + "\n".join(lines)

    def validate_citations(self, citations: list[Citation]) -> tuple[bool, list[str]]:
        """Check every citation has a source name and a valid absolute URL.

        Returns
        -------
        tuple[bool, list[str]]
            ``(valid, errors)``; *errors* names each problem by 1-based
            citation number.
        """
        errors: list[str] = []
        for index, citation in enumerate(citations, start=1):
            if not citation.source:
                errors.append(f"Citation {index}: Missing source")
            if not citation.url:
                errors.append(f"Citation {index}: Missing URL")
            elif not _is_valid_url(citation.url):
                errors.append(f"Citation {index}: Invalid URL: {citation.url}")

        if errors:
            self._logger.warning("invalid_citations", errors=errors)
        return (not errors, errors)


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme) and bool(parsed.netloc)
