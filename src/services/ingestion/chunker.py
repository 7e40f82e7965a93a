"""Character-window chunking of travel-guide sections.

Splits the target sections of a :class:`~src.models.rag.ParsedPage` into
:class:`~src.models.rag.DocumentChunk` objects sized for embedding models
(2000 characters, roughly 500 tokens, with a 200-character overlap).

The chunking strategy has two design goals:

1. **Overlapping windows** -- Consecutive chunks share ``overlap``
   characters of context so that a fact spanning a boundary ("The night
   bus stops at Hawa Mahal. Tickets cost ...") is whole in at least one
   chunk.

2. **Boundary snapping** -- Before cutting a window, the chunker looks back
   over a short tail of the window for the last sentence terminator and
   ends the chunk just after it.  Failing that it looks for a paragraph
   break.  Failing both it cuts at the raw window size.

Every chunk is a contiguous, trimmed substring of its (merged) section text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from src.models.rag import (
    DEFAULT_TARGET_SECTIONS,
    CanonicalSection,
    ChunkMetadata,
    DocumentChunk,
    ParsedPage,
)
from src.services.ingestion.section_normalizer import is_target_section, normalize
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 2000
DEFAULT_CHUNK_OVERLAP = 200

# Upper bound on how far back from a window's end we search for a boundary.
_MAX_LOOKBACK = 200

_SENTENCE_END = re.compile(r"[.!?]\s+")
_PARAGRAPH_BREAK = "\n\n"


class TextChunker:
    """Splits section text into overlapping, boundary-snapped windows.

    Parameters
    ----------
    chunk_size:
        Maximum window length in characters (default 2000).
    overlap:
        Characters shared by consecutive windows (default 200).  Must be
        smaller than *chunk_size* or the window loop could stall.
    target_sections:
        Canonical sections that are chunked.  Everything else on the page
        is discarded.

    Raises
    ------
    ConfigurationError
        If ``chunk_size <= 0`` or ``overlap`` is outside ``[0, chunk_size)``.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_CHUNK_OVERLAP,
        target_sections: Iterable[CanonicalSection] = DEFAULT_TARGET_SECTIONS,
    ) -> None:
        if chunk_size <= 0:
            raise ConfigurationError(
                message=f"chunk_size must be positive, got {chunk_size}",
                provider_name="chunker",
            )
        if overlap < 0 or overlap >= chunk_size:
            raise ConfigurationError(
                message=(
                    f"chunk overlap must satisfy 0 <= overlap < chunk_size "
                    f"(got overlap={overlap}, chunk_size={chunk_size})"
                ),
                provider_name="chunker",
            )
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._lookback = min(_MAX_LOOKBACK, chunk_size // 10)
        self._target_sections = frozenset(target_sections)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    @property
    def target_sections(self) -> frozenset[CanonicalSection]:
        return self._target_sections

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk_page(self, page: ParsedPage) -> list[DocumentChunk]:
        """Chunk every target section of *page*.

        Raw headings are first grouped by canonical label (see
        :meth:`group_target_sections`), so each (place, source, section)
        gets exactly one chunk sequence, indexed from 0 with
        ``total_chunks`` equal to that sequence's length.

        Returns
        -------
        list[DocumentChunk]
            Chunks in section order, then window order.  A page with no
            target sections returns an empty list.
        """
        chunks: list[DocumentChunk] = []

        for section, content in self.group_target_sections(page).items():
            pieces = self.split_text(content)
            for index, piece in enumerate(pieces):
                chunks.append(
                    DocumentChunk(
                        text=piece,
                        metadata=ChunkMetadata(
                            place=page.place,
                            source=page.source,
                            section=section,
                            url=page.url,
                            chunk_index=index,
                            total_chunks=len(pieces),
                        ),
                    )
                )

        logger.debug(
            "chunking_complete",
            place=page.place,
            source=page.source.value,
            num_chunks=len(chunks),
        )
        return chunks

    def group_target_sections(self, page: ParsedPage) -> dict[CanonicalSection, str]:
        """Merge *page*'s target sections by canonical label.

        Headings that normalize to the same label ("Eat" and "Drink") are
        joined with a paragraph break in page order.  Blank texts are
        skipped.
        """
        grouped: dict[CanonicalSection, list[str]] = {}
        for heading, content in page.sections.items():
            section = normalize(heading)
            if not is_target_section(section, self._target_sections):
                continue
            text = content.strip()
            if text:
                grouped.setdefault(section, []).append(text)
        return {section: _PARAGRAPH_BREAK.join(texts) for section, texts in grouped.items()}

    def count_target_sections(self, page: ParsedPage) -> int:
        """Return how many distinct target sections *page* contributes."""
        return len(self.group_target_sections(page))

    def split_text(self, text: str) -> list[str]:
        """Split *text* into trimmed, overlapping windows.

        Text no longer than ``chunk_size`` is a single chunk.  Blank text
        yields no chunks.
        """
        if len(text) <= self._chunk_size:
            stripped = text.strip()
            return [stripped] if stripped else []

        pieces: list[str] = []
        start = 0
        text_length = len(text)

        while start < text_length:
            end = start + self._chunk_size
            if end < text_length:
                end = self._snap_boundary(text, start, end)

            piece = text[start:end].strip()
            if piece:
                pieces.append(piece)

            start = end - self._overlap

        return pieces

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snap_boundary(self, text: str, start: int, end: int) -> int:
        """Move *end* back to a sentence or paragraph boundary if one is near.

        Searches the ``lookback`` characters immediately preceding *end*.
        A boundary found at the very first character of that window is
        ignored, as is any boundary that would leave the next window
        starting at or before *start*.
        """
        search_start = max(start, end - self._lookback)
        window = text[search_start:end]

        candidate: int | None = None
        matches = list(_SENTENCE_END.finditer(window))
        if matches and matches[-1].start() > 0:
            candidate = search_start + matches[-1].end()
        else:
            para = window.rfind(_PARAGRAPH_BREAK)
            if para > 0:
                candidate = search_start + para + len(_PARAGRAPH_BREAK)

        if candidate is None or candidate <= start + self._overlap:
            return end
        return candidate
