"""Wikimedia page fetcher for Wikivoyage and Wikipedia.

Fetches a place's article through the MediaWiki ``action=parse`` API and
splits the rendered HTML into headed sections with BeautifulSoup.  Both
sites run the same MediaWiki software, so one fetcher serves either
source; only the host differs.

A missing page is an ordinary outcome and comes back as ``None``.
Transport failures (timeouts, non-2xx responses, undecodable bodies) and
API errors other than a missing or invalid title raise
:class:`~src.utils.errors.FetchError`.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from src.interfaces.page_fetcher import IPageFetcher
from src.models.rag import ParsedPage, RAGSource
from src.services.ingestion.section_normalizer import clean_section_text
from src.utils.errors import FetchError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_HEADERS = {
    "User-Agent": "wayfinder/0.1 (travel-guide RAG ingestion; +https://github.com/wayfinder)",
    "Accept": "application/json",
}

# API error codes meaning the article does not exist; any other error
# (ratelimited, maxlag, internal_api_error, ...) is a fetch failure.
_NOT_FOUND_CODES = frozenset({"missingtitle", "invalidtitle"})

# Sections this short are navigation stubs or empty headings.
_MIN_SECTION_CHARS = 50

_HEADING_LEVELS = {"h2": 2, "h3": 3}
_BLOCK_TAGS = frozenset(
    {"p", "div", "li", "ul", "ol", "dl", "dt", "dd", "table", "tr", "blockquote", "h4", "h5", "h6"}
)
# Rendered chrome that carries no guide content.
_STRIP_SELECTORS = (
    "style",
    "script",
    ".mw-editsection",
    "sup.reference",
    ".reference",
    ".navbox",
    ".noprint",
    ".mw-empty-elt",
)


def api_url(source: RAGSource) -> str:
    """Return the MediaWiki API endpoint for *source*."""
    return f"https://en.{source.value}.org/w/api.php"


def page_url(source: RAGSource, title: str) -> str:
    """Return the canonical article URL for *title* on *source*."""
    return f"https://en.{source.value}.org/wiki/{quote(title.replace(' ', '_'))}"


def parse_sections(html: str) -> dict[str, str]:
    """Split MediaWiki article HTML into ``{heading: text}``.

    Walks the document in order.  Each ``h2`` or ``h3`` opens a section;
    text belongs only to the innermost open heading, so an ``h2`` section
    stops where its first ``h3`` subsection begins and no text is emitted
    twice.  Text before the first heading is discarded.
    Section text is cleaned and sections of 50 characters or fewer are
    dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    for selector in _STRIP_SELECTORS:
        for node in soup.select(selector):
            node.decompose()

    buffers: dict[str, list[str]] = {}
    # (level, heading) stack of enclosing headings; the last one collects text.
    open_sections: list[tuple[int, str]] = []

    for node in soup.descendants:
        if isinstance(node, Tag):
            level = _HEADING_LEVELS.get(node.name)
            if level is not None:
                heading = node.get_text(" ", strip=True)
                open_sections = [(lvl, h) for lvl, h in open_sections if lvl < level]
                if heading:
                    open_sections.append((level, heading))
                    buffers.setdefault(heading, [])
            elif node.name in _BLOCK_TAGS and open_sections:
                buffers[open_sections[-1][1]].append("\n\n")
            continue

        if not isinstance(node, NavigableString) or isinstance(node, Comment):
            continue
        if not open_sections or node.find_parent(list(_HEADING_LEVELS)) is not None:
            continue
        buffers[open_sections[-1][1]].append(str(node))

    sections: dict[str, str] = {}
    for heading, parts in buffers.items():
        text = clean_section_text("".join(parts))
        if len(text) > _MIN_SECTION_CHARS:
            sections[heading] = text
    return sections


class WikimediaPageFetcher(IPageFetcher):
    """Page fetcher backed by httpx + BeautifulSoup.

    The ``httpx.AsyncClient`` may be injected for testability; a client
    created here is owned by the fetcher and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )

    # ------------------------------------------------------------------
    # IPageFetcher implementation
    # ------------------------------------------------------------------

    async def fetch_page(self, place: str, source: RAGSource) -> ParsedPage | None:
        """Fetch and section-split the article for *place* on *source*."""
        source = RAGSource(source)
        params = {
            "action": "parse",
            "page": place,
            "format": "json",
            "prop": "text|sections",
            "redirects": "1",
        }
        url = api_url(source)

        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise FetchError(
                message=f"Timeout fetching {place} from {source.value}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                message=f"HTTP {exc.response.status_code} fetching {place} from {source.value}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(
                message=f"HTTP error fetching {place} from {source.value}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise FetchError(
                message=f"Invalid JSON from {source.value} API for {place}",
                provider_name=self.get_provider_name(),
            ) from exc

        if "error" in data:
            code = data["error"].get("code")
            info = data["error"].get("info")
            if code not in _NOT_FOUND_CODES:
                raise FetchError(
                    message=f"{source.value} API error '{code}' for {place}: {info}",
                    provider_name=self.get_provider_name(),
                )
            logger.info(
                "wikimedia_page_missing",
                place=place,
                source=source.value,
                code=code,
                info=info,
            )
            return None

        parsed = data.get("parse") or {}
        html = (parsed.get("text") or {}).get("*", "")
        title = parsed.get("title") or place
        sections = parse_sections(html) if html else {}

        logger.debug(
            "wikimedia_page_parsed",
            place=place,
            source=source.value,
            title=title,
            sections=list(sections),
        )
        return ParsedPage(
            place=place,
            source=source,
            url=page_url(source, title),
            sections=sections,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    def get_provider_name(self) -> str:
        return "wikimedia"
