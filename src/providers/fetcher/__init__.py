"""Page fetcher implementations.

WikimediaPageFetcher serves both Wikivoyage and Wikipedia through the
MediaWiki parse API.  Other guide sources plug in by implementing
IPageFetcher and being registered in main.py.
"""

from src.providers.fetcher.wikimedia_fetcher import WikimediaPageFetcher, parse_sections

__all__ = ["WikimediaPageFetcher", "parse_sections"]
