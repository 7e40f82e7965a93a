# =============================================================================
# src/cli/ingest.py -- CLI for the travel-guide RAG index
# =============================================================================
#
# Standalone CLI for building and inspecting the wayfinder ChromaDB
# collection of travel-guide chunks (Wikivoyage / Wikipedia sections on
# safety, food, getting around and weather, per place).
#
# Supported subcommands:
#
#   ingest -- Fetch, chunk, embed and store pages for a list of places
#   query  -- Run a retrieval question against the index and print citations
#   stats  -- Display corpus statistics (chunk counts per place/source/section)
#   purge  -- Delete every chunk for a place (optionally one source only)
#
# Provider Selection (see src/main.py):
#   - Embedding: OpenAI (if OPENAI_API_KEY set) -> Nomic/Ollama
#   - Vector Store: ChromaDB (local PersistentClient, or CHROMADB_URL)
#
# Usage examples:
#   python -m src.cli.ingest ingest --places "Jaipur,Delhi"
#   python -m src.cli.ingest ingest --places Kyoto --sources wikivoyage
#   python -m src.cli.ingest query "Is it safe to walk at night?" --place Jaipur
#   python -m src.cli.ingest stats
#   python -m src.cli.ingest purge --place Jaipur --yes
# =============================================================================

"""Standalone CLI for the wayfinder travel-guide index.

Usage::

    python -m src.cli.ingest ingest --places "Jaipur,Delhi" \\
        --sources wikivoyage,wikipedia

    python -m src.cli.ingest query "Where should I eat?" --place Jaipur --section Eat

    python -m src.cli.ingest stats

Exit status is 1 when every ingested pair failed or the index is unreachable.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from src.config.settings import Settings
from src.main import RAGComponents, build_components, rag_runtime
from src.models.rag import RAGSource
from src.services.retrieval.query_engine import coerce_filters
from src.utils.errors import WayfinderError
from src.utils.logging import configure_logging

_DEFAULT_SOURCES = "wikivoyage,wikipedia"


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, rag: RAGComponents) -> int:
    """Ingest every (place, source) pair and print a per-pair report."""
    places = _split_csv(args.places)
    try:
        sources = [RAGSource(s.lower()) for s in _split_csv(args.sources)]
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    if not places or not sources:
        print("Error: at least one place and one source are required.", file=sys.stderr)
        return 2

    print(f"Ingesting {len(places)} place(s) from {', '.join(s.value for s in sources)}")

    results = await rag.ingestion.ingest(places, sources)
    summary = rag.ingestion.summarize(results)

    for result in results:
        if result.success:
            print(
                f"  OK    {result.place:<20} {result.source_name:<11} "
                f"sections={result.sections_processed} chunks={result.chunks_created} "
                f"({result.ingestion_time:.2f}s)"
            )
        else:
            print(f"  FAIL  {result.place:<20} {result.source_name:<11} {result.error}")

    print("\nIngestion complete:")
    print(f"  Succeeded:      {summary.succeeded}")
    print(f"  Failed:         {summary.failed}")
    print(f"  Chunks created: {summary.total_chunks}")
    return 1 if results and summary.succeeded == 0 else 0


async def _handle_query(args: argparse.Namespace, rag: RAGComponents) -> int:
    """Retrieve chunks for a question and print them with citations."""
    filters = coerce_filters({"place": args.place, "section": args.section})
    bundle = await rag.retriever.retrieve(
        args.text,
        place=filters.place if filters else None,
        section=filters.section if filters else None,
        top_k=args.top_k,
    )

    if not bundle.has_data:
        print("No relevant travel-guide data found.")
        return 0

    for index, chunk in enumerate(bundle.chunks, start=1):
        meta = chunk.metadata
        print(
            f"[{index}] {meta.place} / {meta.section.value} "
            f"({meta.source.value}, similarity {chunk.similarity:.2f})"
        )
        print(f"    {chunk.text[:200].replace(chr(10), ' ')}")
    print()
    print(rag.citations.format_for_ui(bundle.citations))
    return 0


async def _handle_stats(rag: RAGComponents) -> int:
    """Display corpus statistics."""
    stats = await rag.vector_store.get_stats()

    print("Corpus Statistics")
    print("=" * 40)
    print(f"  Total chunks:     {stats.total_chunks}")
    print(f"  Places:           {len(stats.places)}")

    if stats.chunks_by_source:
        print("\n  Chunks by source:")
        for source, count in sorted(stats.chunks_by_source.items()):
            print(f"    {source:<15} {count}")
    if stats.chunks_by_section:
        print("\n  Chunks by section:")
        for section, count in sorted(stats.chunks_by_section.items()):
            print(f"    {section:<15} {count}")
    if stats.places:
        print(f"\n  Places: {', '.join(stats.places)}")
    return 0


async def _handle_purge(args: argparse.Namespace, rag: RAGComponents) -> int:
    """Delete all chunks for a place.

    Destructive; asks for confirmation unless --yes is passed.
    """
    target = args.place if not args.source else f"{args.place} ({args.source})"
    if not args.yes:
        confirm = input(f"  Delete all chunks for {target}? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0

    deleted = await rag.vector_store.delete_by_place(args.place, source=args.source)
    print(f"Deleted {deleted} chunks for {target}.")
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    """Build components, open the index, dispatch, and shut down."""
    components = build_components(app_settings)
    async with rag_runtime(app_settings, components) as rag:
        if args.command == "ingest":
            return await _handle_ingest(args, rag)
        if args.command == "query":
            return await _handle_query(args, rag)
        if args.command == "stats":
            return await _handle_stats(rag)
        if args.command == "purge":
            return await _handle_purge(args, rag)
    return 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the index CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Build and query the wayfinder travel-guide index.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Index commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest guide pages for places")
    ingest_parser.add_argument(
        "--places", required=True, help='Comma-separated place names, e.g. "Jaipur,Delhi"'
    )
    ingest_parser.add_argument(
        "--sources",
        default=_DEFAULT_SOURCES,
        help=f"Comma-separated sources (default: {_DEFAULT_SOURCES})",
    )

    # -- query --
    query_parser = subparsers.add_parser("query", help="Retrieve chunks for a question")
    query_parser.add_argument("text", help="The question to retrieve for")
    query_parser.add_argument("--place", default=None, help="Restrict to one place")
    query_parser.add_argument(
        "--section", default=None, help="Restrict to one section (Safety, Eat, ...)"
    )
    query_parser.add_argument(
        "--top-k", type=int, default=None, dest="top_k", help="Maximum chunks to return"
    )

    # -- stats --
    subparsers.add_parser("stats", help="Show corpus statistics")

    # -- purge --
    purge_parser = subparsers.add_parser("purge", help="Delete all chunks for a place")
    purge_parser.add_argument("--place", required=True, help="Place to purge")
    purge_parser.add_argument(
        "--source",
        default=None,
        choices=[s.value for s in RAGSource],
        help="Only purge chunks from this source",
    )
    purge_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, loads :class:`Settings` from the environment /
    ``.env`` file, configures logging, and exits with the handler's status.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        app_settings = Settings()
    except ValueError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(app_settings.log_level, json_output=app_settings.app_env == "production")

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except WayfinderError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
