# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line tools for operating the wayfinder travel-guide index outside
# of any long-running service.  Run with `python -m src.cli.ingest`.
#
# Architecture Notes:
#   - argparse subcommands (ingest / query / stats / purge).
#   - Components are built through src.main.build_components and opened
#     with src.main.rag_runtime, so the CLI and library callers share one
#     wiring path and one embedding model choice.
# =============================================================================

"""CLI tools for the wayfinder RAG index.

- ``python -m src.cli.ingest`` -- ingest guide pages, query, stats, purge.
"""
