"""structlog configuration for the wayfinder CLI and services.

One processor chain serves two renderers: a coloured console view while
developing and one JSON object per line in production (``APP_ENV`` set to
``production`` or ``json_output=True``).  The stdlib root logger is routed
through the same chain so chromadb, httpx and openai records look like
ours.  Everything is written to stderr; stdout belongs to CLI reports.
"""

import logging
import os
import sys

import structlog

_PRODUCTION = "production"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderer(as_json: bool) -> structlog.types.Processor:
    if as_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _route_stdlib_logging(
    processors: list[structlog.types.Processor],
    renderer: structlog.types.Processor,
    level: int,
) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *processors,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Install the structlog pipeline and return a root logger.

    Parameters
    ----------
    log_level:
        Minimum level name (``DEBUG`` .. ``CRITICAL``); unknown names fall
        back to ``INFO``.
    json_output:
        Force JSON lines even outside production.
    """
    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO)
    as_json = json_output or os.environ.get("APP_ENV", "development") == _PRODUCTION

    processors = _shared_processors()
    renderer = _renderer(as_json)

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    _route_stdlib_logging(processors, renderer, level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
