"""structlog configuration.

Log events go to stderr so that stdout stays reserved for node results
when the engine is driven from the CLI.
"""

import logging
import sys

import structlog

from noderun.core.config import LoggingSettings


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog processors and level filtering.

    Safe to call more than once; the last call wins.

    Args:
        settings: Logging section of EngineSettings (defaults when None)
    """
    settings = settings or LoggingSettings()
    renderer: structlog.types.Processor
    if settings.json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
