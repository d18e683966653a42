"""structlog configuration shared by the API process and scripts."""

import logging
import sys

import structlog

from dealhub.config import settings


def setup_logging() -> None:
    """Configure stdlib logging and structlog once at process start.

    DEBUG mode renders colourised console lines; otherwise events are
    emitted as JSON, one per line.
    """
    level = logging.INFO if settings.DEBUG else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.DEBUG
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
