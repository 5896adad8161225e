"""Structured logging configuration."""

import logging
import sys

import structlog

from core.config import settings


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger.

    Production renders one JSON object per line; other environments use the
    coloured console renderer. Context bound through
    ``structlog.contextvars`` (request id, tick number) is merged into every
    event.
    """
    level = logging.DEBUG if settings.debug else logging.INFO

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: structlog.types.Processor
    if settings.is_production:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # SQL echo goes through the stdlib logger; keep it quiet unless debugging.
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


_reported: set[tuple[str, str]] = set()


def warn_once(event: str, value: object, **kwargs: object) -> None:
    """Log a configuration error once per distinct (event, value) pair."""
    marker = (event, repr(value))
    if marker in _reported:
        return
    _reported.add(marker)
    structlog.get_logger().warning(event, value=value, **kwargs)
