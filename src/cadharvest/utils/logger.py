"""
Logging Configuration

Structured logging for the ingestion pipeline. Every scraper, limiter and
pipeline module logs snake_case events through structlog; per-item context
(source, identifier) is carried in contextvars so worker threads tag their
own log lines.
"""
import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor

from config.settings import settings

# Third-party loggers that are chatty at INFO when every request is retried
NOISY_LOGGERS = ("urllib3", "urllib3.connectionpool", "charset_normalizer")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add application context to all log entries.
    """
    event_dict["environment"] = settings.environment
    event_dict["app"] = "cadharvest"
    return event_dict


def _build_processors(log_format: str) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.processors.ExceptionRenderer())
        processors.append(structlog.dev.ConsoleRenderer())

    return processors


def setup_logging(log_level: str = None, log_format: str = None) -> structlog.BoundLogger:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override for settings.log_level
        log_format: Override for settings.log_format ("json" or "console")

    Returns:
        Configured structlog logger instance
    """
    level = getattr(logging, (log_level or settings.log_level).upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_build_processors(log_format or settings.log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


@contextmanager
def scrape_context(**values: Any) -> Iterator[None]:
    """
    Bind values (source, identifier, ...) to every log line emitted inside
    the block on the current thread.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
