"""
Structured logging configuration using structlog.
"""

import logging
import sys

import structlog

from tripcrew.core.config import LOG_FORMAT, LOG_LEVEL


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    Renders JSON when LOG_FORMAT=json, otherwise a colored console output.
    """
    if LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("request_accepted", request_id=request_id, trip_id=trip_id)
    """
    return structlog.get_logger(name)
