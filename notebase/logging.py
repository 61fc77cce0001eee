"""
Logging configuration module for notebase.

structlog is set up once at startup. Output always goes to stderr: stdout is
the MCP stdio transport.
"""

import logging
import sys

import structlog

from .config import settings


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = settings.log_level
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | int | None = None, json_output: bool | None = None) -> None:
    """Configure structlog for the process.

    Args:
        level: Level name or number; defaults to ``settings.log_level``
        json_output: Render JSON lines instead of the console format;
            defaults to ``settings.log_json``
    """
    if json_output is None:
        json_output = settings.log_json
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **context) -> structlog.typing.FilteringBoundLogger:
    """Get a structlog logger, optionally bound to extra context."""
    logger = structlog.get_logger(name) if name else structlog.get_logger()
    return logger.bind(**context) if context else logger
