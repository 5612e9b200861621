"""Logging configuration for opencode_island with structlog support."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


LogLevel = int | str

HTTP_LOGGERS = ("httpx", "httpcore")
"""Transport loggers that trace every request, including each event feed reconnect."""


def _to_level(level: LogLevel) -> int:
    return getattr(logging, level.upper()) if isinstance(level, str) else level


def configure_logging(
    level: LogLevel = "INFO",
    *,
    use_colors: bool | None = None,
    json_logs: bool = False,
    http_level: LogLevel = "WARNING",
) -> None:
    """Configure structlog and standard logging.

    Args:
        level: Logging level
        use_colors: Whether to use colored output (auto-detected if None)
        json_logs: Force JSON output regardless of TTY detection
        http_level: Level for the httpx and httpcore loggers, kept separate
                    so debug output is not dominated by request traces
    """
    level = _to_level(level)

    logging.basicConfig(
        level=level,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
        format="%(message)s",  # structlog handles formatting
    )
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(_to_level(http_level))

    if use_colors is None:
        use_colors = sys.stderr.isatty() and not json_logs

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs or (not use_colors and not sys.stderr.isatty()):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=use_colors))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, log_level: LogLevel | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: The name of the logger, will be prefixed with 'opencode_island.'
              unless it already lives in that namespace
        log_level: The logging level to set for the logger

    Returns:
        A structlog BoundLogger instance
    """
    full_name = name if name.startswith("opencode_island") else f"opencode_island.{name}"
    logger = structlog.get_logger(full_name)
    if log_level is not None:
        logging.getLogger(full_name).setLevel(_to_level(log_level))
    return logger
