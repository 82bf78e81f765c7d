"""Structured logging via structlog.

Console output goes to stderr; when a log file is configured, events are
appended to it as JSON lines instead.

Until an application configures structlog itself (or calls
:func:`setup_logging`), library use only emits warnings and errors, to
stderr.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

import structlog

# Handler and log file installed by the last setup_logging call
_handler: logging.Handler | None = None
_log_file: TextIO | None = None


def configure_library_default() -> None:
    """Keep debug/info events quiet unless the host has configured structlog."""
    if structlog.is_configured():
        return
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def close_logging() -> None:
    """Detach and close the handler and log file from the previous setup."""
    global _handler, _log_file
    if _handler is not None:
        logging.getLogger().removeHandler(_handler)
        _handler.close()
        _handler = None
    if _log_file is not None:
        _log_file.close()
        _log_file = None


def setup_logging(log_level: str = "warning", log_file: str | None = None,
                  json_format: bool = False) -> None:
    """Configure stdlib logging and structlog at the given level."""
    global _handler, _log_file
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    close_logging()

    stream: TextIO = sys.stderr
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        stream = _log_file = open(log_file, "a")  # noqa: SIM115
        json_format = True

    _handler = logging.StreamHandler(stream)
    _handler.setLevel(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [_handler]

    renderer: structlog.types.Processor
    if json_format:
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
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
