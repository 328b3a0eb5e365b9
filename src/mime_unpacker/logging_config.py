"""
Structured logging configuration using structlog.

Parser diagnostics are emitted as structlog events (``parser_debug``,
``parser_warning``, ``parser_error``) carrying the nesting depth.  Log
lines go to stderr so they never mix with command output on stdout.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from .config import settings


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for structured logging.

    Sets up processors for:
    - Context variable merging (e.g. the message being unpacked)
    - Log level addition
    - Exception info rendering
    - Timestamp addition
    - JSON or console rendering

    Args:
        level: Log level name; defaults to ``settings.log_level``
        json_output: Render JSON lines; defaults to ``settings.log_json``
    """
    level = level or settings.log_level
    json_output = settings.log_json if json_output is None else json_output

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.processors.JSONRenderer()
                if json_output
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


@contextmanager
def message_context(source: str) -> Iterator[None]:
    """
    Tag every log event in the block with the message being parsed.

    Args:
        source: Name of the input (usually a file path)
    """
    with structlog.contextvars.bound_contextvars(source=source):
        yield
