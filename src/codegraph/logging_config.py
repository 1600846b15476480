"""structlog configuration for codegraph.

Logs go to stderr so command output on stdout stays machine-readable.
Set CODEGRAPH_DEBUG=1 to see debug events.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

from codegraph.config import ENV_DEBUG

_configured = False


def _stderr_logger(*args) -> structlog.PrintLogger:
    # looked up per call so a replaced sys.stderr is honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(debug: bool | None = None) -> None:
    """Configure structlog once per process."""
    global _configured
    if _configured:
        return

    if debug is None:
        debug = bool(os.environ.get(ENV_DEBUG))
    level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
    _configured = True
