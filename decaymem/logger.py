"""Structured logging setup for applications embedding decaymem.

The library itself only emits events through ``structlog.get_logger()``; it
never configures logging on import. Hosts call ``setup_logging`` once at
startup to route those events through the stdlib root logger.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from decaymem.constants import DEFAULT_LOG_LEVEL, DEFAULT_LOG_SERVICE

_handler: logging.Handler | None = None


def setup_logging(
    service: str = DEFAULT_LOG_SERVICE,
    level: str = DEFAULT_LOG_LEVEL,
    *,
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog to render through the stdlib root logger.

    ``json_output`` selects one JSON object per line; otherwise the
    human-readable console renderer is used. Calling again replaces the
    previously installed handler.
    """
    global _handler
    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler(stream or sys.stdout)
    _handler.setLevel(log_level)
    root.addHandler(_handler)
    root.setLevel(log_level)

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _add_service(service),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def reset_logging() -> None:
    """Remove the installed handler and restore structlog defaults. Idempotent."""
    global _handler
    if _handler is not None:
        logging.getLogger().removeHandler(_handler)
        _handler = None
    structlog.reset_defaults()


def _add_service(service: str) -> structlog.types.Processor:
    """Return a processor that adds the service name to every log entry."""

    def processor(
        _logger: structlog.types.WrappedLogger,
        _method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["service"] = service
        return event_dict

    return processor
