"""
Structured logging configuration for closed-function.

Configures structlog for console or JSON output with module and fingerprint context.
"""

import structlog
import logging
import sys
from typing import Any


def configure_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """
    Configure structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" for structured output, "text" for the console renderer
    """
    # Configure standard logging to use structlog
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
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


def get_logger(module: str = None, fingerprint: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with optional context.

    Args:
        module: Host module id for tracing
        fingerprint: Build fingerprint for tracing

    Returns:
        Configured logger instance
    """
    context: dict[str, Any] = {}
    if module:
        context["module"] = module
    if fingerprint:
        context["fingerprint"] = fingerprint

    return structlog.get_logger(**context)
