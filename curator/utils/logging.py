"""Structured logging configuration for the curator.

Provides:
- Structured logging with structlog
- Context-aware logging (session-scoped fields)
- Operation start/end logging
"""

import logging
import sys
from contextlib import contextmanager
from typing import Optional

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Output logs as JSON
        include_timestamp: Include timestamps in logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso") if include_timestamp else structlog.processors.TimeStamper(fmt=None),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, **context) -> structlog.BoundLogger:
    """Get a configured logger with optional context.

    Args:
        name: Logger name
        **context: Additional context to bind

    Returns:
        Configured structlog logger
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


class LogContext:
    """Context manager for scoped logging context.

    Usage:
        with LogContext(session_id="sess-123"):
            logger.info("Curating session")
            # All logs within this block carry session_id
    """

    def __init__(self, **context):
        self.context = context
        self._bound = False

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        self._bound = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._bound:
            structlog.contextvars.unbind_contextvars(*self.context.keys())
            self._bound = False


@contextmanager
def log_operation(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context,
):
    """Context manager for logging operation start/end.

    Args:
        operation: Name of the operation
        logger: Optional logger to use
        **context: Additional context

    Yields:
        Dict to store operation results

    Example:
        with log_operation("curate_session", session_id="123") as op:
            result = await pipeline.curate(session)
            op["final_action"] = result.assessment.final_action.value
    """
    log = logger or get_logger()
    log = log.bind(operation=operation, **context)

    log.info(f"{operation} started")
    result = {"success": False, "error": None}

    try:
        yield result
        result["success"] = True
        log.info(f"{operation} completed", **result)
    except Exception as e:
        result["error"] = str(e)
        log.error(f"{operation} failed", **result)
        raise
