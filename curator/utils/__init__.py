"""Utility modules."""

from .logging import LogContext, configure_logging, get_logger, log_operation

__all__ = ["LogContext", "configure_logging", "get_logger", "log_operation"]
