"""
NexML Marketplace - Monitoring Module

Structured logging, operation context and timing helpers.
"""

from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    log_duration,
    operation_context,
    unbind_context,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "operation_context",
    "log_duration",
]
