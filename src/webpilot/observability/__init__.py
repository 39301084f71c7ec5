"""Observability components: structured logging."""

from webpilot.observability.logging import (
    bind_context,
    clear_context,
    get_context,
    get_logger,
    logger,
    preview,
    setup_logging,
    unbind_context,
)


__all__ = [
    "bind_context",
    "clear_context",
    "get_context",
    "get_logger",
    "logger",
    "preview",
    "setup_logging",
    "unbind_context",
]
