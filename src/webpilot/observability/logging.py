"""Logging configuration using Loguru.

This module provides:
- JSON lines output (serialized with orjson) for production
- Colorized human-readable output for development
- Session correlation via a context variable
- Interception of standard library logging (httpx, httpcore, asyncio)
- Optional rotating file sink
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
from loguru import logger


if TYPE_CHECKING:
    from loguru import Logger, Record


# Values bound here are merged into every record emitted in the same async context
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")

PREVIEW_LIMIT = 200


class InterceptHandler(logging.Handler):
    """Forward standard library log records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Re-emit a stdlib record through Loguru at the matching level."""
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so Loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _format_json(record: Record) -> str:
    """Serialize a record (plus bound context) as a single JSON line."""
    record["extra"].update(_log_context.get())

    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["extra"].get("name", record["name"]),
        "function": record["function"],
        "line": record["line"],
        **record["extra"],
    }

    exception = record["exception"]
    if exception:
        payload["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    # default=str keeps non-JSON extras (enums, exceptions) from breaking the sink.
    # Braces are escaped because Loguru treats the return value as a template.
    line = orjson.dumps(payload, default=str).decode()
    return line.replace("{", "{{").replace("}", "}}") + "\n"


def _format_dev(record: Record) -> str:
    """Build a colorized template for development output."""
    context = _log_context.get()
    context_str = ""
    if context:
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        context_str = " | " + pairs.replace("{", "{{").replace("}", "}}")

    fmt = (
        "<green>{time:HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{line}</cyan>"
        f"{context_str} - "
        "<level>{message}</level>\n"
    )
    if record["exception"]:
        fmt += "{exception}\n"
    return fmt


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    *,
    is_development: bool = False,
    log_file: Path | str | None = None,
) -> None:
    """Configure Loguru sinks for the process.

    Args:
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: "json" or "text".
        is_development: Force the human-readable format.
        log_file: Optional path for a rotating JSON log file.
    """
    logger.remove()
    logger.configure(extra={"name": "webpilot"})

    use_json = log_format == "json" and not is_development
    logger.add(
        sys.stderr,
        format=_format_json if use_json else _format_dev,
        level=log_level.upper(),
        colorize=not use_json,
        backtrace=True,
        diagnose=not use_json,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=_format_json,
            level=log_level.upper(),
            rotation="50 MB",
            retention="7 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Logger:
    """Return the shared Loguru logger bound to ``name``."""
    return logger.bind(name=name)


def preview(text: str, limit: int = PREVIEW_LIMIT) -> str:
    """Truncate text for inclusion in a log record."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text)} chars)"


def bind_context(**kwargs: Any) -> None:
    """Bind values that are added to all records in the current context.

    Example:
        bind_context(session_id="3f2a9c")
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from the logging context."""
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


def clear_context() -> None:
    """Drop every bound context value."""
    _log_context.set({})


def get_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


__all__ = [
    "InterceptHandler",
    "bind_context",
    "clear_context",
    "get_context",
    "get_logger",
    "logger",
    "preview",
    "setup_logging",
    "unbind_context",
]
