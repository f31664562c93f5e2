"""Structured logging for agent_loop.

Every event an agent run emits, whether from agent_loop itself or from the
provider SDKs underneath it, carries the run's ``trace_id`` and
``session_id``. Output is console text or JSON lines, optionally mirrored
to a rotating file.

    >>> from agent_loop.logging import LogConfig, LogFormat, configure_logging
    >>> configure_logging(LogConfig(format=LogFormat.JSON))
"""
import structlog

from .config import (
    DEFAULT_LIBRARY_LEVELS,
    LogConfig,
    LogFormat,
    LogLevel,
    configure_logging,
    ensure_configured,
    is_configured,
)
from .context import bind_context, clear_context, get_context, reset_context, run_context


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, configuring defaults on first use."""
    ensure_configured()
    return structlog.get_logger(name)


__all__ = [
    "DEFAULT_LIBRARY_LEVELS",
    "LogConfig",
    "LogFormat",
    "LogLevel",
    "configure_logging",
    "ensure_configured",
    "is_configured",
    "get_logger",
    "bind_context",
    "reset_context",
    "run_context",
    "clear_context",
    "get_context",
]
