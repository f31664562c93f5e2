"""Run-scoped logging context.

Values bound here ride along with every log event emitted from the same
async task, so a single agent run can be followed through the retry,
tool and streaming layers by its ``trace_id``.

Bindings are token based: each :func:`bind_context` returns a token and
:func:`reset_context` restores exactly the context that was current before,
so nested and overlapping runs never clobber each other's values.
"""
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Iterator

_log_context: ContextVar[dict[str, Any]] = ContextVar("agent_loop_log_context", default={})


def bind_context(**kwargs: Any) -> Token:
    """Bind key-value pairs on top of the current logging context.

    Returns:
        Token to pass to :func:`reset_context`.

    Example:
        >>> token = bind_context(tool_name="echo")
        >>> reset_context(token)
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    return _log_context.set(current)


def reset_context(token: Token) -> None:
    """Restore the context that was current when ``token`` was issued."""
    _log_context.reset(token)


@contextmanager
def run_context(trace_id: str, session_id: str, **extra: Any) -> Iterator[dict[str, Any]]:
    """Bind a run's ``trace_id`` and ``session_id`` for the enclosed block.

    Async generators must only enter this around their own work, never
    across a ``yield``: the generator body runs in its consumer's context.

    Example:
        >>> with run_context(trace_id="4bf92f35", session_id="session-1"):
        ...     logger.info("agent_run_started")
    """
    token = bind_context(trace_id=trace_id, session_id=session_id, **extra)
    try:
        yield get_context()
    finally:
        reset_context(token)


def clear_context() -> None:
    _log_context.set({})


def get_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()
