"""Agent lifecycle callbacks.

Callbacks let UIs and telemetry observe a run without the agent depending on
them. Every callback is optional, and a callback that raises is logged and
ignored: observers can never change the outcome of a run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, TYPE_CHECKING

from ..logging import get_logger

if TYPE_CHECKING:
    from ..errors import AgentErrorResponse
    from ..tools.base import ToolResponse
    from .messages import Message
    from .spans import SpanContext
    from .types import TokenUsage

logger = get_logger(__name__)


@dataclass
class AgentCallbacks:
    """Optional hooks fired during a run.

    Attributes:
        on_agent_start: ``(ctx, query)`` when a run starts
        on_agent_end: ``(ctx, answer)`` when a run ends; receives the
            ``"Error: ..."`` string when the run failed
        on_llm_start: ``(ctx, model, messages)`` before each model call
        on_llm_stream: ``(ctx, chunk)`` for each streamed text delta
        on_llm_end: ``(ctx, response, usage)`` after each model call
        on_tool_start: ``(ctx, tool_name, args)`` before a tool runs
        on_tool_end: ``(ctx, tool_name, result)`` after a tool ran
        on_error: ``(ctx, error)`` once per failed run
        on_retry: ``(attempt, delay_ms)`` before each retry sleep
        on_debug: ``(message, data)`` diagnostics
    """
    on_agent_start: Optional[Callable[["SpanContext", str], Any]] = None
    on_agent_end: Optional[Callable[["SpanContext", str], Any]] = None
    on_llm_start: Optional[Callable[["SpanContext", str, Sequence["Message"]], Any]] = None
    on_llm_stream: Optional[Callable[["SpanContext", str], Any]] = None
    on_llm_end: Optional[Callable[["SpanContext", str, Optional["TokenUsage"]], Any]] = None
    on_tool_start: Optional[Callable[["SpanContext", str, dict[str, Any]], Any]] = None
    on_tool_end: Optional[Callable[["SpanContext", str, "ToolResponse"], Any]] = None
    on_error: Optional[Callable[["SpanContext", "AgentErrorResponse"], Any]] = None
    on_retry: Optional[Callable[[int, int], Any]] = None
    on_debug: Optional[Callable[..., Any]] = None

    def emit(self, name: str, *args: Any) -> None:
        """Fire callback ``name`` with ``args``, swallowing and logging failures."""
        callback = getattr(self, name, None)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.warning("callback_failed", callback=name, exc_info=True)

    def debug(self, message: str, data: Any = None) -> None:
        """Shorthand for ``emit("on_debug", ...)``, omitting ``data`` when None."""
        if data is None:
            self.emit("on_debug", message)
        else:
            self.emit("on_debug", message, data)
