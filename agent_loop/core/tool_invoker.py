"""Tool resolution, execution and result normalization.

Every tool call ends as a :class:`ToolExecutionResult` whose ``content`` is a
string, regardless of what the tool returned or raised:

- plain string: forwarded as-is (observers get a synthetic ``ToolSuccess``)
- ``ToolSuccess``/``ToolFailure``: ``json.dumps(response.to_dict())``
- ``ToolError`` raised: JSON of a ``ToolFailure`` with the error's code
- any other exception: JSON of a ``ToolFailure`` with code ``UNKNOWN``
- unknown tool name: JSON of a ``ToolFailure`` with code ``NOT_FOUND``

Both JSON encodings are loss-free for JSON-serializable results; other
result values are encoded with ``str()``.
"""

import json
from typing import Any, Callable, Optional

from ..errors import RunAborted, ToolError, ToolErrorCode
from ..logging import get_logger
from ..tools.base import ToolContext, ToolFailure, ToolRegistry, ToolResponse, ToolSuccess
from .callbacks import AgentCallbacks
from .cancellation import run_cancellable
from .spans import SpanContext
from .types import ToolCall, ToolExecutionResult

logger = get_logger(__name__)

TOOL_ABORTED_MESSAGE = "Tool execution aborted"


def serialize_tool_response(response: ToolResponse) -> str:
    """Encode a structured tool response as the string sent to the model."""
    return json.dumps(response.to_dict(), ensure_ascii=False, default=str)


def _normalize_output(raw: Any) -> tuple[str, ToolResponse]:
    if isinstance(raw, str):
        return raw, ToolSuccess(result=raw)
    if isinstance(raw, (ToolSuccess, ToolFailure)):
        return serialize_tool_response(raw), raw
    # Anything else is treated as a successful structured result
    response = ToolSuccess(result=raw)
    return serialize_tool_response(response), response


class ToolInvoker:
    """Executes tool calls for one agent.

    Observers (``on_tool_start``/``on_tool_end``) only fire for tools that
    actually run; an unknown tool name produces a ``NOT_FOUND`` result and
    a diagnostic instead.
    """

    def __init__(self, callbacks: Optional[AgentCallbacks] = None):
        self.callbacks = callbacks or AgentCallbacks()

    async def invoke(
        self,
        call: ToolCall,
        tools: Optional[ToolRegistry],
        span_ctx: SpanContext,
        tool_ctx: ToolContext,
    ) -> ToolExecutionResult:
        """Execute ``call`` against ``tools`` and normalize the outcome.

        Never raises for tool failures. An abort of the run while the tool
        executes returns a failure result promptly; the caller decides what
        the abort means for the run.
        """
        tool = tools.get(call.name) if tools is not None else None
        if tool is None:
            message = f"Tool '{call.name}' not found"
            logger.warning("tool_not_found", tool_name=call.name, tool_call_id=call.id)
            self.callbacks.debug(message, {"tool_call": call.to_dict()})
            failure = ToolFailure(ToolErrorCode.NOT_FOUND, message)
            return ToolExecutionResult(name=call.name, id=call.id, content=serialize_tool_response(failure))

        self.callbacks.emit("on_tool_start", span_ctx, call.name, call.args)
        logger.info("tool_started", tool_name=call.name, tool_call_id=call.id)

        try:
            raw = await run_cancellable(tool.invoke(call.args, tool_ctx), tool_ctx.abort_signal)
            content, observed = _normalize_output(raw)
        except RunAborted:
            logger.warning("tool_aborted", tool_name=call.name, tool_call_id=call.id)
            observed = ToolFailure(ToolErrorCode.UNKNOWN, TOOL_ABORTED_MESSAGE)
            content = serialize_tool_response(observed)
        except ToolError as e:
            logger.warning("tool_failed", tool_name=call.name, error_code=e.code.value, error=e.message)
            observed = ToolFailure(e.code, e.message)
            content = serialize_tool_response(observed)
        except Exception as e:
            logger.error("tool_raised", tool_name=call.name, error=str(e), exc_info=True)
            observed = ToolFailure(ToolErrorCode.UNKNOWN, str(e) or type(e).__name__)
            content = serialize_tool_response(observed)

        self.callbacks.emit("on_tool_end", span_ctx, call.name, observed)
        logger.info("tool_finished", tool_name=call.name, success=observed.success)
        return ToolExecutionResult(name=call.name, id=call.id, content=content)


def make_metadata_sink(callbacks: AgentCallbacks, tool_name: str) -> Callable[[dict[str, Any]], None]:
    """Route a tool's metadata updates to ``on_debug``."""

    def sink(update: dict[str, Any]) -> None:
        callbacks.debug(f"Tool metadata update: {tool_name}", update)

    return sink
