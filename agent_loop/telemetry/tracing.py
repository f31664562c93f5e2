"""OpenTelemetry tracing for agent runs.

:func:`with_tracing` wraps :class:`~agent_loop.core.callbacks.AgentCallbacks`
so that each run produces one ``invoke_agent`` span, with a ``chat`` child
span per model call and an ``execute_tool`` child span per tool call. Spans
carry the GenAI semantic convention attributes. Without an OpenTelemetry SDK
installed and configured, the API hands out non-recording spans and tracing
costs next to nothing.

Message contents, tool arguments and tool results are only recorded when
``enable_sensitive_data`` is set.

Example:
    >>> callbacks = with_tracing(
    ...     AgentCallbacks(on_tool_end=print_tool),
    ...     provider_name="openai",
    ...     model_name="gpt-4o",
    ... )
    >>> agent = Agent(provider, tools=tools, callbacks=callbacks)
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Optional, Sequence

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, TracerProvider

from ..core.callbacks import AgentCallbacks
from ..errors import ToolErrorCode
from ..logging import get_logger
from .conventions import (
    ATTR_ERROR_TYPE,
    ATTR_GEN_AI_CONVERSATION_ID,
    ATTR_GEN_AI_INPUT_MESSAGES,
    ATTR_GEN_AI_OPERATION_NAME,
    ATTR_GEN_AI_OUTPUT_MESSAGES,
    ATTR_GEN_AI_PROVIDER_NAME,
    ATTR_GEN_AI_REQUEST_MODEL,
    ATTR_GEN_AI_TOOL_CALL_ARGUMENTS,
    ATTR_GEN_AI_TOOL_CALL_ID,
    ATTR_GEN_AI_TOOL_CALL_RESULT,
    ATTR_GEN_AI_TOOL_NAME,
    ATTR_GEN_AI_USAGE_INPUT_TOKENS,
    ATTR_GEN_AI_USAGE_OUTPUT_TOKENS,
    ERROR_AGENT_ENDED_EARLY,
    OPERATION_CHAT,
    OPERATION_EXECUTE_TOOL,
    OPERATION_INVOKE_AGENT,
)

if TYPE_CHECKING:
    from ..core.messages import Message
    from ..core.spans import SpanContext
    from ..core.types import TokenUsage
    from ..errors import AgentErrorResponse
    from ..tools.base import ToolResponse

logger = get_logger(__name__)

TRACER_NAME = "agent_loop.genai"

_SpanKey = tuple[str, str]


def _key(ctx: SpanContext) -> _SpanKey:
    return (ctx.trace_id, ctx.span_id)


def _end_with_error(span: Span, error_type: str, description: Optional[str] = None) -> None:
    span.set_attribute(ATTR_ERROR_TYPE, error_type)
    span.set_status(Status(StatusCode.ERROR, description or error_type))
    span.end()


class AgentTracer:
    """Maps agent callbacks onto OpenTelemetry spans.

    Spans are tracked per run (``ctx.trace_id``), so concurrent runs sharing
    one set of callbacks each get their own span tree.
    """

    def __init__(
        self,
        provider_name: str,
        model_name: str,
        enable_sensitive_data: bool = False,
        conversation_id: Optional[str] = None,
        tracer_provider: Optional[TracerProvider] = None,
    ):
        self.provider_name = provider_name
        self.model_name = model_name
        self.enable_sensitive_data = enable_sensitive_data
        self.conversation_id = conversation_id
        self.tracer = trace.get_tracer(TRACER_NAME, tracer_provider=tracer_provider)

        self._agent_spans: dict[str, Span] = {}
        self._failed_runs: set[str] = set()
        self._llm_spans: dict[_SpanKey, Span] = {}
        self._tool_spans: dict[_SpanKey, Span] = {}

    def _parent(self, ctx: SpanContext):
        agent_span = self._agent_spans.get(ctx.trace_id)
        if agent_span is None:
            return None
        return trace.set_span_in_context(agent_span)

    # -- agent -------------------------------------------------------------

    def agent_started(self, ctx: SpanContext, query: str) -> None:
        attributes = {
            ATTR_GEN_AI_OPERATION_NAME: OPERATION_INVOKE_AGENT,
            ATTR_GEN_AI_PROVIDER_NAME: self.provider_name,
            ATTR_GEN_AI_REQUEST_MODEL: self.model_name,
        }
        if self.conversation_id:
            attributes[ATTR_GEN_AI_CONVERSATION_ID] = self.conversation_id
        self._agent_spans[ctx.trace_id] = self.tracer.start_span(
            f"{OPERATION_INVOKE_AGENT} {self.model_name}",
            kind=SpanKind.INTERNAL,
            attributes=attributes,
        )

    def agent_failed(self, ctx: SpanContext, error: AgentErrorResponse) -> None:
        span = self._agent_spans.get(ctx.trace_id)
        if span is None:
            return
        span.set_attribute(ATTR_ERROR_TYPE, error.error.value)
        span.set_status(Status(StatusCode.ERROR, error.message))
        self._failed_runs.add(ctx.trace_id)

    def agent_ended(self, ctx: SpanContext, answer: str) -> None:
        # Model calls and tools interrupted by an abort or failure never see
        # their end callback
        for spans in (self._llm_spans, self._tool_spans):
            for key in [key for key in spans if key[0] == ctx.trace_id]:
                _end_with_error(spans.pop(key), ERROR_AGENT_ENDED_EARLY)

        span = self._agent_spans.pop(ctx.trace_id, None)
        if span is None:
            return
        if ctx.trace_id in self._failed_runs:
            self._failed_runs.discard(ctx.trace_id)
        else:
            span.set_status(Status(StatusCode.OK))
        span.end()

    # -- model calls -------------------------------------------------------

    def llm_started(self, ctx: SpanContext, model: str, messages: Sequence[Message]) -> None:
        span = self.tracer.start_span(
            f"{OPERATION_CHAT} {model}",
            context=self._parent(ctx),
            kind=SpanKind.CLIENT,
            attributes={
                ATTR_GEN_AI_OPERATION_NAME: OPERATION_CHAT,
                ATTR_GEN_AI_PROVIDER_NAME: self.provider_name,
                ATTR_GEN_AI_REQUEST_MODEL: model,
            },
        )
        if self.enable_sensitive_data:
            span.set_attribute(
                ATTR_GEN_AI_INPUT_MESSAGES,
                json.dumps([{"role": m.role.value, "content": m.content} for m in messages]),
            )
        self._llm_spans[_key(ctx)] = span

    def llm_ended(self, ctx: SpanContext, response: str, usage: Optional[TokenUsage]) -> None:
        span = self._llm_spans.pop(_key(ctx), None)
        if span is None:
            return
        if usage is not None:
            span.set_attribute(ATTR_GEN_AI_USAGE_INPUT_TOKENS, usage.prompt_tokens)
            span.set_attribute(ATTR_GEN_AI_USAGE_OUTPUT_TOKENS, usage.completion_tokens)
        if self.enable_sensitive_data:
            span.set_attribute(ATTR_GEN_AI_OUTPUT_MESSAGES, response)
        span.set_status(Status(StatusCode.OK))
        span.end()

    # -- tools -------------------------------------------------------------

    def tool_started(self, ctx: SpanContext, tool_name: str, args: dict[str, Any]) -> None:
        span = self.tracer.start_span(
            f"{OPERATION_EXECUTE_TOOL} {tool_name}",
            context=self._parent(ctx),
            kind=SpanKind.INTERNAL,
            attributes={
                ATTR_GEN_AI_OPERATION_NAME: OPERATION_EXECUTE_TOOL,
                ATTR_GEN_AI_TOOL_NAME: tool_name,
                ATTR_GEN_AI_TOOL_CALL_ID: ctx.span_id,
            },
        )
        if self.enable_sensitive_data:
            span.set_attribute(ATTR_GEN_AI_TOOL_CALL_ARGUMENTS, json.dumps(args, default=str))
        self._tool_spans[_key(ctx)] = span

    def tool_ended(self, ctx: SpanContext, tool_name: str, result: ToolResponse) -> None:
        span = self._tool_spans.pop(_key(ctx), None)
        if span is None:
            return
        if not result.success:
            _end_with_error(span, ToolErrorCode(result.error).value, result.message)
            return
        if self.enable_sensitive_data:
            span.set_attribute(ATTR_GEN_AI_TOOL_CALL_RESULT, json.dumps(result.result, default=str))
        span.set_status(Status(StatusCode.OK))
        span.end()


def _chain(first, then):
    """Call ``first`` then the user's callback ``then`` (if any)."""
    def callback(*args):
        first(*args)
        if then is not None:
            then(*args)
    return callback


def with_tracing(
    callbacks: Optional[AgentCallbacks] = None,
    *,
    provider_name: str,
    model_name: str,
    enable_sensitive_data: bool = False,
    conversation_id: Optional[str] = None,
    tracer_provider: Optional[TracerProvider] = None,
) -> AgentCallbacks:
    """Return a copy of ``callbacks`` that also records OpenTelemetry spans.

    Args:
        callbacks: Callbacks to wrap; each still fires after its span update.
        provider_name: ``gen_ai.provider.name`` (e.g. "openai", "anthropic")
        model_name: Model recorded on the agent span
        enable_sensitive_data: Record messages, tool arguments and results
        conversation_id: Optional ``gen_ai.conversation.id``, e.g. the session id
        tracer_provider: Provider to use instead of the global one
    """
    callbacks = callbacks or AgentCallbacks()
    tracer = AgentTracer(
        provider_name,
        model_name,
        enable_sensitive_data=enable_sensitive_data,
        conversation_id=conversation_id,
        tracer_provider=tracer_provider,
    )
    logger.debug("tracing_enabled", provider=provider_name, model=model_name)
    return replace(
        callbacks,
        on_agent_start=_chain(tracer.agent_started, callbacks.on_agent_start),
        on_agent_end=_chain(tracer.agent_ended, callbacks.on_agent_end),
        on_llm_start=_chain(tracer.llm_started, callbacks.on_llm_start),
        on_llm_end=_chain(tracer.llm_ended, callbacks.on_llm_end),
        on_tool_start=_chain(tracer.tool_started, callbacks.on_tool_start),
        on_tool_end=_chain(tracer.tool_ended, callbacks.on_tool_end),
        on_error=_chain(tracer.agent_failed, callbacks.on_error),
    )
