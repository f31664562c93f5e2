"""Agent orchestrator.

This module provides the :class:`Agent` that runs the tool-calling loop:

    assemble messages -> invoke model -> execute requested tools -> repeat

until the model answers without requesting tools, the iteration limit is hit,
a model call fails terminally, or the run is aborted. Runs never raise for
these failures; they return ``"Error: <message>"`` and report an
:class:`~agent_loop.errors.AgentErrorResponse` through ``on_error``.
"""

import time
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Iterable, Optional, Union

from ..config import AgentSettings, RetryPolicy
from ..errors import (
    AgentErrorCode,
    AgentErrorResponse,
    ModelError,
    ProviderErrorMetadata,
    RunAborted,
    error_response,
    to_model_error,
)
from ..logging import get_logger, run_context
from ..tools.base import Tool, ToolContext, ToolRegistry
from .callbacks import AgentCallbacks
from .cancellation import AbortSignal, run_cancellable
from .messages import HistoryEntry, Message, MessageAssembler
from .protocols import BoundModel, ModelProvider
from .retry import RetryContext, RetryExecutor
from .spans import SpanContext, create_child_span_context, create_span_context
from .streaming import relay_stream
from .tool_invoker import ToolInvoker, make_metadata_sink
from .types import AgentRunResult, TokenUsage

logger = get_logger(__name__)

ERROR_PREFIX = "Error: "
ABORTED_MESSAGE = "Run aborted"


def _new_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass
class _RunState:
    """Mutable bookkeeping owned by a single run."""
    messages: tuple[Message, ...] = ()
    usage: TokenUsage = field(default_factory=TokenUsage)
    llm_call_count: int = 0
    tools_executed: int = 0


class Agent:
    """Provider-agnostic agent running the tool-calling loop.

    One Agent may serve several runs, including concurrent ones; runs share
    only the agent's configuration and tool registry. Every run gets its own
    abort signal, so aborting one run never affects a later one.

    :meth:`abort` signals only the most recently started run. To cancel a
    specific run while others overlap it on the same Agent, pass that run
    its own ``abort_signal`` and abort the signal directly.

    Example:
        >>> from agent_loop import Agent, tool
        >>> from agent_loop.providers import OpenAIProvider
        >>>
        >>> @tool
        ... def echo(text: str) -> str:
        ...     '''Echo text back.
        ...
        ...     Args:
        ...         text: Text to echo
        ...     '''
        ...     return text
        >>>
        >>> agent = Agent(OpenAIProvider(model="gpt-4o-mini"), tools=[echo])
        >>> answer = await agent.run("Echo 'hi' back to me")
    """

    def __init__(
        self,
        provider: ModelProvider,
        system_prompt: Optional[str] = None,
        tools: Union[ToolRegistry, Iterable[Union[Tool, Callable[..., Any]]], None] = None,
        callbacks: Optional[AgentCallbacks] = None,
        max_iterations: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        settings: Optional[AgentSettings] = None,
        session_id: Optional[str] = None,
    ):
        """Initialize the agent.

        Args:
            provider: Model provider used for every model call
            system_prompt: System prompt; falls back to ``settings.system_prompt``
            tools: A ToolRegistry, or tools / ``@tool`` functions to register
            callbacks: Lifecycle observers
            max_iterations: Maximum model invocations per run
            retry_policy: Retry behaviour for model calls
            settings: Defaults for anything not passed explicitly
            session_id: Session identifier handed to tools; generated if omitted
        """
        settings = settings or AgentSettings()

        self.provider = provider
        self.system_prompt = system_prompt if system_prompt is not None else settings.system_prompt
        if isinstance(tools, ToolRegistry):
            self.tools = tools
        else:
            self.tools = ToolRegistry(tools)
        self.callbacks = callbacks or AgentCallbacks()
        self.max_iterations = max_iterations if max_iterations is not None else settings.max_iterations
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        self.retry_policy = retry_policy or settings.retry
        self.session_id = session_id or _new_id("session")

        self._tool_invoker = ToolInvoker(self.callbacks)
        self._assembler = MessageAssembler(self.system_prompt, on_debug=self._on_debug)
        self._current_signal: Optional[AbortSignal] = None

        logger.debug(
            "agent_initialized",
            provider=provider.name,
            model=provider.model,
            tool_count=len(self.tools),
            max_iterations=self.max_iterations,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        query: str,
        history: Optional[Iterable[HistoryEntry]] = None,
        abort_signal: Optional[AbortSignal] = None,
    ) -> str:
        """Run the agent loop and return the final answer.

        Returns:
            The model's final answer, or ``"Error: <message>"`` when the run
            failed (the failure is also passed to ``on_error``).
        """
        result = await self.run_with_result(query, history=history, abort_signal=abort_signal)
        return result.answer

    async def run_with_result(
        self,
        query: str,
        history: Optional[Iterable[HistoryEntry]] = None,
        abort_signal: Optional[AbortSignal] = None,
    ) -> AgentRunResult:
        """Run the agent loop and return everything known about the run."""
        signal = self._start_signal(abort_signal)
        root = create_span_context()
        state = _RunState()

        with self._log_context(root):
            logger.info("agent_run_started", query_length=len(query), tool_count=len(self.tools))
            self.callbacks.emit("on_agent_start", root, query)

            try:
                answer = await self._run_loop(query, history, signal, root, state)
            except RunAborted:
                error = error_response(AgentErrorCode.ABORTED, ABORTED_MESSAGE)
            except Exception as e:
                error = self._error_from_exception(e)
            else:
                logger.info(
                    "agent_run_completed",
                    llm_calls=state.llm_call_count,
                    tools_executed=state.tools_executed,
                    total_tokens=state.usage.total_tokens,
                )
                self.callbacks.emit("on_agent_end", root, answer)
                return AgentRunResult(
                    answer=answer,
                    success=True,
                    usage=state.usage,
                    llm_call_count=state.llm_call_count,
                    tools_executed=state.tools_executed,
                    messages=state.messages,
                )

            error_text = self._emit_error(root, error)
            return AgentRunResult(
                answer=error_text,
                success=False,
                error=error,
                usage=state.usage,
                llm_call_count=state.llm_call_count,
                tools_executed=state.tools_executed,
                messages=state.messages,
            )

    async def run_stream(
        self,
        query: str,
        history: Optional[Iterable[HistoryEntry]] = None,
        abort_signal: Optional[AbortSignal] = None,
    ) -> AsyncIterator[str]:
        """Stream the model's answer as text deltas.

        Tool calling is not available in streaming mode; registered tools are
        ignored. A failure ends the stream with a final ``"Error: <message>"``
        item instead of raising. Waiting for the next chunk is raced against
        the abort signal, so an abort ends the stream without waiting for the
        provider.

        Yields:
            Text deltas, in order.
        """
        signal = self._start_signal(abort_signal)
        root = create_span_context()
        parts: list[str] = []
        final_usage: list[Optional[TokenUsage]] = [None]
        error: Optional[AgentErrorResponse] = None

        # The log context is bound per step: a generator body runs in its
        # consumer's context, and nothing may stay bound across a yield.
        with self._log_context(root):
            logger.info("agent_stream_started", query_length=len(query))
            self.callbacks.emit("on_agent_start", root, query)
            if len(self.tools):
                self.callbacks.debug(
                    "Streaming mode does not support tool calling; tools are ignored",
                    {"tools": self.tools.names},
                )

        try:
            with self._log_context(root):
                messages = self._assembler.assemble(query, history)
                llm_span = create_child_span_context(root)
                self.callbacks.emit("on_llm_start", llm_span, self.provider.model, messages)

                retry = self._make_retry_executor()
                stream = await retry.execute(
                    lambda: run_cancellable(self.provider.stream(messages), signal),
                    abort_signal=signal,
                )

            def on_chunk(text: str) -> None:
                self.callbacks.emit("on_llm_stream", llm_span, text)

            def on_end(usage: Optional[TokenUsage]) -> None:
                final_usage[0] = usage

            async with aclosing(relay_stream(stream, on_chunk=on_chunk, on_end=on_end)) as chunks:
                while True:
                    with self._log_context(root):
                        signal.raise_if_aborted()
                        try:
                            chunk = await run_cancellable(chunks.__anext__(), signal)
                        except StopAsyncIteration:
                            break
                    if chunk.content:
                        parts.append(chunk.content)
                        yield chunk.content
        except RunAborted:
            error = error_response(AgentErrorCode.ABORTED, ABORTED_MESSAGE)
        except Exception as e:
            error = self._error_from_exception(e)

        with self._log_context(root):
            if error is not None:
                error_text = self._emit_error(root, error)
            else:
                full_text = "".join(parts)
                self.callbacks.emit("on_llm_end", llm_span, full_text, final_usage[0])
                logger.info("agent_stream_completed", answer_length=len(full_text))
                self.callbacks.emit("on_agent_end", root, full_text)

        if error is not None:
            yield error_text

    def abort(self, reason: str = ABORTED_MESSAGE) -> None:
        """Abort the most recently started run, if it is still in flight.

        Earlier runs that overlap it are not affected; pass an
        :class:`AbortSignal` to ``run``/``run_stream`` to abort those.
        """
        if self._current_signal is not None:
            logger.info("agent_abort_requested", reason=reason)
            self._current_signal.abort(reason)

    # ------------------------------------------------------------------
    # Loop internals
    # ------------------------------------------------------------------

    async def _run_loop(
        self,
        query: str,
        history: Optional[Iterable[HistoryEntry]],
        signal: AbortSignal,
        root: SpanContext,
        state: _RunState,
    ) -> str:
        model, tools_enabled = self._resolve_model()
        state.messages = self._assembler.assemble(query, history)
        retry = self._make_retry_executor()
        message_id = _new_id("msg")

        for iteration in range(1, self.max_iterations + 1):
            signal.raise_if_aborted()
            llm_span = create_child_span_context(root)
            messages = state.messages

            logger.debug("llm_call_started", iteration=iteration, message_count=len(messages))
            self.callbacks.emit("on_llm_start", llm_span, self.provider.model, messages)

            response = await retry.execute(
                lambda: run_cancellable(model.invoke(messages), signal),
                abort_signal=signal,
            )
            state.llm_call_count += 1
            if response.usage is not None:
                state.usage = state.usage + response.usage
            self.callbacks.emit("on_llm_end", llm_span, response.content, response.usage)

            if not response.tool_calls:
                return response.content
            if not tools_enabled:
                self.callbacks.debug(
                    "Ignoring tool calls requested while running without tools",
                    {"tool_calls": [call.to_dict() for call in response.tool_calls]},
                )
                return response.content

            logger.info(
                "tool_calls_requested",
                iteration=iteration,
                tool_names=[call.name for call in response.tool_calls],
            )
            state.messages = state.messages + (Message.assistant(response.content, response.tool_calls),)

            # Sequential, in the order the model requested them
            for call in response.tool_calls:
                tool_ctx = ToolContext(
                    session_id=self.session_id,
                    message_id=message_id,
                    call_id=call.id,
                    abort_signal=signal,
                    metadata_sink=make_metadata_sink(self.callbacks, call.name),
                )
                result = await self._tool_invoker.invoke(
                    call, self.tools, create_child_span_context(root), tool_ctx
                )
                state.tools_executed += 1
                state.messages = state.messages + (
                    Message.tool(result.content, tool_call_id=result.id, name=result.name),
                )
                signal.raise_if_aborted()

        logger.warning("max_iterations_reached", max_iterations=self.max_iterations)
        raise ModelError(
            AgentErrorCode.MAX_ITERATIONS_EXCEEDED,
            f"Maximum iterations ({self.max_iterations}) reached",
        )

    def _resolve_model(self) -> tuple[Union[ModelProvider, BoundModel], bool]:
        """Pick the model for this run and whether tool calls are honoured."""
        if not len(self.tools):
            return self.provider, False

        if not self.provider.supports_tool_binding:
            logger.warning("tool_binding_unsupported", provider=self.provider.name)
            self.callbacks.debug(
                "Provider does not support tool binding; running without tools",
                {"provider": self.provider.name, "model": self.provider.model},
            )
            return self.provider, False

        try:
            return self.provider.bind_tools(list(self.tools)), True
        except Exception as e:
            logger.warning("tool_binding_failed", provider=self.provider.name, error=str(e))
            self.callbacks.debug(
                "Tool binding failed; running without tools",
                {"provider": self.provider.name, "error": str(e)},
            )
            return self.provider, False

    def _make_retry_executor(self) -> RetryExecutor:
        def on_retry(ctx: RetryContext) -> None:
            self.callbacks.emit("on_retry", ctx.attempt, ctx.delay_ms)

        def on_error(error: ModelError) -> None:
            self.callbacks.debug(
                "Model call failed",
                {"error": error.code.value, "message": error.message},
            )

        return RetryExecutor(self.retry_policy, on_retry=on_retry, on_error=on_error)

    def _start_signal(self, abort_signal: Optional[AbortSignal]) -> AbortSignal:
        signal = abort_signal or AbortSignal()
        self._current_signal = signal
        return signal

    def _log_context(self, root: SpanContext):
        return run_context(trace_id=root.trace_id, session_id=self.session_id)

    def _on_debug(self, message: str, data: Any = None) -> None:
        self.callbacks.debug(message, data)

    def _error_from_exception(self, exc: Exception) -> AgentErrorResponse:
        error = to_model_error(exc)
        metadata = ProviderErrorMetadata(
            provider=self.provider.name,
            model=self.provider.model,
            status_code=error.status_code,
            retry_after_ms=error.retry_after_ms,
            original_error=error.original_error,
        )
        return error_response(error.code, error.message, metadata)

    def _emit_error(self, ctx: SpanContext, error: AgentErrorResponse) -> str:
        error_text = f"{ERROR_PREFIX}{error.message}"
        logger.error("agent_run_failed", error_code=error.error.value, error=error.message)
        self.callbacks.emit("on_error", ctx, error)
        self.callbacks.emit("on_agent_end", ctx, error_text)
        return error_text

    def __repr__(self) -> str:
        return (
            f"Agent(provider={self.provider.name!r}, model={self.provider.model!r}, "
            f"tools={self.tools.names}, max_iterations={self.max_iterations})"
        )
