"""Tests for OpenTelemetry tracing of agent runs."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from agent_loop.config import RetryPolicy
from agent_loop.core.agent import Agent
from agent_loop.core.callbacks import AgentCallbacks
from agent_loop.core.types import ModelResponse, TokenUsage, ToolCall
from agent_loop.errors import AgentErrorCode, ModelError, ToolError, ToolErrorCode
from agent_loop.telemetry import with_tracing
from agent_loop.tools.decorators import tool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeProvider:
    """Replays scripted responses; raises the ones that are exceptions."""

    def __init__(self, responses: list[Any]):
        self.name = "fake"
        self.model = "fake-model"
        self.supports_tool_binding = True
        self.responses = list(responses)

    async def invoke(self, messages):
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def stream(self, messages):
        raise NotImplementedError

    def bind_tools(self, tools):
        return self


@tool
def echo(text: str) -> str:
    """Echo the given text back.

    Args:
        text: Text to echo
    """
    return text


@tool
def read_config(path: str) -> str:
    """Read a configuration file.

    Args:
        path: File to read
    """
    raise ToolError(ToolErrorCode.PERMISSION_DENIED, f"Cannot read {path}")


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider


def spans_by_name(exporter):
    return {span.name: span for span in exporter.get_finished_spans()}


# ---------------------------------------------------------------------------
# Span tree
# ---------------------------------------------------------------------------

def test_tool_run_produces_agent_chat_and_tool_spans(exporter, tracer_provider):
    provider = FakeProvider([
        ModelResponse(
            content="",
            tool_calls=[ToolCall(id="call_1", name="echo", args={"text": "hi"})],
            usage=TokenUsage(10, 5, 15, 1),
        ),
        ModelResponse(content="Done: hi", usage=TokenUsage(20, 4, 24, 1)),
    ])
    tool_results = []
    callbacks = with_tracing(
        AgentCallbacks(on_tool_end=lambda ctx, name, result: tool_results.append(result)),
        provider_name="fake",
        model_name="fake-model",
        tracer_provider=tracer_provider,
    )
    agent = Agent(provider, tools=[echo], callbacks=callbacks)

    assert asyncio.run(agent.run("Echo hi")) == "Done: hi"

    finished = exporter.get_finished_spans()
    assert [span.name for span in finished] == [
        "chat fake-model",
        "execute_tool echo",
        "chat fake-model",
        "invoke_agent fake-model",
    ]
    agent_span = finished[-1]
    for child in finished[:-1]:
        assert child.parent.span_id == agent_span.context.span_id
        assert child.context.trace_id == agent_span.context.trace_id
        assert child.status.status_code == StatusCode.OK
    assert agent_span.status.status_code == StatusCode.OK
    assert agent_span.attributes["gen_ai.operation.name"] == "invoke_agent"
    assert agent_span.attributes["gen_ai.provider.name"] == "fake"

    first_chat = finished[0]
    assert first_chat.kind == SpanKind.CLIENT
    assert first_chat.attributes["gen_ai.request.model"] == "fake-model"
    assert first_chat.attributes["gen_ai.usage.input_tokens"] == 10
    assert first_chat.attributes["gen_ai.usage.output_tokens"] == 5

    tool_span = finished[1]
    assert tool_span.attributes["gen_ai.tool.name"] == "echo"
    assert "gen_ai.tool.call.arguments" not in tool_span.attributes
    assert "gen_ai.input.messages" not in first_chat.attributes

    # Wrapped callbacks still fire
    assert len(tool_results) == 1 and tool_results[0].success


def test_sensitive_data_recorded_when_enabled(exporter, tracer_provider):
    provider = FakeProvider([
        ModelResponse(content="", tool_calls=[ToolCall(id="call_1", name="echo", args={"text": "hi"})]),
        ModelResponse(content="Done: hi"),
    ])
    callbacks = with_tracing(
        provider_name="fake",
        model_name="fake-model",
        enable_sensitive_data=True,
        conversation_id="session-42",
        tracer_provider=tracer_provider,
    )
    agent = Agent(provider, system_prompt="Be brief.", tools=[echo], callbacks=callbacks)

    asyncio.run(agent.run("Echo hi"))

    spans = spans_by_name(exporter)
    tool_span = spans["execute_tool echo"]
    assert json.loads(tool_span.attributes["gen_ai.tool.call.arguments"]) == {"text": "hi"}
    assert json.loads(tool_span.attributes["gen_ai.tool.call.result"]) == "hi"

    chats = [span for span in exporter.get_finished_spans() if span.name == "chat fake-model"]
    sent = json.loads(chats[0].attributes["gen_ai.input.messages"])
    assert sent == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Echo hi"},
    ]
    assert chats[1].attributes["gen_ai.output.messages"] == "Done: hi"
    assert spans["invoke_agent fake-model"].attributes["gen_ai.conversation.id"] == "session-42"


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

def test_failed_run_marks_agent_span_and_closes_open_chat_span(exporter, tracer_provider):
    provider = FakeProvider([ModelError(AgentErrorCode.AUTHENTICATION_ERROR, "Invalid API key")])
    callbacks = with_tracing(provider_name="fake", model_name="fake-model", tracer_provider=tracer_provider)
    agent = Agent(provider, callbacks=callbacks, retry_policy=RetryPolicy(enabled=False))

    assert asyncio.run(agent.run("Hi")) == "Error: Invalid API key"

    spans = spans_by_name(exporter)
    agent_span = spans["invoke_agent fake-model"]
    assert agent_span.status.status_code == StatusCode.ERROR
    assert agent_span.attributes["error.type"] == "AUTHENTICATION_ERROR"

    chat = spans["chat fake-model"]
    assert chat.status.status_code == StatusCode.ERROR
    assert chat.attributes["error.type"] == "AgentEndedEarly"


def test_tool_failure_marks_tool_span(exporter, tracer_provider):
    provider = FakeProvider([
        ModelResponse(content="", tool_calls=[ToolCall(id="c", name="read_config", args={"path": "/etc/app"})]),
        ModelResponse(content="I could not read it."),
    ])
    callbacks = with_tracing(provider_name="fake", model_name="fake-model", tracer_provider=tracer_provider)
    agent = Agent(provider, tools=[read_config], callbacks=callbacks)

    asyncio.run(agent.run("Read the config"))

    spans = spans_by_name(exporter)
    tool_span = spans["execute_tool read_config"]
    assert tool_span.status.status_code == StatusCode.ERROR
    assert tool_span.attributes["error.type"] == "PERMISSION_DENIED"
    # A tool failure is fed back to the model, the run itself succeeds
    assert spans["invoke_agent fake-model"].status.status_code == StatusCode.OK


def test_concurrent_runs_get_separate_traces(exporter, tracer_provider):
    class SlowProvider(FakeProvider):
        async def invoke(self, messages):
            await asyncio.sleep(0.01)
            return ModelResponse(content=messages[-1].content.upper())

    callbacks = with_tracing(provider_name="fake", model_name="fake-model", tracer_provider=tracer_provider)
    agent = Agent(SlowProvider([]), callbacks=callbacks)

    async def run():
        return await asyncio.gather(agent.run("one"), agent.run("two"))

    assert asyncio.run(run()) == ["ONE", "TWO"]

    finished = exporter.get_finished_spans()
    agents = [span for span in finished if span.name.startswith("invoke_agent")]
    chats = [span for span in finished if span.name.startswith("chat")]
    assert len(agents) == 2 and len(chats) == 2
    assert {chat.parent.span_id for chat in chats} == {span.context.span_id for span in agents}
