"""Tests for the Anthropic provider adapter using a fake SDK client."""

import asyncio
from types import SimpleNamespace

from agent_loop.core.messages import Message
from agent_loop.core.types import TokenUsage, ToolCall
from agent_loop.providers.anthropic import AnthropicProvider, to_anthropic_messages
from agent_loop.tools.base import ToolRegistry
from agent_loop.tools.decorators import tool


class FakeMessages:
    def __init__(self, result):
        self.result = result
        self.requests: list[dict] = []

    async def create(self, **request):
        self.requests.append(request)
        return self.result


@tool
def echo(text: str) -> str:
    """Echo text back.

    Args:
        text: Text to echo
    """
    return text


def test_invoke_parses_text_tool_use_and_usage():
    resp = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="Let me echo that."),
            SimpleNamespace(type="tool_use", id="toolu_1", name="echo", input={"text": "hi"}),
        ],
        usage=SimpleNamespace(input_tokens=20, output_tokens=6),
    )
    messages_api = FakeMessages(resp)
    provider = AnthropicProvider(model="claude-sonnet-4-5", client=SimpleNamespace(messages=messages_api))
    bound = provider.bind_tools(list(ToolRegistry([echo])))

    response = asyncio.run(bound.invoke([Message.system("sys"), Message.user("Echo hi")]))

    assert response.content == "Let me echo that."
    assert response.tool_calls == [ToolCall(id="toolu_1", name="echo", args={"text": "hi"})]
    assert response.usage == TokenUsage(20, 6, 26, 1)
    request = messages_api.requests[0]
    assert request["system"] == "sys"
    assert request["max_tokens"] == 2048
    assert request["messages"] == [{"role": "user", "content": "Echo hi"}]
    assert request["tools"][0]["name"] == "echo"
    assert "input_schema" in request["tools"][0]


def test_tool_results_are_grouped_into_one_user_turn():
    messages = [
        Message.system("sys"),
        Message.user("Run both"),
        Message.assistant("", tool_calls=[
            ToolCall(id="a", name="echo", args={"text": "1"}),
            ToolCall(id="b", name="echo", args={"text": "2"}),
        ]),
        Message.tool("1", tool_call_id="a", name="echo"),
        Message.tool("2", tool_call_id="b", name="echo"),
    ]

    system, converted = to_anthropic_messages(messages)

    assert system == "sys"
    assert converted[1] == {
        "role": "assistant",
        "content": [
            {"type": "tool_use", "id": "a", "name": "echo", "input": {"text": "1"}},
            {"type": "tool_use", "id": "b", "name": "echo", "input": {"text": "2"}},
        ],
    }
    assert converted[2] == {
        "role": "user",
        "content": [
            {"type": "tool_result", "tool_use_id": "a", "content": "1"},
            {"type": "tool_result", "tool_use_id": "b", "content": "2"},
        ],
    }
    assert len(converted) == 3


def test_stream_yields_text_deltas_and_final_usage():
    events = [
        SimpleNamespace(type="message_start", message=SimpleNamespace(usage=SimpleNamespace(input_tokens=11, output_tokens=1))),
        SimpleNamespace(type="content_block_start", index=0),
        SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="Hi ")),
        SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="there")),
        SimpleNamespace(type="message_delta", usage=SimpleNamespace(output_tokens=5)),
        SimpleNamespace(type="message_stop"),
    ]

    async def event_stream():
        for event in events:
            yield event

    class StreamingMessages(FakeMessages):
        async def create(self, **request):
            self.requests.append(request)
            return event_stream()

    messages_api = StreamingMessages(None)
    provider = AnthropicProvider(client=SimpleNamespace(messages=messages_api))

    async def run():
        stream = await provider.stream([Message.user("Hi")])
        return [c async for c in stream]

    chunks = asyncio.run(run())

    assert [c.content for c in chunks if c.content] == ["Hi ", "there"]
    assert chunks[-1].usage == TokenUsage(11, 5, 16, 1)
    assert messages_api.requests[0]["stream"] is True
    assert "tools" not in messages_api.requests[0]
