"""Tests for the OpenAI provider adapter using a fake SDK client."""

import asyncio
import json
from types import SimpleNamespace

from agent_loop.core.messages import Message
from agent_loop.core.types import TokenUsage, ToolCall
from agent_loop.providers.openai import OpenAIProvider, create_local_provider, to_openai_messages
from agent_loop.tools.decorators import tool
from agent_loop.tools.base import ToolRegistry


class FakeCompletions:
    def __init__(self, result):
        self.result = result
        self.requests: list[dict] = []

    async def create(self, **request):
        self.requests.append(request)
        return self.result


def fake_client(result):
    completions = FakeCompletions(result)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def completion(content=None, tool_calls=None, usage=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


@tool
def echo(text: str) -> str:
    """Echo text back.

    Args:
        text: Text to echo
    """
    return text


def test_invoke_parses_text_and_usage():
    usage = {"prompt_tokens": 9, "completion_tokens": 3, "total_tokens": 12}
    client, completions = fake_client(completion(content="Hello!", usage=usage))
    provider = OpenAIProvider(model="gpt-4o-mini", client=client, temperature=0)

    response = asyncio.run(provider.invoke([Message.system("sys"), Message.user("Hi")]))

    assert response.content == "Hello!"
    assert response.tool_calls == []
    assert response.usage == TokenUsage(9, 3, 12, 1)
    request = completions.requests[0]
    assert request["model"] == "gpt-4o-mini"
    assert request["temperature"] == 0
    assert request["messages"] == [{"role": "system", "content": "sys"}, {"role": "user", "content": "Hi"}]
    assert "tools" not in request


def test_bound_model_sends_tools_and_parses_calls():
    raw_call = SimpleNamespace(
        id="call_1",
        function=SimpleNamespace(name="echo", arguments=json.dumps({"text": "hi"})),
    )
    client, completions = fake_client(completion(content=None, tool_calls=[raw_call]))
    provider = OpenAIProvider(client=client)
    bound = provider.bind_tools(list(ToolRegistry([echo])))

    response = asyncio.run(bound.invoke([Message.user("Echo hi")]))

    assert response.content == ""
    assert response.tool_calls == [ToolCall(id="call_1", name="echo", args={"text": "hi"})]
    request = completions.requests[0]
    assert request["tools"][0]["function"]["name"] == "echo"
    assert request["tool_choice"] == "auto"


def test_invalid_tool_arguments_become_empty_args():
    raw_call = SimpleNamespace(id=None, function=SimpleNamespace(name="echo", arguments="{not json"))
    client, _ = fake_client(completion(tool_calls=[raw_call]))

    response = asyncio.run(OpenAIProvider(client=client).invoke([Message.user("x")]))

    assert response.tool_calls == [ToolCall(id="", name="echo", args={})]


def test_message_conversion_for_tool_turns():
    messages = [
        Message.system("sys"),
        Message.user("Echo hi"),
        Message.assistant("", tool_calls=[ToolCall(id="c1", name="echo", args={"text": "hi"})]),
        Message.tool("hi", tool_call_id="c1", name="echo"),
    ]

    converted = to_openai_messages(messages, "o3-mini")

    assert converted[0] == {"role": "developer", "content": "sys"}
    assert converted[2]["tool_calls"][0]["function"] == {"name": "echo", "arguments": '{"text": "hi"}'}
    assert converted[2]["content"] is None
    assert converted[3] == {"role": "tool", "tool_call_id": "c1", "content": "hi"}


def test_stream_yields_text_and_usage():
    def chunk(text=None, usage=None):
        choices = [] if text is None else [SimpleNamespace(delta=SimpleNamespace(content=text))]
        return SimpleNamespace(choices=choices, usage=usage)

    async def event_stream():
        yield chunk("Hel")
        yield chunk("lo")
        yield chunk(usage={"prompt_tokens": 2, "completion_tokens": 2, "total_tokens": 4})

    class StreamingCompletions(FakeCompletions):
        async def create(self, **request):
            self.requests.append(request)
            return event_stream()

    completions = StreamingCompletions(None)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    provider = OpenAIProvider(client=client)

    async def run():
        stream = await provider.stream([Message.user("Hi")])
        return [c async for c in stream]

    chunks = asyncio.run(run())

    assert [c.content for c in chunks] == ["Hel", "lo", ""]
    assert chunks[-1].usage == TokenUsage(2, 2, 4, 1)
    assert completions.requests[0]["stream"] is True
    assert completions.requests[0]["stream_options"] == {"include_usage": True}


def test_local_provider_defaults():
    client, _ = fake_client(completion(content="ok"))
    provider = create_local_provider(model="", client=client)

    assert provider.name == "local"
    assert provider.model == "ai/phi4"
    assert provider.supports_tool_binding is False
