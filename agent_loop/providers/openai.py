"""OpenAI provider adapter.

Implements the ModelProvider protocol over the Chat Completions API of the
official ``openai`` SDK. The same adapter serves OpenAI-compatible local
runtimes (see :func:`create_local_provider`); whether tool binding is
offered is an explicit constructor flag because many local models cannot
emit tool calls.
"""

import json
import logging
from typing import Any, AsyncIterator, Optional, Sequence

import openai

from ..core.messages import Message, MessageRole
from ..core.types import ModelResponse, StreamChunk, ToolCall, extract_token_usage
from ..tools.base import Tool
from ..tools.schema_converters import anthropic_to_openai

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_LOCAL_MODEL = "ai/phi4"
DEFAULT_LOCAL_BASE_URL = "http://model-runner.docker.internal/"


def _message_role_for_system(model: str) -> str:
    """Choose the instruction role for newer model families.

    The Chat Completions API recommends using `developer` messages for o1 and
    newer model families.
    """
    m = (model or "").lower()
    if m.startswith("o1") or m.startswith("o3") or m.startswith("gpt-5"):
        return "developer"
    return "system"


def to_openai_messages(messages: Sequence[Message], model: str) -> list[dict[str, Any]]:
    """Convert agent messages into Chat Completions messages."""
    converted: list[dict[str, Any]] = []
    sys_role = _message_role_for_system(model)

    for msg in messages:
        if msg.role == MessageRole.SYSTEM:
            converted.append({"role": sys_role, "content": msg.content})
        elif msg.role == MessageRole.TOOL:
            converted.append({
                "role": "tool",
                "tool_call_id": msg.tool_call_id,
                "content": msg.content,
            })
        elif msg.role == MessageRole.ASSISTANT and msg.tool_calls:
            converted.append({
                "role": "assistant",
                "content": msg.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.args, ensure_ascii=False),
                        },
                    }
                    for call in msg.tool_calls
                ],
            })
        else:
            converted.append({"role": msg.role.value, "content": msg.content})

    return converted


def _parse_arguments(raw: Any, tool_name: str) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid JSON arguments for tool %s: %r", tool_name, raw)
        return {}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def parse_completion(resp: Any) -> ModelResponse:
    """Convert a ChatCompletion into a ModelResponse."""
    choices = getattr(resp, "choices", None) or []
    if not choices:
        return ModelResponse(content="", usage=extract_token_usage({"usage": getattr(resp, "usage", None)}))

    message = choices[0].message
    tool_calls: list[ToolCall] = []
    for tc in getattr(message, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        if fn is None:
            continue
        name = getattr(fn, "name", "") or ""
        tool_calls.append(ToolCall(
            id=getattr(tc, "id", None) or "",
            name=name,
            args=_parse_arguments(getattr(fn, "arguments", None), name),
        ))

    return ModelResponse(
        content=getattr(message, "content", None) or "",
        tool_calls=tool_calls,
        usage=extract_token_usage({"usage": getattr(resp, "usage", None)}),
    )


class OpenAIProvider:
    """ModelProvider backed by ``openai.AsyncOpenAI`` chat completions.

    Example:
        >>> provider = OpenAIProvider(model="gpt-4o-mini")
        >>> response = await provider.invoke([Message.user("Hello!")])
    """

    def __init__(
        self,
        model: str = DEFAULT_OPENAI_MODEL,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[Any] = None,
        supports_tool_binding: bool = True,
        name: str = "openai",
        max_tokens: Optional[int] = None,
        **request_kwargs: Any,
    ):
        """Initialize the provider.

        Args:
            model: Model identifier
            api_key: API key; defaults to ``OPENAI_API_KEY``
            base_url: Alternative API base URL (OpenAI-compatible servers)
            client: Pre-built async client, used instead of creating one
            supports_tool_binding: Whether :meth:`bind_tools` is offered
            name: Provider identity reported in errors and logs
            max_tokens: Completion token limit
            **request_kwargs: Extra Chat Completions parameters (temperature, ...)
        """
        self.name = name
        self.model = model
        self.supports_tool_binding = supports_tool_binding
        self.max_tokens = max_tokens
        self.request_kwargs = request_kwargs
        self.client = client if client is not None else openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    def _build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(messages, self.model),
            **self.request_kwargs,
        }
        if self.max_tokens is not None:
            request["max_completion_tokens"] = self.max_tokens
        if tools:
            request["tools"] = tools
            # Let the model decide; callers can override via request_kwargs
            request.setdefault("tool_choice", "auto")
        return request

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> ModelResponse:
        request = self._build_request(messages, tools)
        logger.debug("OpenAI request: model=%s messages=%d tools=%d", self.model, len(messages), len(tools or []))
        resp = await self.client.chat.completions.create(**request)
        return parse_completion(resp)

    async def invoke(self, messages: Sequence[Message]) -> ModelResponse:
        return await self.complete(messages)

    async def stream(self, messages: Sequence[Message]) -> AsyncIterator[StreamChunk]:
        request = self._build_request(messages)
        request["stream"] = True
        request["stream_options"] = {"include_usage": True}
        # Awaiting create() opens the connection
        response_stream = await self.client.chat.completions.create(**request)
        return self._iter_chunks(response_stream)

    async def _iter_chunks(self, response_stream: Any) -> AsyncIterator[StreamChunk]:
        async for chunk in response_stream:
            usage = None
            if getattr(chunk, "usage", None) is not None:
                usage = extract_token_usage({"usage": chunk.usage})
            text = ""
            choices = getattr(chunk, "choices", None) or []
            if choices:
                delta = getattr(choices[0], "delta", None)
                text = getattr(delta, "content", None) or ""
            if text or usage is not None:
                yield StreamChunk(content=text, usage=usage)

    def bind_tools(self, tools: Sequence[Tool]) -> "OpenAIBoundModel":
        if not self.supports_tool_binding:
            raise NotImplementedError(f"Provider '{self.name}' does not support tool binding")
        schemas = [anthropic_to_openai(tool.schema) for tool in tools]
        return OpenAIBoundModel(self, schemas)

    def __repr__(self) -> str:
        return f"OpenAIProvider(name={self.name!r}, model={self.model!r})"


class OpenAIBoundModel:
    """An OpenAIProvider with function tools attached to every request."""

    def __init__(self, provider: OpenAIProvider, tool_schemas: list[dict[str, Any]]):
        self.provider = provider
        self.tool_schemas = tool_schemas

    async def invoke(self, messages: Sequence[Message]) -> ModelResponse:
        return await self.provider.complete(messages, tools=self.tool_schemas)


def create_local_provider(
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    supports_tool_binding: bool = False,
    client: Optional[Any] = None,
    **request_kwargs: Any,
) -> OpenAIProvider:
    """Create a provider for an OpenAI-compatible local runtime (e.g. Docker Model Runner).

    Empty strings fall back to the defaults. Local servers don't require auth.
    """
    return OpenAIProvider(
        model=model or DEFAULT_LOCAL_MODEL,
        api_key="not-needed",
        base_url=base_url or DEFAULT_LOCAL_BASE_URL,
        client=client,
        supports_tool_binding=supports_tool_binding,
        name="local",
        **request_kwargs,
    )
