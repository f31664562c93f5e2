"""Anthropic provider adapter.

Implements the ModelProvider protocol over the Messages API of the official
``anthropic`` SDK. System messages become the top-level ``system`` prompt and
tool results are sent back as ``tool_result`` blocks in a user turn.
"""

import logging
from typing import Any, AsyncIterator, Optional, Sequence

import anthropic

from ..core.messages import Message, MessageRole
from ..core.types import ModelResponse, StreamChunk, TokenUsage, ToolCall, extract_token_usage
from ..tools.base import Tool
from ..tools.schema_converters import normalize_tool_schema

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 2048


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def to_anthropic_messages(messages: Sequence[Message]) -> tuple[Optional[str], list[dict[str, Any]]]:
    """Split agent messages into a system prompt and Messages API turns.

    Consecutive tool messages are merged into one user turn, as the API
    expects every ``tool_result`` answering one assistant turn together.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []

    for msg in messages:
        if msg.role == MessageRole.SYSTEM:
            system_parts.append(msg.content)
            continue

        if msg.role == MessageRole.TOOL:
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content,
            }
            previous = converted[-1] if converted else None
            if (
                previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if msg.role == MessageRole.ASSISTANT and msg.tool_calls:
            blocks: list[dict[str, Any]] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.args})
            converted.append({"role": "assistant", "content": blocks})
            continue

        role = "assistant" if msg.role == MessageRole.ASSISTANT else "user"
        converted.append({"role": role, "content": msg.content})

    system = "\n\n".join(part for part in system_parts if part) or None
    return system, converted


def parse_message(resp: Any) -> ModelResponse:
    """Convert a Messages API response into a ModelResponse."""
    text_parts: list[str] = []
    tool_calls: list[ToolCall] = []

    for block in _get(resp, "content") or []:
        btype = _get(block, "type")
        if btype == "text":
            text_parts.append(_get(block, "text") or "")
        elif btype == "tool_use":
            args = _get(block, "input")
            tool_calls.append(ToolCall(
                id=_get(block, "id") or "",
                name=_get(block, "name") or "",
                args=dict(args) if isinstance(args, dict) else {},
            ))

    return ModelResponse(
        content="".join(text_parts),
        tool_calls=tool_calls,
        usage=extract_token_usage({"usage": _get(resp, "usage")}),
    )


class AnthropicProvider:
    """ModelProvider backed by ``anthropic.AsyncAnthropic``.

    Example:
        >>> provider = AnthropicProvider(model="claude-sonnet-4-5")
        >>> response = await provider.invoke([Message.user("Hello!")])
    """

    supports_tool_binding = True

    def __init__(
        self,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        **request_kwargs: Any,
    ):
        """Initialize the provider.

        Args:
            model: Model identifier (e.g., "claude-sonnet-4-5")
            api_key: Optional API key. If not provided, uses ANTHROPIC_API_KEY
                environment variable.
            client: Pre-built async client, used instead of creating one
            max_tokens: Maximum tokens in response (default: 2048)
            **request_kwargs: Extra Messages API parameters (temperature, top_p, ...)
        """
        self.name = "anthropic"
        self.model = model
        self.max_tokens = max_tokens
        self.request_kwargs = request_kwargs
        self.client = client if client is not None else anthropic.AsyncAnthropic(api_key=api_key)

    def _build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        system, converted = to_anthropic_messages(messages)
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": converted,
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = tools
        request.update(self.request_kwargs)
        return request

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> ModelResponse:
        request = self._build_request(messages, tools)
        logger.debug("Anthropic request: model=%s messages=%d tools=%d", self.model, len(messages), len(tools or []))
        resp = await self.client.messages.create(**request)
        return parse_message(resp)

    async def invoke(self, messages: Sequence[Message]) -> ModelResponse:
        return await self.complete(messages)

    async def stream(self, messages: Sequence[Message]) -> AsyncIterator[StreamChunk]:
        request = self._build_request(messages)
        request["stream"] = True
        # Awaiting create() opens the connection
        event_stream = await self.client.messages.create(**request)
        return self._iter_chunks(event_stream)

    async def _iter_chunks(self, event_stream: Any) -> AsyncIterator[StreamChunk]:
        input_tokens = 0
        output_tokens = 0
        async for event in event_stream:
            etype = _get(event, "type")
            if etype == "message_start":
                usage = _get(_get(event, "message"), "usage")
                input_tokens = _get(usage, "input_tokens") or 0
                output_tokens = _get(usage, "output_tokens") or 0
            elif etype == "content_block_delta":
                delta = _get(event, "delta")
                if _get(delta, "type") == "text_delta" and _get(delta, "text"):
                    yield StreamChunk(content=_get(delta, "text"))
            elif etype == "message_delta":
                # Output token counts in message_delta are cumulative
                output_tokens = _get(_get(event, "usage"), "output_tokens") or output_tokens
                yield StreamChunk(usage=TokenUsage(
                    prompt_tokens=input_tokens,
                    completion_tokens=output_tokens,
                    total_tokens=input_tokens + output_tokens,
                    query_count=1,
                ))

    def bind_tools(self, tools: Sequence[Tool]) -> "AnthropicBoundModel":
        schemas = [normalize_tool_schema(tool.schema) for tool in tools]
        return AnthropicBoundModel(self, schemas)

    def __repr__(self) -> str:
        return f"AnthropicProvider(model={self.model!r})"


class AnthropicBoundModel:
    """An AnthropicProvider with tools attached to every request."""

    def __init__(self, provider: AnthropicProvider, tool_schemas: list[dict[str, Any]]):
        self.provider = provider
        self.tool_schemas = tool_schemas

    async def invoke(self, messages: Sequence[Message]) -> ModelResponse:
        return await self.provider.complete(messages, tools=self.tool_schemas)
