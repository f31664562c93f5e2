"""Provider-agnostic value types used by the agent loop."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..errors import AgentErrorResponse
    from .messages import Message


@dataclass(frozen=True)
class TokenUsage:
    """Token usage of one or more LLM calls.

    Adding two usages sums every field, which is how a run accumulates usage
    across iterations.

    Attributes:
        prompt_tokens: Tokens in the input/prompt
        completion_tokens: Tokens in the output/completion
        total_tokens: Total tokens reported (or computed)
        query_count: Number of LLM calls covered
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    query_count: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            query_count=self.query_count + other.query_count,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "query_count": self.query_count,
        }


def _first_int(source: Mapping[str, Any], *keys: str) -> Optional[int]:
    for key in keys:
        value = source.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return int(value)
    return None


def extract_token_usage(metadata: Any) -> Optional[TokenUsage]:
    """Extract token usage from provider response metadata.

    Supported shapes:
    - OpenAI: ``{"usage": {"prompt_tokens", "completion_tokens", "total_tokens"}}``
    - Anthropic: ``{"usage": {"input_tokens", "output_tokens"}}``
    - Generic: ``{"token_usage": {...}}``

    Objects with a ``model_dump()`` method (SDK pydantic models) are accepted too.
    A bare usage mapping (no ``usage`` wrapper) is also recognised.

    Returns:
        TokenUsage with ``query_count=1``, or None if nothing usable is found.
    """
    if metadata is None:
        return None
    if hasattr(metadata, "model_dump"):
        metadata = metadata.model_dump()
    if not isinstance(metadata, Mapping):
        return None

    usage = metadata.get("usage")
    if usage is None:
        usage = metadata.get("token_usage")
    if usage is None and any(k in metadata for k in ("prompt_tokens", "input_tokens")):
        usage = metadata
    if hasattr(usage, "model_dump"):
        usage = usage.model_dump()
    elif usage is not None and not isinstance(usage, Mapping) and hasattr(usage, "__dict__"):
        usage = vars(usage)
    if not isinstance(usage, Mapping):
        return None

    prompt = _first_int(usage, "prompt_tokens", "promptTokens", "input_tokens", "inputTokens") or 0
    completion = _first_int(
        usage, "completion_tokens", "completionTokens", "output_tokens", "outputTokens"
    ) or 0
    # Anthropic omits the total
    total = _first_int(usage, "total_tokens", "totalTokens")
    if total is None:
        total = prompt + completion

    return TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=total,
        query_count=1,
    )


def extract_text_content(content: Any) -> str:
    """Flatten message content into text.

    Strings pass through. Content-block lists contribute their ``text`` blocks,
    joined with newlines; a list without text blocks is JSON-encoded.
    """
    if isinstance(content, str):
        return content
    if content is None:
        return ""
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if hasattr(block, "model_dump"):
                block = block.model_dump()
            if isinstance(block, Mapping) and block.get("type") == "text" and isinstance(block.get("text"), str):
                parts.append(block["text"])
        if parts:
            return "\n".join(parts)
        return json.dumps(content, default=str)
    if isinstance(content, Mapping):
        return json.dumps(content, default=str)
    return str(content)


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model.

    ``id`` is an empty string when the provider did not supply one; it is
    forwarded as-is rather than replaced with a synthetic id.
    """
    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "args": self.args}


@dataclass(frozen=True)
class ToolExecutionResult:
    """Normalized outcome of one tool call, ready to become a tool message."""
    name: str
    id: str
    content: str


@dataclass
class ModelResponse:
    """Result of a non-streaming model invocation."""
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: Optional[TokenUsage] = None


@dataclass
class StreamChunk:
    """One increment of a streamed model response.

    ``usage`` is a snapshot; a later chunk's usage supersedes an earlier one.
    """
    content: str = ""
    usage: Optional[TokenUsage] = None


@dataclass
class AgentRunResult:
    """Everything known about a finished run.

    Attributes:
        answer: Final answer, or ``"Error: <message>"`` on failure
        success: Whether the run reached a final answer
        error: The terminal error, when ``success`` is False
        usage: Token usage summed over every LLM call of the run
        llm_call_count: Number of model invocations made
        tools_executed: Number of tool calls dispatched (including unknown tools)
        messages: Message sequence as last sent to (or built for) the model
    """
    answer: str
    success: bool
    error: Optional["AgentErrorResponse"] = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    llm_call_count: int = 0
    tools_executed: int = 0
    messages: tuple["Message", ...] = ()
