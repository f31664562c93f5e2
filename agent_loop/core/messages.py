"""Conversation messages and message assembly.

The assembled sequence is always::

    [system prompt] + [converted history ...] + [current query]

History is converted entry by entry. Tool messages without a ``tool_call_id``
cannot be correlated with a tool call by any provider, so they are dropped
with a diagnostic instead of being forwarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from ..logging import get_logger
from .types import ToolCall

logger = get_logger(__name__)


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    @classmethod
    def parse(cls, value: Any) -> "MessageRole":
        """Parse a role, defaulting unrecognized values to USER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.USER


@dataclass(frozen=True)
class Message:
    """A single, immutable conversation message.

    Attributes:
        role: Who produced the message
        content: Text content
        name: Tool name, for tool messages
        tool_call_id: Id of the tool call a tool message answers
        tool_calls: Tool calls requested by an assistant message
    """
    role: MessageRole
    content: str
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: tuple[ToolCall, ...] = ()

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Iterable[ToolCall] = ()) -> "Message":
        return cls(MessageRole.ASSISTANT, content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: Optional[str] = None) -> "Message":
        return cls(MessageRole.TOOL, content, name=name, tool_call_id=tool_call_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        """Build a message from a plain dict (``tool_call_id`` or ``toolCallId``)."""
        content = data.get("content")
        return cls(
            role=MessageRole.parse(data.get("role")),
            content="" if content is None else str(content),
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id", data.get("toolCallId")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name is not None:
            payload["name"] = self.name
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            payload["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        return payload


HistoryEntry = Union[Message, Mapping[str, Any]]


def _convert_history(
    history: Iterable[HistoryEntry],
    on_debug: Optional[Callable[..., Any]],
) -> list[Message]:
    converted: list[Message] = []
    for entry in history:
        message = entry if isinstance(entry, Message) else Message.from_dict(entry)
        if message.role == MessageRole.TOOL and not message.tool_call_id:
            details = {"tool_name": message.name, "content": message.content[:100]}
            logger.warning("dropping_tool_message_without_call_id", **details)
            if on_debug is not None:
                try:
                    on_debug("Dropping invalid tool message: missing tool_call_id", details)
                except Exception:
                    logger.warning("callback_failed", callback="on_debug", exc_info=True)
            continue

        converted.append(message)
    return converted


def assemble_messages(
    system_prompt: str,
    query: str,
    history: Optional[Iterable[HistoryEntry]] = None,
    on_debug: Optional[Callable[..., Any]] = None,
) -> tuple[Message, ...]:
    """Assemble the message sequence for a model call.

    Args:
        system_prompt: Resolved system prompt; always the first message.
        query: Current user query; always the last message.
        history: Optional prior messages (``Message`` objects or dicts).
        on_debug: Receives a diagnostic for each dropped history entry.

    Returns:
        A new immutable tuple of messages.
    """
    messages = [Message.system(system_prompt)]
    if history:
        messages.extend(_convert_history(history, on_debug))
    messages.append(Message.user(query))
    return tuple(messages)


class MessageAssembler:
    """Binds a system prompt and diagnostic sink to :func:`assemble_messages`."""

    def __init__(self, system_prompt: str, on_debug: Optional[Callable[..., Any]] = None):
        self.system_prompt = system_prompt
        self.on_debug = on_debug

    def assemble(
        self,
        query: str,
        history: Optional[Iterable[HistoryEntry]] = None,
    ) -> tuple[Message, ...]:
        return assemble_messages(self.system_prompt, query, history, self.on_debug)
