"""Core protocols for model providers.

The agent only talks to providers through these protocols. Whether a
provider can bind tools is declared through ``supports_tool_binding`` and
checked before the tool-enabled path is built; the agent never probes
provider objects for methods at runtime.

These protocols are provider-agnostic and do not import any provider SDK.
"""

from typing import AsyncIterator, Protocol, Sequence, runtime_checkable

from ..tools.base import Tool
from .messages import Message
from .types import ModelResponse, StreamChunk


@runtime_checkable
class BoundModel(Protocol):
    """A model with a tool set bound to it."""

    async def invoke(self, messages: Sequence[Message]) -> ModelResponse:
        """Invoke the model; the response may request tool calls."""
        ...


@runtime_checkable
class ModelProvider(Protocol):
    """Protocol for LLM provider implementations.

    Attributes:
        name: Provider identity (e.g. ``"openai"``, ``"anthropic"``, ``"local"``)
        model: Model identifier used for calls
        supports_tool_binding: Whether :meth:`bind_tools` may be called

    Failures are raised as exceptions; the agent classifies them with
    :func:`agent_loop.errors.to_model_error`. Providers should enforce their
    own timeouts and raise ``TimeoutError`` (or an SDK timeout) on expiry.

    Example:
        class EchoProvider:
            name = "echo"
            model = "echo-1"
            supports_tool_binding = False

            async def invoke(self, messages):
                return ModelResponse(content=messages[-1].content)

            async def stream(self, messages):
                async def chunks():
                    yield StreamChunk(content=messages[-1].content)
                return chunks()

            def bind_tools(self, tools):
                raise NotImplementedError
    """

    name: str
    model: str
    supports_tool_binding: bool

    async def invoke(self, messages: Sequence[Message]) -> ModelResponse:
        """Invoke the model without tools."""
        ...

    async def stream(self, messages: Sequence[Message]) -> AsyncIterator[StreamChunk]:
        """Open a response stream.

        Awaiting this method establishes the connection; errors raised here are
        connection failures and may be retried. Errors raised while iterating
        the returned iterator are mid-stream failures and are not retried.
        """
        ...

    def bind_tools(self, tools: Sequence[Tool]) -> BoundModel:
        """Return a model that can request calls to ``tools``."""
        ...
