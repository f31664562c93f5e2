"""Base interfaces for tools and the tool registry."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Literal, Optional, Protocol, Union, TYPE_CHECKING, runtime_checkable

from ..errors import ToolErrorCode
from .schema_converters import anthropic_to_openai

if TYPE_CHECKING:
    from ..core.cancellation import AbortSignal


@dataclass
class ToolContext:
    """Execution context handed to a tool.

    Attributes:
        session_id: Agent session the call belongs to
        message_id: Id of the current run (turn)
        call_id: Tool call id from the model (may be empty)
        abort_signal: The run's abort signal; long-running tools should poll
            ``abort_signal.aborted`` and return early once it is set
        metadata_sink: Receives progress/metadata updates. Purely observational.
    """
    session_id: str
    message_id: str
    call_id: str
    abort_signal: Optional["AbortSignal"] = None
    metadata_sink: Optional[Callable[[dict[str, Any]], None]] = None

    def metadata(self, update: dict[str, Any]) -> None:
        """Stream a metadata update (title, progress, ...) to observers."""
        if self.metadata_sink is not None:
            self.metadata_sink(update)

    @property
    def aborted(self) -> bool:
        return self.abort_signal is not None and self.abort_signal.aborted


@dataclass
class ToolSuccess:
    """Legacy structured success response."""
    result: Any
    message: str = "Tool executed successfully"
    success: bool = field(default=True, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "result": self.result, "message": self.message}


@dataclass
class ToolFailure:
    """Legacy structured failure response."""
    error: ToolErrorCode
    message: str
    success: bool = field(default=False, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": ToolErrorCode(self.error).value, "message": self.message}


ToolResponse = Union[ToolSuccess, ToolFailure]


@runtime_checkable
class Tool(Protocol):
    """Protocol for tools the agent can call.

    ``invoke`` returns either a plain string (forwarded to the model as-is)
    or a legacy :data:`ToolResponse`. It may raise
    :class:`agent_loop.errors.ToolError` to report a structured failure.
    """

    name: str
    description: str
    schema: dict[str, Any]

    async def invoke(self, args: dict[str, Any], ctx: ToolContext) -> Union[str, ToolResponse]:
        ...


class FunctionTool:
    """Adapts a plain (sync or async) function into a :class:`Tool`.

    Functions that declare a ``ctx`` parameter receive the :class:`ToolContext`.
    Synchronous functions run in a worker thread so they never block the loop.
    """

    def __init__(self, func: Callable[..., Any], schema: dict[str, Any]):
        self.func = func
        self.schema = schema
        self.name: str = schema["name"]
        self.description: str = schema.get("description", "")
        self._accepts_ctx = "ctx" in inspect.signature(func).parameters
        self._is_async = inspect.iscoroutinefunction(func)

    async def invoke(self, args: dict[str, Any], ctx: ToolContext) -> Union[str, ToolResponse]:
        kwargs = dict(args)
        if self._accepts_ctx:
            kwargs["ctx"] = ctx
        if self._is_async:
            return await self.func(**kwargs)
        return await asyncio.to_thread(self.func, **kwargs)

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r})"


class ToolRegistry:
    """Registry for managing tools and their schemas.

    The registry is the tool set a run resolves names against. It is only
    read during runs; register tools before the first run starts.
    """

    def __init__(self, tools: Optional[Iterable[Union[Tool, Callable[..., Any]]]] = None):
        self.tools: Dict[str, Tool] = {}
        if tools:
            self.register_tools(tools)

    def register(self, tool: Tool) -> None:
        """Register a single tool. A later tool with the same name replaces it."""
        self.tools[tool.name] = tool

    def register_tools(self, tools: Iterable[Union[Tool, Callable[..., Any]]]) -> None:
        """Register tools or functions decorated with ``@tool``.

        Raises:
            ValueError: If a plain function is missing the ``__tool_schema__``
                attribute (i.e. was not decorated).
        """
        for item in tools:
            if isinstance(item, Tool):
                self.register(item)
                continue
            if not hasattr(item, "__tool_schema__"):
                name = getattr(item, "__name__", repr(item))
                raise ValueError(
                    f"Function '{name}' is missing __tool_schema__ attribute. "
                    f"Did you forget to apply the @tool decorator?"
                )
            self.register(FunctionTool(item, item.__tool_schema__))

    def get(self, name: str) -> Optional[Tool]:
        return self.tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.tools

    def __len__(self) -> int:
        return len(self.tools)

    def __iter__(self):
        return iter(self.tools.values())

    @property
    def names(self) -> list[str]:
        return list(self.tools)

    def get_schemas(self, schema_type: Literal["anthropic", "openai"] = "anthropic") -> list[dict]:
        """Get registered tool schemas in the requested format.

        Args:
            schema_type:
                - ``anthropic`` returns ``{name, description, input_schema}`` dicts (default)
                - ``openai`` converts each schema into OpenAI's function-tool payload
        """
        schemas = [tool.schema for tool in self.tools.values()]
        if schema_type == "anthropic":
            return [dict(schema) for schema in schemas]
        if schema_type == "openai":
            return [anthropic_to_openai(schema) for schema in schemas]
        raise ValueError(f"Unsupported schema_type '{schema_type}'. Expected 'anthropic' or 'openai'.")
