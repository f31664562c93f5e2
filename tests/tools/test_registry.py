import asyncio
import threading

import pytest

from agent_loop.tools.base import FunctionTool, Tool, ToolContext, ToolRegistry
from agent_loop.tools.decorators import tool
from agent_loop.tools.sample_tools import create_sample_registry
from agent_loop.tools.schema_converters import anthropic_to_openai, normalize_tool_schema, openai_to_anthropic


@pytest.fixture()
def sample_tools():
    @tool
    def add(a: float, b: float) -> str:
        """Add two numbers."""
        return str(a + b)

    @tool
    def multiply(a: float, b: float) -> str:
        """Multiply two numbers."""
        return str(a * b)

    return add, multiply


@pytest.fixture()
def registry(sample_tools):
    reg = ToolRegistry()
    reg.register_tools(list(sample_tools))
    return reg


def make_ctx() -> ToolContext:
    return ToolContext(session_id="session-1", message_id="msg-1", call_id="call-1")


def test_register_tools_populates_registry(registry, sample_tools) -> None:
    add, multiply = sample_tools
    assert set(registry.names) == {add.__tool_schema__["name"], multiply.__tool_schema__["name"]}
    assert len(registry) == 2
    assert "add" in registry
    assert isinstance(registry.get("add"), FunctionTool)
    assert registry.get("missing") is None


def test_register_tools_requires_decorated_function() -> None:
    registry = ToolRegistry()

    def undecorated(a: int) -> int:
        return a

    with pytest.raises(ValueError):
        registry.register_tools([undecorated])


def test_function_tool_invokes_sync_function_off_loop(registry) -> None:
    thread_names = []

    @tool
    def where() -> str:
        """Report the executing thread."""
        thread_names.append(threading.current_thread().name)
        return "ok"

    registry.register_tools([where])

    async def run():
        assert await registry.get("add").invoke({"a": 2, "b": 3}, make_ctx()) == "5"
        assert await registry.get("where").invoke({}, make_ctx()) == "ok"
    asyncio.run(run())

    assert thread_names[0] != threading.main_thread().name


def test_function_tool_passes_context() -> None:
    @tool
    async def whoami(ctx: ToolContext) -> str:
        """Return the session id."""
        return ctx.session_id

    reg = ToolRegistry([whoami])

    async def run():
        return await reg.get("whoami").invoke({}, make_ctx())
    assert asyncio.run(run()) == "session-1"


def test_custom_tool_objects_can_be_registered() -> None:
    class Shout:
        name = "shout"
        description = "Upper-case text."
        schema = {"name": "shout", "description": "Upper-case text.", "input_schema": {"type": "object", "properties": {}}}

        async def invoke(self, args, ctx):
            return args.get("text", "").upper()

    shout = Shout()
    assert isinstance(shout, Tool)
    reg = ToolRegistry([shout])
    assert reg.get("shout") is shout


def test_get_schemas_openai_conversion(registry) -> None:
    anthropic_schemas = registry.get_schemas()
    openai_schemas = registry.get_schemas("openai")

    assert anthropic_schemas[0]["input_schema"]["type"] == "object"
    assert openai_schemas[0]["type"] == "function"
    assert openai_schemas[0]["function"]["parameters"] == anthropic_schemas[0]["input_schema"]
    with pytest.raises(ValueError):
        registry.get_schemas("gemini")  # type: ignore[arg-type]


def test_schema_converters_round_trip() -> None:
    schema = {"name": "echo", "description": "Echo.", "input_schema": {"type": "object", "properties": {"text": {"type": "string"}}}}
    assert openai_to_anthropic(anthropic_to_openai(schema)) == schema
    assert normalize_tool_schema(anthropic_to_openai(schema)) == schema
    assert normalize_tool_schema({"name": "bare"})["input_schema"] == {"type": "object", "properties": {}}
    with pytest.raises(ValueError):
        anthropic_to_openai({"description": "nameless"})


def test_sample_registry() -> None:
    reg = create_sample_registry()
    assert set(reg.names) == {"echo", "add", "divide", "wait"}

    async def run():
        ctx = make_ctx()
        failure = await reg.get("divide").invoke({"a": 1, "b": 0}, ctx)
        success = await reg.get("divide").invoke({"a": 6, "b": 3}, ctx)
        return failure, success

    failure, success = asyncio.run(run())
    assert failure.to_dict()["error"] == "VALIDATION_ERROR"
    assert success.result == 2
