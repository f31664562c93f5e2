"""Tool schema conversion between provider shapes.

Tools carry their schema in the Anthropic shape::

    {"name": ..., "description": ..., "input_schema": {"type": "object", ...}}

Providers that expect OpenAI function tools convert at the boundary::

    {"type": "function", "function": {"name": ..., "description": ..., "parameters": {...}}}
"""

from typing import Any

_EMPTY_OBJECT_SCHEMA = {"type": "object", "properties": {}}


def anthropic_to_openai(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert an Anthropic tool schema to OpenAI function calling format.

    Raises:
        ValueError: If the schema has no ``name``.
    """
    if "name" not in schema:
        raise ValueError("Anthropic schema missing required 'name' field")

    function_def: dict[str, Any] = {"name": schema["name"]}
    if "description" in schema:
        function_def["description"] = schema["description"]
    function_def["parameters"] = schema.get("input_schema") or dict(_EMPTY_OBJECT_SCHEMA)

    return {"type": "function", "function": function_def}


def openai_to_anthropic(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert an OpenAI function tool (wrapped or bare) to an Anthropic schema.

    Raises:
        ValueError: If no function definition with a ``name`` can be found.
    """
    if "function" in schema:
        function_def = schema["function"]
    elif "name" in schema:
        function_def = schema
    else:
        raise ValueError(
            "OpenAI schema must have 'function' key or be a function definition with 'name'"
        )

    if "name" not in function_def:
        raise ValueError("OpenAI function schema missing required 'name' field")

    anthropic_schema: dict[str, Any] = {"name": function_def["name"]}
    if "description" in function_def:
        anthropic_schema["description"] = function_def["description"]
    anthropic_schema["input_schema"] = function_def.get("parameters") or dict(_EMPTY_OBJECT_SCHEMA)
    return anthropic_schema


def normalize_tool_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Return ``schema`` in the Anthropic shape whichever shape it came in."""
    if schema.get("type") == "function" or "parameters" in schema:
        return openai_to_anthropic(schema)
    if "name" not in schema:
        raise ValueError("Tool schema missing required 'name' field")
    normalized = dict(schema)
    normalized.setdefault("input_schema", dict(_EMPTY_OBJECT_SCHEMA))
    return normalized
