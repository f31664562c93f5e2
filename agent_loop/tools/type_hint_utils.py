"""Generate tool input schemas from type hints and Google-style docstrings."""

from __future__ import annotations

import collections.abc
import inspect
import re
import types
import typing
from typing import Any, Callable, Literal, Union, get_args, get_origin

# Parameters injected by the agent rather than supplied by the model.
RESERVED_PARAMETERS = frozenset({"ctx"})


class TypeHintParsingException(Exception):
    """Raised when a parameter type hint is missing or unsupported."""


class DocstringParsingException(Exception):
    """Raised when a docstring cannot be parsed."""


_PRIMITIVES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
    tuple: "array",
    set: "array",
}

_SECTION_HEADERS = ("args:", "arguments:", "parameters:", "returns:", "return:", "raises:", "yields:", "example:", "examples:", "note:")


def type_to_json_schema(hint: Any) -> dict[str, Any]:
    """Convert a Python type hint into a JSON schema fragment."""
    if hint is Any:
        return {}
    if hint in _PRIMITIVES:
        return {"type": _PRIMITIVES[hint]}
    if hint is type(None):
        return {"type": "null"}

    origin = get_origin(hint)
    args = get_args(hint)

    if origin in (Union, types.UnionType):
        non_null = [arg for arg in args if arg is not type(None)]
        if len(non_null) == 1:
            schema = type_to_json_schema(non_null[0])
        else:
            schema = {"anyOf": [type_to_json_schema(arg) for arg in non_null]}
        if len(non_null) != len(args):
            schema["nullable"] = True
        return schema

    if origin is Literal:
        schema: dict[str, Any] = {"enum": list(args)}
        value_types = {type(arg) for arg in args}
        if len(value_types) == 1 and next(iter(value_types)) in _PRIMITIVES:
            schema["type"] = _PRIMITIVES[next(iter(value_types))]
        return schema

    if origin in (list, set, frozenset, tuple, collections.abc.Sequence, collections.abc.Iterable):
        schema = {"type": "array"}
        if args and args[0] is not Ellipsis:
            schema["items"] = type_to_json_schema(args[0])
        return schema

    if origin in (dict, collections.abc.Mapping):
        schema = {"type": "object"}
        if len(args) == 2:
            schema["additionalProperties"] = type_to_json_schema(args[1])
        return schema

    raise TypeHintParsingException(f"Unsupported type hint: {hint!r}")


def parse_google_docstring(docstring: str | None) -> tuple[str, dict[str, str]]:
    """Split a Google-style docstring into (description, {param: description}).

    The description is the text before the first section header, with
    paragraphs joined by a blank line.
    """
    if not docstring:
        return "", {}

    lines = inspect.cleandoc(docstring).splitlines()
    description_lines: list[str] = []
    params: dict[str, str] = {}
    section: str | None = None
    current: str | None = None

    for line in lines:
        stripped = line.strip()
        lowered = stripped.lower()
        if lowered in _SECTION_HEADERS:
            section = lowered.rstrip(":")
            current = None
            continue

        if section is None:
            description_lines.append(stripped)
            continue

        if section in ("args", "arguments", "parameters"):
            match = re.match(r"^(\*{0,2}\w+)\s*(?:\(([^)]*)\))?\s*:\s*(.*)$", stripped)
            if match and not line.startswith(" " * 8):
                current = match.group(1).lstrip("*")
                params[current] = match.group(3).strip()
            elif current and stripped:
                params[current] = f"{params[current]} {stripped}".strip()

    description = "\n".join(description_lines).strip()
    description = re.sub(r"\n{3,}", "\n\n", description)
    return description, params


def generate_tool_schema(func: Callable[..., Any]) -> dict[str, Any]:
    """Build an Anthropic-shaped tool schema for ``func``.

    Raises:
        TypeHintParsingException: A model-supplied parameter lacks a type hint
            or uses an unsupported type.
    """
    try:
        hints = typing.get_type_hints(func)
    except Exception as e:
        raise TypeHintParsingException(f"Could not resolve type hints: {e}") from e

    description, param_docs = parse_google_docstring(inspect.getdoc(func))
    properties: dict[str, Any] = {}
    required: list[str] = []

    for name, param in inspect.signature(func).parameters.items():
        if name in RESERVED_PARAMETERS or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if name not in hints:
            raise TypeHintParsingException(f"Parameter '{name}' is missing a type hint")

        prop = type_to_json_schema(hints[name])
        prop["description"] = param_docs.get(name) or f"The {name} parameter"
        if param.default is inspect.Parameter.empty:
            required.append(name)
        else:
            prop["nullable"] = True
        properties[name] = prop

    input_schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        input_schema["required"] = required

    return {
        "name": func.__name__,
        "description": description or f"Execute {func.__name__}",
        "input_schema": input_schema,
    }
