"""Decorators for automatic tool schema generation."""
from typing import Callable, Optional

from .type_hint_utils import (
    DocstringParsingException,
    TypeHintParsingException,
    generate_tool_schema,
)


def tool(func: Optional[Callable] = None, *, name: Optional[str] = None, description: Optional[str] = None):
    """Decorator that generates and attaches a tool schema to a function.

    The schema is built from the function's type hints and Google-style
    docstring and attached as ``__tool_schema__``, so the function can be
    registered with a :class:`~agent_loop.tools.ToolRegistry`. The function
    itself is returned unchanged.

    A parameter named ``ctx`` is excluded from the schema; at call time it
    receives the :class:`~agent_loop.tools.ToolContext`.

    Args:
        func: The function to decorate
        name: Override for the tool name (defaults to the function name)
        description: Override for the description (defaults to the docstring)

    Raises:
        TypeHintParsingException: If type hints are missing or cannot be parsed

    Example:
        >>> @tool
        ... def echo(text: str) -> str:
        ...     '''Echo the given text back.
        ...
        ...     Args:
        ...         text: Text to echo
        ...     '''
        ...     return text
        >>> echo.__tool_schema__["input_schema"]["required"]
        ['text']
    """

    def decorate(target: Callable) -> Callable:
        try:
            schema = generate_tool_schema(target)
        except (TypeHintParsingException, DocstringParsingException) as e:
            raise type(e)(
                f"Failed to generate tool schema for function '{target.__name__}': {e}"
            ) from e
        if name is not None:
            schema["name"] = name
        if description is not None:
            schema["description"] = description
        target.__tool_schema__ = schema
        return target

    if func is not None:
        return decorate(func)
    return decorate
