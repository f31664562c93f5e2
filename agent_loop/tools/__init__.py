"""Tool definitions and execution support.

This module provides:
- Tool: Protocol every tool implements
- FunctionTool / @tool: Turn annotated functions into tools
- ToolRegistry: The tool set resolved by name during a run
- ToolContext: Per-call context (session, call id, abort signal, metadata sink)
- ToolSuccess / ToolFailure: Legacy structured tool responses
- Schema converters between Anthropic and OpenAI tool shapes
"""

from ..errors import ToolError, ToolErrorCode
from .base import (
    FunctionTool,
    Tool,
    ToolContext,
    ToolFailure,
    ToolRegistry,
    ToolResponse,
    ToolSuccess,
)
from .decorators import tool
from .schema_converters import anthropic_to_openai, normalize_tool_schema, openai_to_anthropic
from .type_hint_utils import DocstringParsingException, TypeHintParsingException

__all__ = [
    'Tool',
    'FunctionTool',
    'ToolContext',
    'ToolRegistry',
    'ToolResponse',
    'ToolSuccess',
    'ToolFailure',
    'ToolError',
    'ToolErrorCode',
    'tool',
    'anthropic_to_openai',
    'openai_to_anthropic',
    'normalize_tool_schema',
    'TypeHintParsingException',
    'DocstringParsingException',
]
