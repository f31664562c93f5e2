"""
Agent Loop

An LLM agent core that runs the tool-calling loop against any model
provider: it assembles messages, invokes the model, executes requested
tools, feeds results back and repeats until the model answers. Includes
retry with backoff, streaming, cooperative cancellation and a structured
error taxonomy.

Main exports:
    - Agent: The tool-calling loop orchestrator
    - AgentCallbacks: Lifecycle observers
    - ModelProvider: Protocol for implementing new providers
    - AgentSettings, RetryPolicy: Configuration
    - tool, ToolRegistry: Tool definition and registration

Provider-specific exports:
    - providers: OpenAIProvider, AnthropicProvider, ProviderCache
    - telemetry: with_tracing (OpenTelemetry GenAI spans)

Example:
    >>> from agent_loop import Agent, tool
    >>> from agent_loop.providers import AnthropicProvider
    >>>
    >>> agent = Agent(AnthropicProvider(model="claude-sonnet-4-5"))
    >>> answer = await agent.run("Hello!")
"""

from dotenv import load_dotenv

load_dotenv()

# Core exports - Provider-agnostic
from .core import (
    AbortSignal,
    Agent,
    AgentCallbacks,
    AgentRunResult,
    BoundModel,
    Message,
    MessageRole,
    ModelProvider,
    ModelResponse,
    RetryExecutor,
    SpanContext,
    StreamChunk,
    TokenUsage,
    ToolCall,
)

# Configuration
from .config import AgentSettings, RetryPolicy

# Errors
from .errors import (
    AgentErrorCode,
    AgentErrorResponse,
    ModelError,
    RunAborted,
    ToolError,
    ToolErrorCode,
    classify_error,
    get_user_friendly_message,
)

# Tools
from .tools import (
    FunctionTool,
    Tool,
    ToolContext,
    ToolFailure,
    ToolRegistry,
    ToolSuccess,
    tool,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    'Agent',
    'AgentCallbacks',
    'AgentRunResult',
    'AbortSignal',
    'ModelProvider',
    'BoundModel',
    'Message',
    'MessageRole',
    'ModelResponse',
    'StreamChunk',
    'TokenUsage',
    'ToolCall',
    'RetryExecutor',
    'SpanContext',
    # Configuration
    'AgentSettings',
    'RetryPolicy',
    # Errors
    'AgentErrorCode',
    'AgentErrorResponse',
    'ModelError',
    'RunAborted',
    'ToolError',
    'ToolErrorCode',
    'classify_error',
    'get_user_friendly_message',
    # Tools
    'Tool',
    'FunctionTool',
    'ToolContext',
    'ToolRegistry',
    'ToolSuccess',
    'ToolFailure',
    'tool',
]
