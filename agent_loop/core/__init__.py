"""Core agent components.

Provider-agnostic exports:
    - Agent: The tool-calling loop orchestrator
    - ModelProvider, BoundModel: Protocols providers implement
    - AgentCallbacks: Lifecycle observers
    - RetryExecutor, RetryContext: Retry with exponential backoff
    - AbortSignal, run_cancellable: Cooperative cancellation
    - Message, MessageRole, assemble_messages: Conversation messages
    - relay_stream, StreamRelay: Provider stream relaying
    - ToolInvoker: Tool execution and result normalization
    - SpanContext: Run tracing identifiers
"""

# Orchestrator
from .agent import Agent

# Protocols
from .protocols import BoundModel, ModelProvider

# Types
from .types import (
    AgentRunResult,
    ModelResponse,
    StreamChunk,
    TokenUsage,
    ToolCall,
    ToolExecutionResult,
    extract_text_content,
    extract_token_usage,
)

# Building blocks
from .callbacks import AgentCallbacks
from .cancellation import AbortSignal, run_cancellable, sleep_cancellable
from .messages import Message, MessageAssembler, MessageRole, assemble_messages
from .retry import RetryContext, RetryExecutor, compute_backoff_ms
from .spans import SpanContext, create_child_span_context, create_span_context
from .streaming import StreamRelay, relay_stream
from .tool_invoker import ToolInvoker

__all__ = [
    # Orchestrator
    'Agent',
    # Protocols
    'ModelProvider',
    'BoundModel',
    # Types
    'AgentRunResult',
    'ModelResponse',
    'StreamChunk',
    'TokenUsage',
    'ToolCall',
    'ToolExecutionResult',
    'extract_text_content',
    'extract_token_usage',
    # Building blocks
    'AgentCallbacks',
    'AbortSignal',
    'run_cancellable',
    'sleep_cancellable',
    'Message',
    'MessageAssembler',
    'MessageRole',
    'assemble_messages',
    'RetryContext',
    'RetryExecutor',
    'compute_backoff_ms',
    'SpanContext',
    'create_span_context',
    'create_child_span_context',
    'StreamRelay',
    'relay_stream',
    'ToolInvoker',
]
