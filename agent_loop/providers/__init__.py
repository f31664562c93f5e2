"""LLM provider implementations.

Each provider implements the ModelProvider protocol over an official SDK.

Available providers:
- openai: OpenAI chat completions (OpenAIProvider)
- anthropic: Anthropic Claude models (AnthropicProvider)
- local: OpenAI-compatible local runtimes (create_local_provider)

Example:
    >>> from agent_loop import Agent
    >>> from agent_loop.providers import ProviderCache
    >>>
    >>> cache = ProviderCache()
    >>> agent = Agent(cache.get("anthropic", "claude-sonnet-4-5"))
    >>> answer = await agent.run("Hello!")
"""

from .anthropic import AnthropicProvider
from .openai import OpenAIProvider, create_local_provider
from .registry import (
    PROVIDER_REGISTRY,
    ProviderCache,
    get_provider_factory,
    get_supported_providers,
    is_provider_supported,
)

__all__ = [
    'AnthropicProvider',
    'OpenAIProvider',
    'create_local_provider',
    'PROVIDER_REGISTRY',
    'ProviderCache',
    'get_provider_factory',
    'get_supported_providers',
    'is_provider_supported',
]
