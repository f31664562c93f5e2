"""Provider registry and provider cache.

The registry maps provider names to factories. :class:`ProviderCache` builds
providers through those factories and reuses a provider for as long as its
identity, ``(name, model, options)``, stays the same. The cache is an
explicit object handed to whoever needs providers.
"""

import logging
from typing import Any, Callable, Mapping, Optional

from ..core.protocols import ModelProvider
from .anthropic import AnthropicProvider
from .openai import OpenAIProvider, create_local_provider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., ModelProvider]

PROVIDER_REGISTRY: dict[str, ProviderFactory] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "local": create_local_provider,
}


def get_provider_factory(name: str) -> Optional[ProviderFactory]:
    """Get the factory registered for ``name``, or None."""
    return PROVIDER_REGISTRY.get(name)


def is_provider_supported(name: str) -> bool:
    return name in PROVIDER_REGISTRY


def get_supported_providers() -> list[str]:
    return list(PROVIDER_REGISTRY)


def _freeze(value: Any) -> Any:
    """Turn option values into something hashable for the cache key."""
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(_freeze(v) for v in value)
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


class ProviderCache:
    """Caches provider instances keyed by ``(name, model, options)``.

    Example:
        >>> cache = ProviderCache()
        >>> provider = cache.get("openai", "gpt-4o-mini")
        >>> provider is cache.get("openai", "gpt-4o-mini")
        True
    """

    def __init__(self, factories: Optional[Mapping[str, ProviderFactory]] = None):
        self.factories: dict[str, ProviderFactory] = dict(
            PROVIDER_REGISTRY if factories is None else factories
        )
        self._providers: dict[tuple, ModelProvider] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        """Register (or replace) the factory for ``name``."""
        self.factories[name] = factory

    def get(self, name: str, model: Optional[str] = None, **options: Any) -> ModelProvider:
        """Return the cached provider for this identity, creating it if needed.

        Raises:
            ValueError: If no factory is registered for ``name``.
        """
        key = (name, model, _freeze(options))
        provider = self._providers.get(key)
        if provider is not None:
            return provider

        factory = self.factories.get(name)
        if factory is None:
            supported = ", ".join(sorted(self.factories)) or "none"
            raise ValueError(f"Provider '{name}' is not supported. Supported providers: {supported}")

        kwargs = dict(options)
        if model is not None:
            kwargs["model"] = model
        provider = factory(**kwargs)
        self._providers[key] = provider
        logger.info("Created provider %s (model=%s)", name, provider.model)
        return provider

    def clear(self) -> None:
        self._providers.clear()

    def __len__(self) -> int:
        return len(self._providers)

