"""Provider registry.

The registry maps provider ids to adapter instances. Adding a provider:
    1. Subclass ProviderAdapter and implement definition, request_headers
       and normalize
    2. Register an instance
    3. No changes needed anywhere else
"""

import logging
from collections.abc import Mapping
from typing import Any

from llmkit.errors import ModelNotFoundError, ProviderNotFoundError
from llmkit.keyring import Keyring
from llmkit.providers.anthropic import AnthropicAdapter
from llmkit.providers.base import OptionsLike, Provider, ProviderAdapter, Result
from llmkit.providers.catalog import DEFAULT_TIMEOUT, Fetcher
from llmkit.providers.cloudflare import CloudflareAdapter
from llmkit.providers.google import GoogleAdapter
from llmkit.providers.model import (
    CombinedModelInfo,
    Model,
    merge_model_info,
    standardize_model_name,
)
from llmkit.providers.openai import OpenAIAdapter
from llmkit.providers.openrouter import OpenRouterAdapter

logger = logging.getLogger(__name__)

DEFAULT_ADAPTERS: tuple[type[ProviderAdapter], ...] = (
    AnthropicAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
    CloudflareAdapter,
    GoogleAdapter,
)


class ProviderRegistry:
    """Registry of provider adapters by provider id."""

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._adapters: dict[str, ProviderAdapter] = {}
        self._default: str | None = None

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, adapter: ProviderAdapter, is_default: bool = False) -> None:
        """Register an adapter under its provider id.

        Args:
            adapter: Adapter instance (replaces any adapter with the same id)
            is_default: Whether this provider is used when none is named
        """
        provider_id = adapter.definition().id
        self._adapters[provider_id] = adapter
        if is_default:
            self._default = provider_id
        logger.debug("Registered provider adapter: %s", provider_id)

    # =========================================================================
    # Retrieval
    # =========================================================================

    def get(self, provider_id: str | None = None) -> ProviderAdapter:
        """Get an adapter.

        Args:
            provider_id: Provider id (uses default if None)

        Raises:
            ProviderNotFoundError: If the provider is not registered
        """
        name = provider_id or self._default
        if name is None:
            raise ProviderNotFoundError("No provider given and no default provider configured")

        if name not in self._adapters:
            available = sorted(self._adapters)
            raise ProviderNotFoundError(
                f"Provider '{name}' not registered. Available: {available}", provider=name
            )
        return self._adapters[name]

    def build_model(self, provider_id: str | None, options: OptionsLike = None) -> Result[Model]:
        """Build a Model through the named provider's adapter.

        Returns:
            Result with the Model, or a ProviderNotFoundError failure
        """
        try:
            adapter = self.get(provider_id)
        except ProviderNotFoundError as e:
            return Result.failure(e)
        return adapter.build(options)

    def combined_model_info(self, model_name: str) -> Result[CombinedModelInfo]:
        """Merge a model family's catalog listings across registered providers.

        Listings match when their ids standardize to the same family name
        as model_name (see standardize_model_name). Only catalog listings
        are consulted, so no provider API is called.

        Returns:
            Result with the merged info, or a ModelNotFoundError failure
        """
        family = standardize_model_name(model_name)
        listings = [
            info
            for adapter in self._adapters.values()
            for info in adapter.catalog_models()
            if standardize_model_name(info.id) == family
        ]
        if not listings:
            return Result.failure(ModelNotFoundError(f"No model found with name: {model_name}"))

        logger.debug("Merged %d listings for %s", len(listings), family)
        return Result.success(merge_model_info(family, listings))

    # =========================================================================
    # Introspection
    # =========================================================================

    def provider_ids(self) -> list[str]:
        """Get registered provider ids."""
        return list(self._adapters)

    def list_providers(self) -> list[Provider]:
        """Get definitions of all registered providers."""
        return [adapter.definition() for adapter in self._adapters.values()]

    @property
    def default(self) -> str | None:
        """Default provider id."""
        return self._default

    def get_metadata(self) -> dict[str, Any]:
        """Get registry metadata for logging and debugging."""
        return {"providers": self.provider_ids(), "default": self._default}


def setup_default_providers(
    registry: ProviderRegistry | None = None,
    keyring: Keyring | None = None,
    fetch: Fetcher | None = None,
    catalog: Mapping[str, Mapping[str, Any]] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    default: str | None = None,
) -> ProviderRegistry:
    """Register the built-in adapters.

    Args:
        registry: Registry to populate (a new one if None)
        keyring: Keyring the adapters resolve credentials from
        fetch: HTTP fetcher shared by the adapters
        catalog: Model catalog shared by the adapters
        timeout: HTTP timeout in seconds
        default: Provider id to mark as default

    Returns:
        The populated registry
    """
    registry = registry if registry is not None else ProviderRegistry()
    for adapter_class in DEFAULT_ADAPTERS:
        adapter = adapter_class(keyring=keyring, fetch=fetch, catalog=catalog, timeout=timeout)
        registry.register(adapter, is_default=adapter.provider_id == default)
    return registry


# Global registry instance
_registry: ProviderRegistry | None = None


def get_registry() -> ProviderRegistry:
    """Get the global provider registry, creating it with the built-in adapters."""
    global _registry
    if _registry is None:
        _registry = setup_default_providers()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (primarily for testing)."""
    global _registry
    _registry = None
