"""Unit tests for ProviderRegistry."""

from typing import Any

import pytest

from llmkit.errors import ModelNotFoundError, ProviderNotFoundError
from llmkit.keyring import Keyring
from llmkit.providers import (
    OpenAIAdapter,
    Provider,
    ProviderAdapter,
    ProviderRegistry,
    ProviderType,
    Result,
    get_registry,
    merge_model_info,
    reset_registry,
    setup_default_providers,
)
from llmkit.providers.base import OptionsLike

pytestmark = pytest.mark.usefixtures("clean_provider_env")


class LocalAdapter(ProviderAdapter):
    """Keyless adapter for a self-hosted endpoint."""

    provider_id = "local"
    base_url = "http://localhost:8080/v1"

    def definition(self) -> Provider:
        return Provider(
            id=self.provider_id,
            name="Local",
            description="Self-hosted models",
            type=ProviderType.DIRECT,
            api_base_url=self.base_url,
            requires_api_key=False,
        )

    def request_headers(self, options: OptionsLike = None) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def normalize(self, model_id: str, options: OptionsLike = None) -> Result[str]:
        return Result.success(model_id)


class TestProviderRegistry:
    """Tests for ProviderRegistry class."""

    def test_register_and_get(self) -> None:
        """Test registering and getting an adapter."""
        registry = ProviderRegistry()
        adapter = LocalAdapter()
        registry.register(adapter)

        assert registry.get("local") is adapter
        assert registry.provider_ids() == ["local"]

    def test_get_unknown(self) -> None:
        """Test getting an unregistered provider raises."""
        registry = ProviderRegistry()

        with pytest.raises(ProviderNotFoundError, match="not registered"):
            registry.get("nope")

    def test_get_without_default(self) -> None:
        """Test get() with no id and no default raises."""
        with pytest.raises(ProviderNotFoundError, match="no default"):
            ProviderRegistry().get()

    def test_default_provider(self) -> None:
        """Test the default provider is used when no id is given."""
        registry = ProviderRegistry()
        registry.register(OpenAIAdapter())
        registry.register(LocalAdapter(), is_default=True)

        assert registry.default == "local"
        assert registry.get().provider_id == "local"

    def test_register_replaces(self) -> None:
        """Test registering the same id twice keeps the latest adapter."""
        registry = ProviderRegistry()
        first, second = LocalAdapter(), LocalAdapter()
        registry.register(first)
        registry.register(second)

        assert registry.get("local") is second
        assert registry.provider_ids() == ["local"]

    def test_build_model(self) -> None:
        """Test building through the registry."""
        registry = ProviderRegistry()
        registry.register(LocalAdapter())

        model = registry.build_model("local", {"model": "llama3"}).unwrap()

        assert model.id == "local_llama3"
        assert model.base_url == "http://localhost:8080/v1"

    def test_build_model_unknown_provider(self) -> None:
        """Test an unknown provider is a failure, not an exception."""
        result = ProviderRegistry().build_model("nope", {"model": "x"})

        assert isinstance(result.error, ProviderNotFoundError)

    def test_metadata(self) -> None:
        """Test registry metadata."""
        registry = ProviderRegistry()
        registry.register(LocalAdapter(), is_default=True)

        assert registry.get_metadata() == {"providers": ["local"], "default": "local"}


class TestDefaultProviders:
    """Tests for the built-in adapters."""

    def test_all_registered(self) -> None:
        """Test all five providers are available."""
        registry = setup_default_providers()

        assert registry.provider_ids() == ["anthropic", "openai", "openrouter", "cloudflare", "google"]
        assert [p.id for p in registry.list_providers()] == registry.provider_ids()

    def test_shared_keyring_and_catalog(self, base_keyring: Keyring, fake_catalog: dict[str, Any]) -> None:
        """Test adapters share the given keyring and catalog."""
        registry = setup_default_providers(keyring=base_keyring, catalog=fake_catalog, default="anthropic")

        assert registry.default == "anthropic"
        assert registry.get().resolve_api_key() == "sk-ant-base"
        assert [m.id for m in registry.get("openai").list_models().unwrap()] == ["gpt-3.5-turbo", "gpt-4o"]

    def test_populates_existing_registry(self) -> None:
        """Test built-ins are added next to custom adapters."""
        registry = ProviderRegistry()
        registry.register(LocalAdapter())

        setup_default_providers(registry)

        assert "local" in registry.provider_ids()
        assert "openai" in registry.provider_ids()


@pytest.fixture
def shared_catalog() -> dict[str, dict[str, Any]]:
    """A catalog listing the gpt-4o family under two providers."""
    return {
        "gpt-4o-2024-08-06": {
            "litellm_provider": "openai",
            "max_input_tokens": 128000,
            "max_output_tokens": 16384,
            "mode": "chat",
            "supports_vision": False,
            "supports_function_calling": True,
        },
        "openrouter/openai/gpt-4o": {
            "litellm_provider": "openrouter",
            "max_tokens": 4096,
            "mode": "chat",
            "supports_vision": True,
        },
        "gpt-4o-mini": {"litellm_provider": "openai", "mode": "chat"},
        "claude-3-5-haiku-20241022": {"litellm_provider": "anthropic", "mode": "chat"},
    }


class TestCombinedModelInfo:
    """Tests for merging a model family across providers."""

    def test_merges_listings(self, shared_catalog: dict[str, Any]) -> None:
        """Test listings with the same standardized name are merged."""
        registry = setup_default_providers(catalog=shared_catalog)

        combined = registry.combined_model_info("gpt-4o").unwrap()

        assert combined.name == "gpt-4o"
        assert combined.provider == "openai"
        assert combined.available_from == ("openai", "openrouter")
        assert [info.id for info in combined.listings] == ["gpt-4o-2024-08-06", "openai/gpt-4o"]
        assert combined.context_length == 128000
        assert combined.max_tokens == 4096
        assert combined.capabilities == {"vision": True, "function_calling": True}

    def test_query_is_standardized(self, shared_catalog: dict[str, Any]) -> None:
        """Test a dated provider id finds its family."""
        registry = setup_default_providers(catalog=shared_catalog)

        combined = registry.combined_model_info("claude-3-5-haiku-20241022").unwrap()

        assert combined.name == "claude-3-5-haiku"
        assert combined.available_from == ("anthropic",)

    def test_unknown_model(self, shared_catalog: dict[str, Any]) -> None:
        """Test an unknown family is a failure result."""
        result = setup_default_providers(catalog=shared_catalog).combined_model_info("mistral-7b")

        assert not result.ok
        assert isinstance(result.error, ModelNotFoundError)

    def test_merge_requires_listings(self) -> None:
        """Test merging nothing is rejected."""
        with pytest.raises(ValueError):
            merge_model_info("gpt-4o", [])


class TestGlobalRegistry:
    """Tests for global registry functions."""

    def test_get_registry_singleton(self) -> None:
        """Test get_registry returns the same instance."""
        assert get_registry() is get_registry()

    def test_get_registry_has_defaults(self) -> None:
        """Test the global registry starts with the built-in adapters."""
        assert "google" in get_registry().provider_ids()

    def test_reset_registry(self) -> None:
        """Test reset creates a new registry on next access."""
        first = get_registry()
        reset_registry()

        assert get_registry() is not first
