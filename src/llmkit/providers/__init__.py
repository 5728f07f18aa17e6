"""Provider adapters.

- base: adapter contract, Provider definition and Result
- model: Model descriptor, ModelOptions and ModelInfo
- anthropic, openai, openrouter, cloudflare, google: concrete adapters
- registry: ProviderRegistry and the global registry
- client: completions through LiteLLM
"""

from llmkit.providers.anthropic import AnthropicAdapter
from llmkit.providers.base import Provider, ProviderAdapter, ProviderType, Result
from llmkit.providers.client import LLMClient, LLMResponse, create_client
from llmkit.providers.cloudflare import CloudflareAdapter
from llmkit.providers.google import GoogleAdapter
from llmkit.providers.model import (
    Architecture,
    CombinedModelInfo,
    Model,
    ModelInfo,
    ModelOptions,
    merge_model_info,
    standardize_model_name,
)
from llmkit.providers.openai import OpenAIAdapter
from llmkit.providers.openrouter import OpenRouterAdapter
from llmkit.providers.registry import (
    ProviderRegistry,
    get_registry,
    reset_registry,
    setup_default_providers,
)

__all__ = [
    "AnthropicAdapter",
    "Architecture",
    "CloudflareAdapter",
    "CombinedModelInfo",
    "GoogleAdapter",
    "LLMClient",
    "LLMResponse",
    "Model",
    "ModelInfo",
    "ModelOptions",
    "OpenAIAdapter",
    "OpenRouterAdapter",
    "Provider",
    "ProviderAdapter",
    "ProviderRegistry",
    "ProviderType",
    "Result",
    "create_client",
    "get_registry",
    "merge_model_info",
    "reset_registry",
    "setup_default_providers",
    "standardize_model_name",
]
