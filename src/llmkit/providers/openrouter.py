"""OpenRouter adapter.

OpenRouter proxies many vendors behind one API; model ids take the form
``author/slug`` (e.g. ``anthropic/claude-3.5-sonnet``).
"""

import re
from collections.abc import Mapping
from typing import Any

from llmkit.errors import InvalidModelIdError
from llmkit.providers.base import OptionsLike, Provider, ProviderAdapter, ProviderType, Result
from llmkit.providers.model import Architecture, ModelInfo

APP_REFERER = "https://github.com/llmkit/llmkit"
APP_TITLE = "llmkit"

MODEL_ID_PATTERN = re.compile(r"^[\w.\-]+/[\w.\-:]+$")


class OpenRouterAdapter(ProviderAdapter):
    """OpenRouter API (openrouter.ai)."""

    provider_id = "openrouter"
    base_url = "https://openrouter.ai/api/v1"
    keyring_key = "openrouter_api_key"
    api_key_env = "OPENROUTER_API_KEY"
    litellm_provider = "openrouter"
    catalog_prefixes = ("openrouter/",)
    default_architecture = Architecture(modality="text", tokenizer="unknown")

    def definition(self) -> Provider:
        return Provider(
            id=self.provider_id,
            name="OpenRouter",
            description="Unified API for hundreds of models from many vendors",
            type=ProviderType.PROXY,
            api_base_url=self.base_url,
            requires_api_key=True,
        )

    def request_headers(self, options: OptionsLike = None) -> dict[str, str]:
        headers = {
            "HTTP-Referer": APP_REFERER,
            "X-Title": APP_TITLE,
            "Content-Type": "application/json",
        }
        api_key = self.resolve_api_key(options)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def normalize(self, model_id: str, options: OptionsLike = None) -> Result[str]:
        """Accept ids of the form author/slug."""
        if isinstance(model_id, str) and MODEL_ID_PATTERN.match(model_id):
            return Result.success(model_id)
        return Result.failure(InvalidModelIdError(str(model_id), "OpenRouter", "'author/slug' format"))

    def parse_model(self, data: Mapping[str, Any]) -> ModelInfo:
        model_id = str(data.get("id", ""))
        top_provider = data.get("top_provider") or {}
        architecture = data.get("architecture") or {}
        return ModelInfo(
            id=model_id,
            name=str(data.get("name") or model_id),
            provider=self.provider_id,
            description=str(data.get("description") or ""),
            context_length=data.get("context_length"),
            max_tokens=top_provider.get("max_completion_tokens") if isinstance(top_provider, Mapping) else None,
            mode=architecture.get("modality") if isinstance(architecture, Mapping) else None,
        )
