"""Anthropic adapter."""

import re
from collections.abc import Mapping
from typing import Any

from llmkit.errors import InvalidModelIdError
from llmkit.providers.base import OptionsLike, Provider, ProviderAdapter, ProviderType, Result
from llmkit.providers.model import ModelInfo, ModelOptions

API_VERSION = "2023-06-01"

MODEL_ID_PATTERN = re.compile(r"^claude-[a-zA-Z0-9.\-]+$")


class AnthropicAdapter(ProviderAdapter):
    """Anthropic Messages API (api.anthropic.com)."""

    provider_id = "anthropic"
    base_url = "https://api.anthropic.com/v1"
    keyring_key = "anthropic_api_key"
    api_key_env = "ANTHROPIC_API_KEY"
    litellm_provider = "anthropic"
    catalog_prefixes = ("anthropic/",)

    def definition(self) -> Provider:
        return Provider(
            id=self.provider_id,
            name="Anthropic",
            description="Anthropic's Claude models",
            type=ProviderType.DIRECT,
            api_base_url=self.base_url,
            requires_api_key=True,
        )

    def request_headers(self, options: OptionsLike = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": API_VERSION,
        }
        api_key = self.resolve_api_key(options)
        if api_key:
            headers["x-api-key"] = api_key
        return headers

    def normalize(self, model_id: str, options: OptionsLike = None) -> Result[str]:
        """Accept ids of the form claude-*."""
        if isinstance(model_id, str) and MODEL_ID_PATTERN.match(model_id):
            return Result.success(model_id)
        return Result.failure(InvalidModelIdError(str(model_id), "Anthropic", "'claude-*' format"))

    def parse_model(self, data: Mapping[str, Any]) -> ModelInfo:
        model_id = str(data.get("id", ""))
        return ModelInfo(
            id=model_id,
            name=str(data.get("display_name") or model_id),
            provider=self.provider_id,
            description=str(data.get("description") or ""),
            mode="chat",
        )

    def models_url(self, options: ModelOptions) -> str:
        return f"{self.base_url}/models?limit=1000"
