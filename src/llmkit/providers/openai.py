"""OpenAI adapter."""

import re
from collections.abc import Mapping
from typing import Any

from llmkit.errors import InvalidModelIdError
from llmkit.providers.base import OptionsLike, Provider, ProviderAdapter, ProviderType, Result
from llmkit.providers.model import ModelInfo

# Dots and colons appear in real ids: gpt-3.5-turbo, ft:gpt-4o-mini:org::id
MODEL_ID_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9.:\-_]*$")


def openai_capabilities(model_id: str) -> dict[str, bool]:
    """Guess capabilities from an OpenAI model id."""
    return {
        "chat": "gpt" in model_id or "turbo" in model_id,
        "embedding": "embedding" in model_id,
        "image": "dall-e" in model_id,
        "vision": "vision" in model_id or "gpt-4o" in model_id,
        "audio": "whisper" in model_id or "tts" in model_id,
        "code": "gpt-4" in model_id or "codex" in model_id,
    }


class OpenAIAdapter(ProviderAdapter):
    """OpenAI API (api.openai.com)."""

    provider_id = "openai"
    base_url = "https://api.openai.com/v1"
    keyring_key = "openai_api_key"
    api_key_env = "OPENAI_API_KEY"
    litellm_provider = "openai"
    catalog_prefixes = ("openai/",)

    def definition(self) -> Provider:
        return Provider(
            id=self.provider_id,
            name="OpenAI",
            description="OpenAI's API provides access to GPT models, DALL-E, and more",
            type=ProviderType.DIRECT,
            api_base_url=self.base_url,
            requires_api_key=True,
        )

    def request_headers(self, options: OptionsLike = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = self.resolve_api_key(options)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def normalize(self, model_id: str, options: OptionsLike = None) -> Result[str]:
        """Accept plain OpenAI ids (gpt-4o, text-embedding-3-small, ...)."""
        if isinstance(model_id, str) and MODEL_ID_PATTERN.match(model_id):
            return Result.success(model_id)
        return Result.failure(
            InvalidModelIdError(str(model_id), "OpenAI", "a plain model id such as 'gpt-4o'")
        )

    def parse_model(self, data: Mapping[str, Any]) -> ModelInfo:
        model_id = str(data.get("id", ""))
        return ModelInfo(
            id=model_id,
            name=model_id,
            provider=self.provider_id,
            description=str(data.get("description") or ""),
            capabilities=openai_capabilities(model_id),
        )
