"""Google Gemini adapter (Generative Language API)."""

import re
from collections.abc import Mapping
from typing import Any

from llmkit.errors import InvalidModelIdError
from llmkit.providers.base import OptionsLike, Provider, ProviderAdapter, ProviderType, Result
from llmkit.providers.model import Architecture, ModelInfo, ModelOptions

MODEL_ID_PATTERN = re.compile(r"^(gemini|imagen|gemma|text-embedding)-[a-z0-9.\-]+$")

KNOWN_MODELS: dict[str, dict[str, Any]] = {
    "gemini-2.5-pro-exp-03-25": {
        "name": "Gemini 2.5 Pro Experimental",
        "description": "Enhanced thinking and reasoning, multimodal understanding, advanced coding",
        "modality": "audio+image+video+text->text",
        "max_tokens": 2048,
    },
    "gemini-2.0-flash": {
        "name": "Gemini 2.0 Flash",
        "description": "Next generation features, speed, thinking, realtime streaming, and multimodal generation",
        "modality": "audio+image+video+text->text+image",
        "max_tokens": 2048,
    },
    "gemini-2.0-flash-lite": {
        "name": "Gemini 2.0 Flash-Lite",
        "description": "Cost efficiency and low latency",
        "modality": "audio+image+video+text->text",
        "max_tokens": 1024,
    },
    "gemini-1.5-flash": {
        "name": "Gemini 1.5 Flash",
        "description": "Fast and versatile performance across a diverse variety of tasks",
        "modality": "audio+image+video+text->text",
        "max_tokens": 1024,
    },
    "gemini-1.5-flash-8b": {
        "name": "Gemini 1.5 Flash-8B",
        "description": "High volume and lower intelligence tasks",
        "modality": "audio+image+video+text->text",
        "max_tokens": 1024,
    },
    "gemini-1.5-pro": {
        "name": "Gemini 1.5 Pro",
        "description": "Complex reasoning tasks requiring more intelligence",
        "modality": "audio+image+video+text->text",
        "max_tokens": 2048,
    },
    "gemini-embedding-exp": {
        "name": "Gemini Embedding",
        "description": "Measuring the relatedness of text strings",
        "modality": "text->embedding",
        "max_tokens": 1024,
        "temperature": 0.0,
    },
    "imagen-3.0-generate-002": {
        "name": "Imagen 3",
        "description": "Image generation",
        "modality": "text->image",
    },
}


def strip_models_prefix(model_id: str) -> str:
    """Remove the "models/" resource prefix Google uses in API responses."""
    return model_id.removeprefix("models/")


class GoogleAdapter(ProviderAdapter):
    """Google Gemini (generativelanguage.googleapis.com)."""

    provider_id = "google"
    base_url = "https://generativelanguage.googleapis.com/v1beta/models/"
    keyring_key = "google_api_key"
    api_key_env = "GOOGLE_API_KEY"
    litellm_provider = "gemini"
    catalog_prefixes = ("gemini/",)
    default_architecture = Architecture(
        modality="text+image->text",
        tokenizer="gemini",
        instruct_type="gemini",
    )

    def definition(self) -> Provider:
        return Provider(
            id=self.provider_id,
            name="Google",
            description="Google's Gemini models through the Generative Language API",
            type=ProviderType.DIRECT,
            api_base_url=self.base_url,
            requires_api_key=True,
        )

    def request_headers(self, options: OptionsLike = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = self.resolve_api_key(options)
        if api_key:
            headers["x-goog-api-key"] = api_key
        return headers

    def normalize(self, model_id: str, options: OptionsLike = None) -> Result[str]:
        """Strip the "models/" prefix and accept known or gemini-style ids."""
        if isinstance(model_id, str):
            stripped = strip_models_prefix(model_id)
            if stripped in KNOWN_MODELS or MODEL_ID_PATTERN.match(stripped):
                return Result.success(stripped)
        return Result.failure(
            InvalidModelIdError(str(model_id), "Google", "a Gemini model id such as 'gemini-2.0-flash'")
        )

    def model_defaults(self, model_id: str) -> dict[str, Any]:
        return dict(KNOWN_MODELS.get(model_id, {}))

    def models_url(self, options: ModelOptions) -> str:
        return self.base_url.rstrip("/")

    def model_url(self, model_id: str, options: ModelOptions) -> str:
        return f"{self.base_url}{model_id}"

    def parse_model(self, data: Mapping[str, Any]) -> ModelInfo:
        model_id = strip_models_prefix(str(data.get("name", "")))
        return ModelInfo(
            id=model_id,
            name=str(data.get("displayName") or model_id),
            provider=self.provider_id,
            description=str(data.get("description") or ""),
            context_length=data.get("inputTokenLimit"),
            max_tokens=data.get("outputTokenLimit"),
        )
