"""Model descriptors and model options.

A Model is the generic descriptor every provider adapter builds. Callers
that operate on "a model" never need to know which provider produced it.
"""

import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from llmkit.errors import ModelValidationError

# Provider id -> LiteLLM model prefix
LITELLM_PREFIXES = {
    "anthropic": "anthropic",
    "openai": "openai",
    "openrouter": "openrouter",
    "cloudflare": "cloudflare",
    "google": "gemini",
}


@dataclass(frozen=True)
class Architecture:
    """Model architecture metadata.

    Attributes:
        modality: Input/output modality (e.g. "text", "text+image->text")
        tokenizer: Tokenizer family
        instruct_type: Instruction format, if known
    """

    modality: str = "text"
    tokenizer: str = "unknown"
    instruct_type: str | None = None


@dataclass(frozen=True)
class Model:
    """Provider-independent model descriptor.

    Attributes:
        id: Descriptor identifier (e.g. "anthropic_claude-3-5-haiku-latest")
        name: Display name
        provider: Provider id
        model: Provider's canonical model id
        base_url: Provider API base URL
        api_key: Resolved API key (never shown in repr)
        temperature: Default sampling temperature
        max_tokens: Default maximum tokens to generate
        max_retries: Retries for failed requests
        architecture: Architecture metadata
        description: Human-readable description
        created: Unix timestamp the descriptor was built at
        endpoints: Known endpoints for the model
    """

    id: str
    name: str
    provider: str
    model: str
    base_url: str
    api_key: str | None = field(default=None, repr=False)
    temperature: float = 0.7
    max_tokens: int | None = 1024
    max_retries: int = 0
    architecture: Architecture = field(default_factory=Architecture)
    description: str = ""
    created: int = field(default_factory=lambda: int(time.time()))
    endpoints: tuple[str, ...] = ()

    def litellm_model_name(self) -> str:
        """Get the model name in LiteLLM's provider/model format."""
        prefix = LITELLM_PREFIXES.get(self.provider, self.provider)
        return f"{prefix}/{self.model}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, with the API key masked."""
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "model": self.model,
            "base_url": self.base_url,
            "api_key": "***" if self.api_key else None,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "max_retries": self.max_retries,
            "architecture": {
                "modality": self.architecture.modality,
                "tokenizer": self.architecture.tokenizer,
                "instruct_type": self.architecture.instruct_type,
            },
            "description": self.description,
            "created": self.created,
            "endpoints": list(self.endpoints),
        }


@dataclass(frozen=True)
class ModelInfo:
    """A model as listed by a provider.

    Attributes:
        id: Provider's model id
        name: Display name
        provider: Provider id
        description: Description, if the provider gives one
        context_length: Maximum input tokens
        max_tokens: Maximum output tokens
        mode: Kind of model (chat, embedding, image_generation, ...)
        capabilities: Capability flags (vision, function_calling, ...)
    """

    id: str
    name: str
    provider: str
    description: str = ""
    context_length: int | None = None
    max_tokens: int | None = None
    mode: str | None = None
    capabilities: dict[str, bool] = field(default_factory=dict)


# =============================================================================
# Options
# =============================================================================


@dataclass(frozen=True)
class ModelOptions:
    """Options accepted by provider adapter operations.

    ``ModelOptions.parse`` is the single validation entry point; adapters
    call it on whatever the caller passed.

    Attributes:
        model: Model id (required by build)
        id: Descriptor id override
        name: Display name override
        description: Description override
        api_key: Explicit API key (wins over keyring and environment)
        temperature: Sampling temperature (0.0 - 2.0)
        max_tokens: Maximum tokens to generate
        max_retries: Retries for failed requests
        modality: Architecture modality override
        tokenizer: Architecture tokenizer override
        instruct_type: Architecture instruct type override
        refresh: Fetch model listings from the provider API
        email: Account email (Cloudflare)
        account_id: Account id (Cloudflare)
    """

    model: str | None = None
    id: str | None = None
    name: str | None = None
    description: str | None = None
    api_key: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    max_retries: int | None = None
    modality: str | None = None
    tokenizer: str | None = None
    instruct_type: str | None = None
    refresh: bool = False
    email: str | None = None
    account_id: str | None = None

    def __post_init__(self) -> None:
        """Validate option types and ranges."""
        for name in (
            "model", "id", "name", "description", "api_key",
            "modality", "tokenizer", "instruct_type", "email", "account_id",
        ):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ModelValidationError(
                    f"Option '{name}' must be a string, got {type(value).__name__}"
                )

        if self.temperature is not None:
            if isinstance(self.temperature, bool) or not isinstance(self.temperature, (int, float)):
                raise ModelValidationError("Option 'temperature' must be a number")
            if not 0.0 <= self.temperature <= 2.0:
                raise ModelValidationError(
                    f"Option 'temperature' must be between 0.0 and 2.0. Got: {self.temperature}"
                )

        for name in ("max_tokens", "max_retries"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ModelValidationError(f"Option '{name}' must be a non-negative integer. Got: {value!r}")

        if not isinstance(self.refresh, bool):
            raise ModelValidationError("Option 'refresh' must be a boolean")

    @classmethod
    def parse(cls, value: "ModelOptions | Mapping[str, Any] | None") -> "ModelOptions":
        """Build options from an instance, a mapping or None.

        Raises:
            ModelValidationError: If the mapping has unknown keys or invalid values
        """
        if value is None:
            return cls()
        if isinstance(value, ModelOptions):
            return value
        if not isinstance(value, Mapping):
            raise ModelValidationError(f"Model options must be a mapping, got {type(value).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = {str(k) for k in value} - known
        if unknown:
            raise ModelValidationError(f"Unknown model options: {', '.join(sorted(unknown))}")
        return cls(**{str(k): v for k, v in value.items()})


# =============================================================================
# Name standardization
# =============================================================================

MODEL_NAME_PATTERNS = [
    (re.compile(r"claude-3\.7-sonnet", re.IGNORECASE), "claude-3.7-sonnet"),
    (re.compile(r"claude-3\.5-sonnet", re.IGNORECASE), "claude-3.5-sonnet"),
    (re.compile(r"claude-3-opus", re.IGNORECASE), "claude-3-opus"),
    (re.compile(r"gpt-4o-mini", re.IGNORECASE), "gpt-4o-mini"),
    (re.compile(r"gpt-4o", re.IGNORECASE), "gpt-4o"),
    (re.compile(r"gpt-4", re.IGNORECASE), "gpt-4"),
    (re.compile(r"gpt-3\.5", re.IGNORECASE), "gpt-3.5"),
    (re.compile(r"mistral-7b", re.IGNORECASE), "mistral-7b"),
    (re.compile(r"mistral-8x7b", re.IGNORECASE), "mistral-8x7b"),
    (re.compile(r"llama-2-70b", re.IGNORECASE), "llama-2-70b"),
    (re.compile(r"llama-2-13b", re.IGNORECASE), "llama-2-13b"),
    (re.compile(r"llama-2-7b", re.IGNORECASE), "llama-2-7b"),
]


def standardize_model_name(name: str) -> str:
    """Map a provider-specific model name to a cross-provider family name.

    Known families are matched first; otherwise a trailing -NNNN version
    and then a trailing -YYYYMMDD date are removed.

    Examples:
        claude-3.7-sonnet-20250219 -> claude-3.7-sonnet
        gpt-4-0613 -> gpt-4
        mixtral-large-20240101 -> mixtral-large
    """
    for pattern, standard in MODEL_NAME_PATTERNS:
        if pattern.search(name):
            return standard
    name = re.sub(r"-[0-9]{4}$", "", name)
    return re.sub(r"-[0-9]{8}$", "", name)


@dataclass(frozen=True)
class CombinedModelInfo:
    """One model family as offered by several providers.

    Attributes:
        name: Standardized family name
        provider: Provider of the first matching listing
        available_from: Providers listing the family, in registry order
        context_length: Last non-empty context length among the listings
        max_tokens: Last non-empty max output tokens among the listings
        mode: Last non-empty mode among the listings
        description: Last non-empty description among the listings
        capabilities: Capabilities any listing reports as supported
        listings: The merged listings
    """

    name: str
    provider: str
    available_from: tuple[str, ...]
    context_length: int | None = None
    max_tokens: int | None = None
    mode: str | None = None
    description: str = ""
    capabilities: dict[str, bool] = field(default_factory=dict)
    listings: tuple[ModelInfo, ...] = ()


def merge_model_info(name: str, listings: list[ModelInfo]) -> CombinedModelInfo:
    """Merge listings of the same model family from different providers.

    Later listings fill in or replace scalar fields; capability flags are
    OR-ed; the provider of the first listing is kept.

    Raises:
        ValueError: If listings is empty
    """
    if not listings:
        raise ValueError("Cannot merge an empty list of model listings")

    first = listings[0]
    merged: dict[str, Any] = {
        "context_length": first.context_length,
        "max_tokens": first.max_tokens,
        "mode": first.mode,
        "description": first.description,
    }
    capabilities = dict(first.capabilities)

    for info in listings[1:]:
        for key in merged:
            value = getattr(info, key)
            if value:
                merged[key] = value
        for capability, supported in info.capabilities.items():
            capabilities[capability] = capabilities.get(capability, False) or supported

    return CombinedModelInfo(
        name=name,
        provider=first.provider,
        available_from=tuple(dict.fromkeys(info.provider for info in listings)),
        capabilities=capabilities,
        listings=tuple(listings),
        **merged,
    )
