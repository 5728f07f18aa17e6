"""Provider adapter contract.

Every provider adapter implements the same six capabilities so the rest of
the library can treat providers uniformly:

1. definition(): static provider metadata
2. request_headers(options): HTTP headers including resolved credentials
3. list_models(options): available models (LiteLLM catalog, or the API on refresh)
4. model(id, options): a single model's listing entry
5. normalize(id, options): canonical model id for the provider
6. build(options): a fully populated Model descriptor

Operations that can fail return a Result instead of raising, so ordinary
API failures never escape as exceptions.
"""

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Generic, TypeVar

from llmkit.errors import (
    MissingApiKeyError,
    ModelNotFoundError,
    ModelValidationError,
    ProviderError,
)
from llmkit.keyring import Keyring, get_keyring, has_value, is_started
from llmkit.providers.catalog import (
    DEFAULT_TIMEOUT,
    Fetcher,
    catalog_models,
    extract_model,
    extract_models,
    make_fetcher,
)
from llmkit.providers.model import Architecture, Model, ModelInfo, ModelOptions
from llmkit.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

OptionsLike = ModelOptions | Mapping[str, Any] | None


class ProviderType(Enum):
    """Provider category."""

    DIRECT = "direct"
    PROXY = "proxy"


@dataclass(frozen=True)
class Provider:
    """Static provider metadata.

    Attributes:
        id: Provider identifier (e.g. "openai")
        name: Display name
        description: What the provider offers
        type: Direct API or proxy/gateway
        api_base_url: Base URL of the provider API
        requires_api_key: Whether requests need an API key
    """

    id: str
    name: str
    description: str
    type: ProviderType
    api_base_url: str
    requires_api_key: bool = True


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or provider error.

    Usage:
        result = adapter.build({"model": "gpt-4o"})
        if result.ok:
            model = result.value
        else:
            log(result.error)
    """

    value: T | None = None
    error: ProviderError | None = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ProviderError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the error if the operation failed."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class ProviderAdapter(ABC):
    """Base class for provider adapters.

    Subclasses set the class attributes below and implement definition,
    request_headers and normalize. Listing, lookup and build are shared and
    can be customized through the hook methods.

    Attributes:
        provider_id: Provider identifier
        base_url: API base URL
        keyring_key: Keyring key holding the API key
        api_key_env: Environment variable holding the API key
        litellm_provider: Provider name in LiteLLM's catalog
        catalog_prefixes: Prefixes stripped from LiteLLM catalog keys
        default_temperature: Temperature for built models
        default_max_tokens: Max tokens for built models
        default_architecture: Architecture for built models
    """

    provider_id: str = ""
    base_url: str = ""
    keyring_key: str | None = None
    api_key_env: str | None = None
    litellm_provider: str = ""
    catalog_prefixes: tuple[str, ...] = ()
    default_temperature: float = 0.7
    default_max_tokens: int | None = 1024
    default_architecture: Architecture = Architecture()

    def __init__(
        self,
        keyring: Keyring | None = None,
        fetch: Fetcher | None = None,
        catalog: Mapping[str, Mapping[str, Any]] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the adapter.

        Args:
            keyring: Keyring to resolve credentials from (defaults to the
                started default keyring, if any)
            fetch: Function used for HTTP GETs of JSON
            catalog: Model catalog (defaults to litellm.model_cost)
            timeout: HTTP timeout in seconds
        """
        self._keyring = keyring
        self._fetch = fetch or make_fetcher(timeout)
        self._catalog = catalog

    # =========================================================================
    # Contract
    # =========================================================================

    @abstractmethod
    def definition(self) -> Provider:
        """Return static provider metadata."""

    @abstractmethod
    def request_headers(self, options: OptionsLike = None) -> dict[str, str]:
        """Build HTTP headers for a request."""

    @abstractmethod
    def normalize(self, model_id: str, options: OptionsLike = None) -> Result[str]:
        """Return the provider's canonical form of a model id."""

    def list_models(self, options: OptionsLike = None) -> Result[list[ModelInfo]]:
        """List the provider's models.

        Reads LiteLLM's bundled catalog unless ``refresh`` is set or the
        catalog has no entries for this provider, in which case the provider
        API is queried.
        """
        try:
            opts = ModelOptions.parse(options)
        except ModelValidationError as e:
            return Result.failure(e)

        if not opts.refresh:
            models = self.catalog_models()
            if models:
                return Result.success(models)

        return self._fetch_models(opts)

    def model(self, model_id: str, options: OptionsLike = None) -> Result[ModelInfo]:
        """Look up one model by id.

        Checks the catalog first (unless ``refresh`` is set) and falls back
        to the provider API.
        """
        try:
            opts = ModelOptions.parse(options)
        except ModelValidationError as e:
            return Result.failure(e)

        normalized = self.normalize(model_id, opts)
        if not normalized.ok:
            return Result.failure(normalized.error)  # type: ignore[arg-type]
        canonical = normalized.unwrap()

        if not opts.refresh:
            for info in self.catalog_models():
                if info.id == canonical:
                    return Result.success(info)

        return self._fetch_model(canonical, opts)

    def build(self, options: OptionsLike = None) -> Result[Model]:
        """Build a Model descriptor.

        The API key comes from options, else the keyring, else the
        environment. A missing key is not an error here.

        Returns:
            Result with the Model, or a ModelValidationError if ``model`` is
            missing, or an InvalidModelIdError if it cannot be normalized
        """
        try:
            opts = ModelOptions.parse(options)
        except ModelValidationError as e:
            return Result.failure(e)

        if not opts.model:
            return Result.failure(
                ModelValidationError(
                    f"model is required for {self.definition().name} models",
                    provider=self.provider_id,
                )
            )

        normalized = self.normalize(opts.model, opts)
        if not normalized.ok:
            return Result.failure(normalized.error)  # type: ignore[arg-type]
        model_id = normalized.unwrap()

        defaults = self.model_defaults(model_id)
        architecture = Architecture(
            modality=opts.modality or defaults.get("modality", self.default_architecture.modality),
            tokenizer=opts.tokenizer or self.default_architecture.tokenizer,
            instruct_type=opts.instruct_type or self.default_architecture.instruct_type,
        )

        model = Model(
            id=opts.id or f"{self.provider_id}_{model_id}",
            name=opts.name or defaults.get("name", f"{self.definition().name} {model_id}"),
            provider=self.provider_id,
            model=model_id,
            base_url=self.base_url,
            api_key=self.resolve_api_key(opts),
            temperature=_first(opts.temperature, defaults.get("temperature"), self.default_temperature),
            max_tokens=_first(opts.max_tokens, defaults.get("max_tokens"), self.default_max_tokens),
            max_retries=_first(opts.max_retries, 0),
            architecture=architecture,
            description=opts.description or defaults.get("description", self.definition().description),
        )
        logger.structured(
            logging.DEBUG,
            "Model built",
            provider=self.provider_id,
            model=model.model,
            api_key=model.api_key,
        )
        return Result.success(model)

    # =========================================================================
    # Credentials
    # =========================================================================

    @property
    def keyring(self) -> Keyring | None:
        """Keyring used for credential lookups."""
        if self._keyring is not None:
            return self._keyring
        if is_started():
            return get_keyring()
        return None

    def resolve_api_key(self, options: OptionsLike = None) -> str | None:
        """Resolve the API key: options, then keyring, then environment."""
        return self.api_key_source(options)[0]

    def api_key_source(self, options: OptionsLike = None) -> tuple[str | None, str | None]:
        """Resolve the API key and report where it came from.

        Returns:
            Tuple of (key, source) where source is "options", "keyring",
            "environment" or None
        """
        opts = ModelOptions.parse(options)
        return self._resolve(opts.api_key, self.keyring_key, self.api_key_env)

    def _resolve(
        self,
        explicit: str | None,
        keyring_key: str | None,
        env_var: str | None,
    ) -> tuple[str | None, str | None]:
        if has_value(explicit):
            return explicit, "options"

        keyring = self.keyring
        if keyring is not None and keyring_key:
            value = keyring.get(keyring_key)
            if has_value(value):
                return value, "keyring"

        if env_var:
            value = os.environ.get(env_var)
            if has_value(value):
                return value, "environment"

        return None, None

    # =========================================================================
    # Listing hooks
    # =========================================================================

    def catalog_models(self) -> list[ModelInfo]:
        """Models listed for this provider in the LiteLLM catalog."""
        return catalog_models(
            self.litellm_provider,
            self.provider_id,
            catalog=self._catalog,
            prefixes=self.catalog_prefixes,
        )

    def models_url(self, options: ModelOptions) -> str:
        """URL of the model listing endpoint."""
        return f"{self.base_url}/models"

    def model_url(self, model_id: str, options: ModelOptions) -> str:
        """URL of the single-model endpoint."""
        return f"{self.base_url}/models/{model_id}"

    def parse_model(self, data: Mapping[str, Any]) -> ModelInfo:
        """Convert one API model entry to a ModelInfo."""
        model_id = str(data.get("id") or data.get("name") or "")
        return ModelInfo(
            id=model_id,
            name=str(data.get("display_name") or data.get("name") or model_id),
            provider=self.provider_id,
            description=str(data.get("description") or ""),
            context_length=data.get("context_length"),
        )

    def model_defaults(self, model_id: str) -> dict[str, Any]:
        """Per-model build defaults (name, description, modality, ...)."""
        return {}

    def _check_credentials(self, options: ModelOptions) -> ProviderError | None:
        if self.definition().requires_api_key and self.resolve_api_key(options) is None:
            return MissingApiKeyError(self.provider_id, self.keyring_key)
        return None

    def _fetch_models(self, options: ModelOptions) -> Result[list[ModelInfo]]:
        missing = self._check_credentials(options)
        if missing is not None:
            return Result.failure(missing)

        try:
            url = self.models_url(options)
            data = self._fetch(url, self.request_headers(options))
        except ProviderError as e:
            e.provider = e.provider or self.provider_id
            logger.warning("Listing %s models failed: %s", self.provider_id, e)
            return Result.failure(e)

        models = [self.parse_model(m) for m in extract_models(data) if isinstance(m, Mapping)]
        return Result.success(models)

    def _fetch_model(self, model_id: str, options: ModelOptions) -> Result[ModelInfo]:
        missing = self._check_credentials(options)
        if missing is not None:
            return Result.failure(missing)

        try:
            url = self.model_url(model_id, options)
            data = extract_model(self._fetch(url, self.request_headers(options)))
        except ProviderError as e:
            e.provider = e.provider or self.provider_id
            if getattr(e, "status", None) == 404:
                return Result.failure(
                    ModelNotFoundError(f"Model '{model_id}' not found", provider=self.provider_id)
                )
            return Result.failure(e)

        if not isinstance(data, Mapping):
            return Result.failure(
                ModelNotFoundError(f"Model '{model_id}' not found", provider=self.provider_id)
            )
        info = self.parse_model(data)
        if not info.id:
            info = replace(info, id=model_id, name=info.name or model_id)
        return Result.success(info)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider_id={self.provider_id!r})"


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None
