"""Exception hierarchy for llmkit.

Every documented failure mode maps to one class here so callers can branch on
the type instead of parsing messages:

- Keyring: startup failures (bad env file / app config) and malformed keys
- Prompt: invariant violations, template failures, unknown versions
- Providers: invalid model ids, missing credentials, failed API requests
"""

from pathlib import Path


class LLMKitError(Exception):
    """Base class for all llmkit errors."""


# =============================================================================
# Keyring
# =============================================================================


class KeyringError(LLMKitError):
    """Base class for keyring errors."""


class KeyringStartupError(KeyringError):
    """Raised when the keyring cannot load its base configuration.

    Attributes:
        path: File that failed to load (if any)
        line: 1-based line number of the malformed entry (if known)
    """

    def __init__(self, message: str, path: Path | None = None, line: int | None = None) -> None:
        self.path = path
        self.line = line
        location = ""
        if path is not None:
            location = f" ({path}" + (f", line {line}" if line is not None else "") + ")"
        super().__init__(f"{message}{location}")


class InvalidKeyError(KeyringError, TypeError):
    """Raised when a keyring key is not a string."""

    def __init__(self, key: object) -> None:
        self.key = key
        super().__init__(f"Keyring keys must be strings, got {type(key).__name__}: {key!r}")


class KeyringNotStartedError(KeyringError):
    """Raised when a named keyring instance has not been started."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Keyring '{name}' is not started")


# =============================================================================
# Prompt
# =============================================================================


class PromptError(LLMKitError):
    """Base class for prompt errors."""


class PromptValidationError(PromptError, ValueError):
    """Raised when a prompt or message is invalid.

    Attributes:
        field: Name of the offending field (e.g. "messages", "role", "engine")
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class TemplateRenderError(PromptError):
    """Raised when a message template fails to render.

    Attributes:
        index: Position of the failing message in the prompt
        role: Role of the failing message
        engine: Template engine tag of the failing message
    """

    def __init__(
        self,
        message: str,
        index: int | None = None,
        role: str | None = None,
        engine: str | None = None,
    ) -> None:
        self.index = index
        self.role = role
        self.engine = engine
        prefix = ""
        if index is not None:
            prefix = f"Message {index} ({role}, engine={engine}): "
        super().__init__(f"{prefix}{message}")


class VersionNotFoundError(PromptError, LookupError):
    """Raised when a prompt version cannot be produced.

    Attributes:
        requested: Version number asked for
        current: Current version of the prompt
        future: True if the requested version is newer than the current one
    """

    def __init__(self, requested: int, current: int) -> None:
        self.requested = requested
        self.current = current
        self.future = requested > current
        if self.future:
            message = f"Version {requested} is in the future (current version is {current})"
        else:
            message = f"Version {requested} not found"
        super().__init__(message)


# =============================================================================
# Providers
# =============================================================================


class ProviderError(LLMKitError):
    """Base class for provider adapter errors.

    Attributes:
        provider: Provider identifier the error relates to
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderNotFoundError(ProviderError):
    """Raised when no adapter is registered for a provider."""


class InvalidModelIdError(ProviderError):
    """Raised when a model id cannot be normalized for a provider."""

    def __init__(self, model_id: str, provider: str, expected: str) -> None:
        self.model_id = model_id
        self.expected = expected
        super().__init__(
            f"Invalid model ID '{model_id}' for {provider}. Expected {expected}.",
            provider=provider,
        )


class ModelValidationError(ProviderError):
    """Raised when model options are missing a field or have the wrong shape."""


class MissingApiKeyError(ProviderError):
    """Raised when a provider requires an API key and none is configured."""

    def __init__(self, provider: str, keyring_key: str | None = None) -> None:
        self.keyring_key = keyring_key
        hint = f" (set '{keyring_key}')" if keyring_key else ""
        super().__init__(f"No API key configured for {provider}{hint}", provider=provider)


class ModelNotFoundError(ProviderError):
    """Raised when a model id is unknown to a provider."""


class ProviderRequestError(ProviderError):
    """Raised when an HTTP request to a provider fails.

    Attributes:
        status: HTTP status code (None for connection errors)
    """

    def __init__(self, message: str, provider: str | None = None, status: int | None = None) -> None:
        self.status = status
        super().__init__(message, provider=provider)


# =============================================================================
# Completion client
# =============================================================================


class LLMError(LLMKitError):
    """Exception raised for LLM completion errors."""
