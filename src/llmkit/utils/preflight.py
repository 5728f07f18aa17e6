"""Credential preflight checks.

Reports which registered providers have an API key available, and where it
was found, without ever exposing the key itself.
"""

from dataclasses import dataclass, field
from typing import Any

from llmkit.providers.registry import ProviderRegistry


@dataclass
class CredentialCheck:
    """Result of checking one provider's credentials.

    Attributes:
        provider: Provider id
        configured: Whether an API key was resolved
        source: Where the key came from (keyring, environment) if configured
        required: Whether the provider requires a key
        keyring_key: Keyring key the provider reads
        message: Status message (human-readable context)
    """

    provider: str
    configured: bool
    source: str | None = None
    required: bool = True
    keyring_key: str | None = None
    message: str = ""


@dataclass
class PreflightResult:
    """Result of a credential preflight.

    Attributes:
        success: Whether at least one provider is usable
        checks: Individual provider check results
        warnings: Messages for providers without credentials
    """

    success: bool = False
    checks: list[CredentialCheck] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_check(self, check: CredentialCheck) -> None:
        """Add a provider check result."""
        self.checks.append(check)

        if check.configured or not check.required:
            self.success = True
        else:
            self.warnings.append(
                f"No API key for {check.provider} (set '{check.keyring_key}')"
            )

    @property
    def configured_providers(self) -> list[str]:
        """Providers that have credentials."""
        return [c.provider for c in self.checks if c.configured]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "checks": [
                {
                    "provider": c.provider,
                    "configured": c.configured,
                    "source": c.source,
                    "required": c.required,
                    "keyring_key": c.keyring_key,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "warnings": self.warnings,
        }


def check_credentials(registry: ProviderRegistry) -> PreflightResult:
    """Check API key availability for every registered provider.

    Args:
        registry: Provider registry

    Returns:
        PreflightResult; success is True if any provider is usable
    """
    result = PreflightResult()

    for provider_id in registry.provider_ids():
        adapter = registry.get(provider_id)
        definition = adapter.definition()
        key, source = adapter.api_key_source()

        if key is not None:
            message = f"API key found ({source})"
        elif definition.requires_api_key:
            message = "API key not configured"
        else:
            message = "No API key required"

        result.add_check(
            CredentialCheck(
                provider=provider_id,
                configured=key is not None,
                source=source,
                required=definition.requires_api_key,
                keyring_key=adapter.keyring_key,
                message=message,
            )
        )

    return result
