"""Shared pytest fixtures for llmkit tests.

Fixtures are organized by category:
- Keyring fixtures: isolated settings, env-file trees, started instances
- Provider fixtures: a fake LiteLLM catalog and a canned HTTP fetcher
- Prompt fixtures: common prompt mappings
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from llmkit.config import KeyringSettings
from llmkit.errors import ProviderRequestError
from llmkit.keyring import Keyring, stop_keyring
from llmkit.providers import reset_registry

# =============================================================================
# Global state
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_global_state() -> Iterator[None]:
    """Stop the default keyring and drop the global provider registry."""
    stop_keyring()
    reset_registry()
    yield
    stop_keyring()
    reset_registry()


# =============================================================================
# Keyring Fixtures
# =============================================================================


@pytest.fixture
def keyring_settings(tmp_path: Path) -> KeyringSettings:
    """Settings rooted at an empty temp dir, ignoring the process environment."""
    return KeyringSettings(root=tmp_path, env_name="test", include_os_environ=False)


@pytest.fixture
def env_tree(tmp_path: Path) -> Path:
    """Create the four layered env files in a temp dir.

    Each layer overrides SHARED_VALUE so precedence can be checked.
    """
    envs = tmp_path / "envs"
    envs.mkdir()

    (tmp_path / ".env").write_text(
        "SHARED_VALUE=root\nROOT_ONLY=from-root\nOPENAI_API_KEY=sk-from-root\n"
    )
    (envs / ".env").write_text("SHARED_VALUE=envs\nENVS_ONLY=from-envs\n")
    (envs / ".test.env").write_text("SHARED_VALUE=test\nTEST_ONLY=from-test\n")
    (envs / ".test.overrides.env").write_text("SHARED_VALUE=overrides\n")
    return tmp_path


@pytest.fixture
def empty_keyring(keyring_settings: KeyringSettings) -> Keyring:
    """A keyring with no base values."""
    return Keyring.start("empty", keyring_settings)


@pytest.fixture
def base_keyring() -> Keyring:
    """A keyring over a fixed base mapping."""
    return Keyring(
        {
            "openai_api_key": "sk-base",
            "anthropic_api_key": "sk-ant-base",
            "empty_value": "",
        },
        name="base",
    )


# =============================================================================
# Provider Fixtures
# =============================================================================


PROVIDER_ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "CLOUDFLARE_API_KEY",
    "CLOUDFLARE_EMAIL",
    "CLOUDFLARE_ACCOUNT_ID",
    "GOOGLE_API_KEY",
)


@pytest.fixture
def clean_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove provider credentials from the process environment."""
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_catalog() -> dict[str, dict[str, Any]]:
    """A small stand-in for litellm.model_cost."""
    return {
        "gpt-4o": {
            "litellm_provider": "openai",
            "max_input_tokens": 128000,
            "max_output_tokens": 16384,
            "mode": "chat",
            "supports_vision": True,
            "supports_function_calling": True,
        },
        "gpt-3.5-turbo": {
            "litellm_provider": "openai",
            "max_input_tokens": 16385,
            "max_output_tokens": 4096,
            "mode": "chat",
        },
        "claude-3-5-haiku-20241022": {
            "litellm_provider": "anthropic",
            "max_input_tokens": 200000,
            "max_output_tokens": 8192,
            "mode": "chat",
        },
        "openrouter/anthropic/claude-3.5-sonnet": {
            "litellm_provider": "openrouter",
            "max_tokens": 8192,
            "mode": "chat",
        },
        "gemini/gemini-2.0-flash": {
            "litellm_provider": "gemini",
            "max_input_tokens": 1048576,
            "max_output_tokens": 8192,
            "mode": "chat",
        },
        "sample_spec": {
            "max_tokens": "LEGACY parameter",
        },
    }


class FakeFetcher:
    """Canned HTTP fetcher.

    Responses are keyed by URL. A URL without a response raises a 404
    ProviderRequestError; a ProviderRequestError value is raised as-is.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, dict[str, str]]] = []

    def __call__(self, url: str, headers: dict[str, str]) -> Any:
        self.calls.append((url, dict(headers)))
        if url not in self.responses:
            raise ProviderRequestError(f"HTTP 404 from {url}: Not Found", status=404)
        response = self.responses[url]
        if isinstance(response, ProviderRequestError):
            raise response
        return response


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    """An empty canned fetcher; tests add responses by URL."""
    return FakeFetcher()


# =============================================================================
# Prompt Fixtures
# =============================================================================


@pytest.fixture
def chat_spec() -> dict[str, Any]:
    """A three-message prompt mapping."""
    return {
        "messages": [
            {"role": "system", "content": "You are an assistant"},
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi there!"},
        ]
    }


@pytest.fixture
def eex_spec() -> dict[str, Any]:
    """A single eex-templated message with a default parameter."""
    return {
        "messages": [{"role": "user", "content": "Hello <%= @name %>", "engine": "eex"}],
        "params": {"name": "Alice"},
    }
