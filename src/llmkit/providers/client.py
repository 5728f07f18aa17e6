"""Completion client using LiteLLM.

Sends a rendered Prompt to the model described by a Model descriptor.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import litellm

from llmkit.errors import LLMError, MissingApiKeyError
from llmkit.prompt import Prompt, coerce_prompt
from llmkit.providers.base import OptionsLike
from llmkit.providers.model import Model
from llmkit.providers.registry import ProviderRegistry, get_registry
from llmkit.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM completion.

    Attributes:
        content: Generated text content
        model: Model that generated the response
        usage: Token usage statistics
        finish_reason: Reason for completion (stop, length, etc.)
    """

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str | None = None


class LLMClient:
    """Completion client for a single model."""

    def __init__(self, model: Model, requires_api_key: bool = True) -> None:
        """Initialize the client.

        Args:
            model: Model descriptor (from an adapter's build)
            requires_api_key: Whether the provider rejects keyless requests
        """
        self.model = model
        self.requires_api_key = requires_api_key

    def complete(
        self,
        prompt: Prompt | str | Mapping[str, Any],
        params: Mapping[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion.

        Prompt options (temperature, max_tokens, top_p, stop, timeout) win
        over the model's defaults; ``max_tokens`` wins over both.

        Args:
            prompt: Prompt, plain instruction string or prompt mapping
            params: Template parameter overrides
            max_tokens: Override max_tokens

        Returns:
            LLMResponse with generated content

        Raises:
            MissingApiKeyError: If the provider needs a key and none was resolved
            TemplateRenderError: If the prompt fails to render
            LLMError: If the completion fails
        """
        if self.requires_api_key and not self.model.api_key:
            raise MissingApiKeyError(self.model.provider, f"{self.model.provider}_api_key")

        payload = coerce_prompt(prompt).render_with_options(params)
        messages = payload.pop("messages")

        completion_kwargs: dict[str, Any] = {
            "model": self.model.litellm_model_name(),
            "messages": messages,
            "temperature": payload.get("temperature", self.model.temperature),
            "max_tokens": max_tokens or payload.get("max_tokens") or self.model.max_tokens,
            "api_key": self.model.api_key,
            "num_retries": self.model.max_retries,
        }
        if "top_p" in payload:
            completion_kwargs["top_p"] = payload["top_p"]
        if "stop" in payload:
            completion_kwargs["stop"] = payload["stop"]
        if "timeout" in payload:
            completion_kwargs["timeout"] = payload["timeout"] / 1000

        logger.debug("Completion request: %s (%d messages)", completion_kwargs["model"], len(messages))

        try:
            response = litellm.completion(**completion_kwargs)
        except litellm.exceptions.AuthenticationError as e:
            raise LLMError(f"Authentication failed for {self.model.provider}: {e}") from e
        except litellm.exceptions.RateLimitError as e:
            raise LLMError(f"Rate limit exceeded for {self.model.provider}: {e}") from e
        except litellm.exceptions.APIConnectionError as e:
            raise LLMError(f"Connection failed to {self.model.provider}: {e}") from e
        except Exception as e:
            raise LLMError(f"LLM completion failed: {e}") from e

        choice = response.choices[0]
        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }
        logger.structured(
            logging.DEBUG,
            "Completion finished",
            provider=self.model.provider,
            model=completion_kwargs["model"],
            finish_reason=choice.finish_reason,
            **usage,
        )

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model or self.model.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )


def create_client(
    provider_id: str | None,
    options: OptionsLike = None,
    registry: ProviderRegistry | None = None,
) -> LLMClient:
    """Build a model through the registry and wrap it in a client.

    Raises:
        ProviderError: If the provider is unknown or the model cannot be built
    """
    registry = registry or get_registry()
    adapter = registry.get(provider_id)
    model = adapter.build(options).unwrap()
    return LLMClient(model, requires_api_key=adapter.definition().requires_api_key)
