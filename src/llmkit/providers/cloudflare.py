"""Cloudflare Workers AI adapter.

Requests authenticate with an API key plus account email, and model
endpoints are scoped to an account id. Model ids look like
``@cf/meta/llama-3.1-8b-instruct``.
"""

import re
import urllib.parse
from collections.abc import Mapping
from typing import Any

from llmkit.errors import InvalidModelIdError, ModelValidationError
from llmkit.providers.base import OptionsLike, Provider, ProviderAdapter, ProviderType, Result
from llmkit.providers.model import ModelInfo, ModelOptions

QUALIFIED_ID = re.compile(r"^@(cf|hf)/[\w.\-]+/[\w.\-]+$")
VENDOR_SLUG_ID = re.compile(r"^[\w.\-]+/[\w.\-]+$")


class CloudflareAdapter(ProviderAdapter):
    """Cloudflare Workers AI (api.cloudflare.com)."""

    provider_id = "cloudflare"
    base_url = "https://api.cloudflare.com/client/v4"
    keyring_key = "cloudflare_api_key"
    api_key_env = "CLOUDFLARE_API_KEY"
    email_keyring_key = "cloudflare_email"
    email_env = "CLOUDFLARE_EMAIL"
    account_keyring_key = "cloudflare_account_id"
    account_env = "CLOUDFLARE_ACCOUNT_ID"
    litellm_provider = "cloudflare"
    catalog_prefixes = ("cloudflare/",)

    def definition(self) -> Provider:
        return Provider(
            id=self.provider_id,
            name="Cloudflare",
            description="Cloudflare Workers AI: open models served on Cloudflare's network",
            type=ProviderType.PROXY,
            api_base_url=self.base_url,
            requires_api_key=True,
        )

    def request_headers(self, options: OptionsLike = None) -> dict[str, str]:
        opts = ModelOptions.parse(options)
        headers = {"Content-Type": "application/json"}

        api_key = self.resolve_api_key(opts)
        if api_key:
            headers["X-Auth-Key"] = api_key

        email, _ = self._resolve(opts.email, self.email_keyring_key, self.email_env)
        if email:
            headers["X-Auth-Email"] = email
        return headers

    def normalize(self, model_id: str, options: OptionsLike = None) -> Result[str]:
        """Accept @cf/vendor/slug or @hf/vendor/slug; vendor/slug gets the @cf/ prefix."""
        if isinstance(model_id, str):
            if QUALIFIED_ID.match(model_id):
                return Result.success(model_id)
            if VENDOR_SLUG_ID.match(model_id):
                return Result.success(f"@cf/{model_id}")
        return Result.failure(
            InvalidModelIdError(str(model_id), "Cloudflare", "'@cf/vendor/slug' format")
        )

    def account_id(self, options: ModelOptions) -> str:
        """Resolve the account id: options, then keyring, then environment.

        Raises:
            ModelValidationError: If no account id is configured
        """
        account_id, _ = self._resolve(options.account_id, self.account_keyring_key, self.account_env)
        if account_id is None:
            raise ModelValidationError(
                f"Cloudflare account id is required (set '{self.account_keyring_key}')",
                provider=self.provider_id,
            )
        return account_id

    def models_url(self, options: ModelOptions) -> str:
        return f"{self.base_url}/accounts/{self.account_id(options)}/ai/models/search"

    def model_url(self, model_id: str, options: ModelOptions) -> str:
        query = urllib.parse.urlencode({"model": model_id})
        return f"{self.base_url}/accounts/{self.account_id(options)}/ai/models/schema?{query}"

    def parse_model(self, data: Mapping[str, Any]) -> ModelInfo:
        model_id = str(data.get("name") or data.get("id") or "")
        task = data.get("task") or {}
        return ModelInfo(
            id=model_id,
            name=model_id,
            provider=self.provider_id,
            description=str(data.get("description") or ""),
            mode=task.get("name") if isinstance(task, Mapping) else None,
        )
