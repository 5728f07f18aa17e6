"""Model listings: LiteLLM's bundled catalog and provider HTTP endpoints."""

import json
import logging
import urllib.error
import urllib.request
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import litellm

from llmkit.errors import ProviderRequestError
from llmkit.providers.model import ModelInfo

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# (url, headers) -> decoded JSON
Fetcher = Callable[[str, dict[str, str]], Any]


def get_json(url: str, headers: dict[str, str], timeout: float = DEFAULT_TIMEOUT) -> Any:
    """GET a URL and decode the JSON body.

    Args:
        url: Request URL
        headers: Request headers
        timeout: Timeout in seconds

    Returns:
        Decoded JSON

    Raises:
        ProviderRequestError: On HTTP errors, connection failures or invalid JSON
    """
    request = urllib.request.Request(url, headers=headers, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as e:
        raise ProviderRequestError(f"HTTP {e.code} from {url}: {e.reason}", status=e.code) from e
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise ProviderRequestError(f"Request to {url} failed: {e}") from e

    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProviderRequestError(f"Invalid JSON from {url}: {e}") from e


def make_fetcher(timeout: float = DEFAULT_TIMEOUT) -> Fetcher:
    """Create a fetcher bound to a timeout."""

    def fetch(url: str, headers: dict[str, str]) -> Any:
        logger.debug("GET %s", url)
        return get_json(url, headers, timeout=timeout)

    return fetch


def extract_models(data: Any) -> list[Any]:
    """Pull the list of models out of a listing response.

    Handles {"data": [...]}, {"models": [...]}, {"result": [...]}, a bare
    list, and a single model object.
    """
    if isinstance(data, Mapping):
        for key in ("data", "models", "result"):
            if isinstance(data.get(key), list):
                return list(data[key])
        return [data]
    if isinstance(data, list):
        return data
    return [data]


def extract_model(data: Any) -> Any:
    """Pull a single model out of a detail response."""
    if isinstance(data, Mapping):
        for key in ("data", "model", "result"):
            if isinstance(data.get(key), Mapping):
                return data[key]
    return data


# =============================================================================
# LiteLLM catalog
# =============================================================================


def catalog_models(
    litellm_provider: str,
    provider_id: str,
    catalog: Mapping[str, Mapping[str, Any]] | None = None,
    prefixes: Iterable[str] = (),
) -> list[ModelInfo]:
    """List a provider's models from LiteLLM's model catalog.

    Args:
        litellm_provider: Value of the catalog's ``litellm_provider`` field
        provider_id: Provider id to stamp on the results
        catalog: Catalog to read (defaults to litellm.model_cost)
        prefixes: Prefixes stripped from catalog keys (e.g. "gemini/")

    Returns:
        Models sorted by id
    """
    if catalog is None:
        catalog = litellm.model_cost

    models: dict[str, ModelInfo] = {}
    for key, entry in catalog.items():
        if not isinstance(entry, Mapping) or entry.get("litellm_provider") != litellm_provider:
            continue

        model_id = key
        for prefix in prefixes:
            if model_id.startswith(prefix):
                model_id = model_id[len(prefix):]
                break

        models[model_id] = ModelInfo(
            id=model_id,
            name=model_id,
            provider=provider_id,
            context_length=entry.get("max_input_tokens"),
            max_tokens=entry.get("max_output_tokens") or entry.get("max_tokens"),
            mode=entry.get("mode"),
            capabilities={
                k.removeprefix("supports_"): bool(v)
                for k, v in entry.items()
                if k.startswith("supports_") and isinstance(v, bool)
            },
        )

    return [models[k] for k in sorted(models)]
