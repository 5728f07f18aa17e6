"""Unit tests for provider adapters."""

import urllib.parse
from typing import Any

import pytest

from llmkit.config import KeyringSettings
from llmkit.errors import (
    InvalidModelIdError,
    MissingApiKeyError,
    ModelNotFoundError,
    ModelValidationError,
    ProviderRequestError,
)
from llmkit.keyring import Keyring, start_keyring
from llmkit.providers import (
    AnthropicAdapter,
    CloudflareAdapter,
    GoogleAdapter,
    ModelOptions,
    OpenAIAdapter,
    OpenRouterAdapter,
    ProviderType,
    Result,
    standardize_model_name,
)

pytestmark = pytest.mark.usefixtures("clean_provider_env")


@pytest.fixture
def cloudflare_keyring() -> Keyring:
    """A keyring holding Cloudflare credentials."""
    return Keyring(
        {
            "cloudflare_api_key": "cf-key",
            "cloudflare_email": "ops@example.com",
            "cloudflare_account_id": "acc123",
        }
    )


class TestResult:
    """Tests for the Result wrapper."""

    def test_success(self) -> None:
        """Test a success carries its value."""
        result = Result.success(3)

        assert result.ok
        assert result.unwrap() == 3

    def test_failure_unwrap_raises(self) -> None:
        """Test unwrapping a failure raises the stored error."""
        error = ModelValidationError("bad")
        result: Result[int] = Result.failure(error)

        assert not result.ok
        with pytest.raises(ModelValidationError):
            result.unwrap()


class TestDefinitions:
    """Tests for static provider metadata."""

    @pytest.mark.parametrize(
        ("adapter_class", "provider_id", "provider_type"),
        [
            (AnthropicAdapter, "anthropic", ProviderType.DIRECT),
            (OpenAIAdapter, "openai", ProviderType.DIRECT),
            (OpenRouterAdapter, "openrouter", ProviderType.PROXY),
            (CloudflareAdapter, "cloudflare", ProviderType.PROXY),
            (GoogleAdapter, "google", ProviderType.DIRECT),
        ],
    )
    def test_definition(self, adapter_class: type, provider_id: str, provider_type: ProviderType) -> None:
        """Test each adapter describes itself."""
        definition = adapter_class().definition()

        assert definition.id == provider_id
        assert definition.type is provider_type
        assert definition.api_base_url.startswith("https://")
        assert definition.requires_api_key is True


class TestCredentials:
    """Tests for API key resolution."""

    def test_keyring_key(self, base_keyring: Keyring) -> None:
        """Test the key is read from the keyring."""
        adapter = OpenAIAdapter(keyring=base_keyring)

        assert adapter.api_key_source() == ("sk-base", "keyring")

    def test_options_win(self, base_keyring: Keyring) -> None:
        """Test an explicit api_key wins over the keyring."""
        adapter = OpenAIAdapter(keyring=base_keyring)

        assert adapter.api_key_source({"api_key": "sk-explicit"}) == ("sk-explicit", "options")

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the process environment is the last resort."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")

        assert AnthropicAdapter().api_key_source() == ("sk-ant-env", "environment")

    def test_empty_value_is_missing(self) -> None:
        """Test an empty keyring value does not count as a key."""
        adapter = OpenAIAdapter(keyring=Keyring({"openai_api_key": ""}))

        assert adapter.api_key_source() == (None, None)

    def test_session_override(self, base_keyring: Keyring) -> None:
        """Test a requester override changes the resolved key."""
        adapter = OpenAIAdapter(keyring=base_keyring)

        with base_keyring.session():
            base_keyring.set_override("openai_api_key", "sk-override")
            assert adapter.resolve_api_key() == "sk-override"

        assert adapter.resolve_api_key() == "sk-base"

    def test_started_default_keyring(self, keyring_settings: KeyringSettings) -> None:
        """Test adapters without a keyring use the started default one."""
        start_keyring(settings=keyring_settings, app_config={"keyring": {"openai_api_key": "sk-started"}})

        assert OpenAIAdapter().api_key_source() == ("sk-started", "keyring")


class TestHeaders:
    """Tests for request headers."""

    def test_anthropic(self, base_keyring: Keyring) -> None:
        """Test Anthropic uses x-api-key and a version header."""
        headers = AnthropicAdapter(keyring=base_keyring).request_headers()

        assert headers == {
            "Content-Type": "application/json",
            "anthropic-version": "2023-06-01",
            "x-api-key": "sk-ant-base",
        }

    def test_openai(self, base_keyring: Keyring) -> None:
        """Test OpenAI uses bearer auth."""
        headers = OpenAIAdapter(keyring=base_keyring).request_headers()

        assert headers["Authorization"] == "Bearer sk-base"

    def test_no_key_no_auth_header(self) -> None:
        """Test auth headers are omitted without a key."""
        headers = OpenAIAdapter().request_headers()

        assert "Authorization" not in headers

    def test_openrouter(self) -> None:
        """Test OpenRouter adds app attribution headers."""
        headers = OpenRouterAdapter().request_headers({"api_key": "or-key"})

        assert headers["Authorization"] == "Bearer or-key"
        assert headers["HTTP-Referer"]
        assert headers["X-Title"] == "llmkit"

    def test_cloudflare(self, cloudflare_keyring: Keyring) -> None:
        """Test Cloudflare sends key and email."""
        headers = CloudflareAdapter(keyring=cloudflare_keyring).request_headers()

        assert headers["X-Auth-Key"] == "cf-key"
        assert headers["X-Auth-Email"] == "ops@example.com"

    def test_cloudflare_email_option(self, cloudflare_keyring: Keyring) -> None:
        """Test the email option wins over the keyring."""
        headers = CloudflareAdapter(keyring=cloudflare_keyring).request_headers({"email": "me@example.com"})

        assert headers["X-Auth-Email"] == "me@example.com"

    def test_google(self) -> None:
        """Test Google uses x-goog-api-key."""
        headers = GoogleAdapter().request_headers({"api_key": "g-key"})

        assert headers["x-goog-api-key"] == "g-key"


class TestNormalize:
    """Tests for model id normalization."""

    @pytest.mark.parametrize(
        ("adapter_class", "model_id", "expected"),
        [
            (AnthropicAdapter, "claude-3-5-haiku-latest", "claude-3-5-haiku-latest"),
            (AnthropicAdapter, "claude-3.5-sonnet", "claude-3.5-sonnet"),
            (OpenAIAdapter, "gpt-4o", "gpt-4o"),
            (OpenAIAdapter, "gpt-3.5-turbo", "gpt-3.5-turbo"),
            (OpenAIAdapter, "ft:gpt-4o-mini:org::abc", "ft:gpt-4o-mini:org::abc"),
            (OpenRouterAdapter, "anthropic/claude-3.5-sonnet", "anthropic/claude-3.5-sonnet"),
            (OpenRouterAdapter, "meta-llama/llama-3-8b:free", "meta-llama/llama-3-8b:free"),
            (CloudflareAdapter, "@cf/meta/llama-3.1-8b-instruct", "@cf/meta/llama-3.1-8b-instruct"),
            (CloudflareAdapter, "@hf/thebloke/zephyr-7b", "@hf/thebloke/zephyr-7b"),
            (CloudflareAdapter, "meta/llama-3.1-8b-instruct", "@cf/meta/llama-3.1-8b-instruct"),
            (GoogleAdapter, "gemini-2.0-flash", "gemini-2.0-flash"),
            (GoogleAdapter, "models/gemini-1.5-pro", "gemini-1.5-pro"),
            (GoogleAdapter, "imagen-3.0-generate-002", "imagen-3.0-generate-002"),
        ],
    )
    def test_valid(self, adapter_class: type, model_id: str, expected: str) -> None:
        """Test accepted ids and their canonical form."""
        assert adapter_class().normalize(model_id).unwrap() == expected

    @pytest.mark.parametrize(
        ("adapter_class", "model_id"),
        [
            (AnthropicAdapter, "gpt-4o"),
            (AnthropicAdapter, "claude 3"),
            (OpenAIAdapter, "-gpt"),
            (OpenAIAdapter, "gpt 4"),
            (OpenRouterAdapter, "gpt-4o"),
            (OpenRouterAdapter, "a/b/c"),
            (CloudflareAdapter, "llama"),
            (CloudflareAdapter, "@xx/meta/llama"),
            (GoogleAdapter, "claude-3"),
        ],
    )
    def test_invalid(self, adapter_class: type, model_id: str) -> None:
        """Test rejected ids produce a failure instead of raising."""
        result = adapter_class().normalize(model_id)

        assert not result.ok
        assert isinstance(result.error, InvalidModelIdError)
        assert result.error.model_id == model_id

    def test_non_string(self) -> None:
        """Test a non-string id is a failure."""
        assert not OpenAIAdapter().normalize(None).ok  # type: ignore[arg-type]


class TestBuild:
    """Tests for building Model descriptors."""

    def test_defaults(self, base_keyring: Keyring) -> None:
        """Test a minimal build fills in defaults."""
        model = AnthropicAdapter(keyring=base_keyring).build({"model": "claude-3-5-haiku-latest"}).unwrap()

        assert model.id == "anthropic_claude-3-5-haiku-latest"
        assert model.provider == "anthropic"
        assert model.model == "claude-3-5-haiku-latest"
        assert model.base_url == "https://api.anthropic.com/v1"
        assert model.api_key == "sk-ant-base"
        assert model.temperature == 0.7
        assert model.max_tokens == 1024
        assert model.max_retries == 0
        assert model.architecture.modality == "text"

    def test_overrides(self) -> None:
        """Test explicit options win over defaults."""
        model = OpenAIAdapter().build(
            {
                "model": "gpt-4o",
                "id": "my-model",
                "name": "Mine",
                "temperature": 0.1,
                "max_tokens": 50,
                "max_retries": 3,
                "api_key": "sk-x",
            }
        ).unwrap()

        assert (model.id, model.name, model.temperature, model.max_tokens, model.max_retries) == (
            "my-model",
            "Mine",
            0.1,
            50,
            3,
        )
        assert model.api_key == "sk-x"

    def test_missing_model(self) -> None:
        """Test build without a model id fails with a named error."""
        result = OpenAIAdapter().build({})

        assert isinstance(result.error, ModelValidationError)
        assert str(result.error) == "model is required for OpenAI models"

    def test_invalid_model(self) -> None:
        """Test build normalizes and rejects bad ids."""
        result = OpenRouterAdapter().build({"model": "gpt-4o"})

        assert isinstance(result.error, InvalidModelIdError)

    def test_normalized_id(self) -> None:
        """Test the descriptor carries the canonical id."""
        model = CloudflareAdapter().build({"model": "meta/llama-3.1-8b-instruct"}).unwrap()

        assert model.model == "@cf/meta/llama-3.1-8b-instruct"

    def test_unknown_option(self) -> None:
        """Test unknown options are rejected."""
        result = OpenAIAdapter().build({"model": "gpt-4o", "colour": "red"})

        assert isinstance(result.error, ModelValidationError)
        assert "colour" in str(result.error)

    @pytest.mark.parametrize(
        "options",
        [{"temperature": 3.0}, {"max_tokens": -1}, {"max_tokens": "10"}, {"refresh": "yes"}, {"model": 5}],
    )
    def test_invalid_option_values(self, options: dict[str, Any]) -> None:
        """Test out-of-range option values are rejected."""
        result = OpenAIAdapter().build({"model": "gpt-4o", **options})

        assert isinstance(result.error, ModelValidationError)

    def test_missing_key_is_not_an_error(self) -> None:
        """Test a build without credentials still succeeds."""
        model = OpenAIAdapter().build({"model": "gpt-4o"}).unwrap()

        assert model.api_key is None

    def test_google_known_model(self) -> None:
        """Test Google fills defaults from its model table."""
        model = GoogleAdapter().build({"model": "gemini-2.0-flash"}).unwrap()

        assert model.name == "Gemini 2.0 Flash"
        assert model.max_tokens == 2048
        assert model.architecture.modality == "audio+image+video+text->text+image"
        assert model.architecture.tokenizer == "gemini"
        assert model.litellm_model_name() == "gemini/gemini-2.0-flash"

    def test_google_zero_temperature_default(self) -> None:
        """Test a table default of 0.0 is kept."""
        model = GoogleAdapter().build({"model": "gemini-embedding-exp"}).unwrap()

        assert model.temperature == 0.0

    def test_google_unknown_model(self) -> None:
        """Test unlisted Gemini ids get generic defaults."""
        model = GoogleAdapter().build({"model": "gemini-9.0-ultra"}).unwrap()

        assert model.max_tokens == 1024
        assert model.architecture.modality == "text+image->text"

    def test_model_to_dict_masks_key(self) -> None:
        """Test the API key never appears in dict or repr form."""
        model = OpenAIAdapter().build({"model": "gpt-4o", "api_key": "sk-secret"}).unwrap()

        assert model.to_dict()["api_key"] == "***"
        assert "sk-secret" not in repr(model)


class TestListModels:
    """Tests for model listings."""

    def test_catalog(self, fake_catalog: dict[str, Any]) -> None:
        """Test listings come from the catalog by default."""
        models = OpenAIAdapter(catalog=fake_catalog).list_models().unwrap()

        assert [m.id for m in models] == ["gpt-3.5-turbo", "gpt-4o"]
        gpt4o = models[1]
        assert gpt4o.context_length == 128000
        assert gpt4o.max_tokens == 16384
        assert gpt4o.capabilities == {"vision": True, "function_calling": True}

    def test_catalog_prefix_stripped(self, fake_catalog: dict[str, Any]) -> None:
        """Test provider prefixes are removed from catalog keys."""
        openrouter = OpenRouterAdapter(catalog=fake_catalog).list_models().unwrap()
        google = GoogleAdapter(catalog=fake_catalog).list_models().unwrap()

        assert [m.id for m in openrouter] == ["anthropic/claude-3.5-sonnet"]
        assert openrouter[0].max_tokens == 8192
        assert [m.id for m in google] == ["gemini-2.0-flash"]

    def test_refresh_fetches(self, base_keyring: Keyring, fake_catalog: dict[str, Any], fake_fetcher: Any) -> None:
        """Test refresh queries the provider API with credentials."""
        fake_fetcher.responses["https://api.openai.com/v1/models"] = {
            "data": [{"id": "gpt-4o"}, {"id": "text-embedding-3-small"}]
        }
        adapter = OpenAIAdapter(keyring=base_keyring, fetch=fake_fetcher, catalog=fake_catalog)

        models = adapter.list_models({"refresh": True}).unwrap()

        assert [m.id for m in models] == ["gpt-4o", "text-embedding-3-small"]
        assert models[1].capabilities["embedding"] is True
        url, headers = fake_fetcher.calls[0]
        assert headers["Authorization"] == "Bearer sk-base"

    def test_anthropic_listing_url(self, base_keyring: Keyring, fake_fetcher: Any) -> None:
        """Test Anthropic asks for a large page."""
        fake_fetcher.responses["https://api.anthropic.com/v1/models?limit=1000"] = {
            "data": [{"id": "claude-3-5-haiku-latest", "display_name": "Claude Haiku"}]
        }
        adapter = AnthropicAdapter(keyring=base_keyring, fetch=fake_fetcher)

        models = adapter.list_models({"refresh": True}).unwrap()

        assert models[0].name == "Claude Haiku"

    def test_empty_catalog_falls_back_to_api(self, cloudflare_keyring: Keyring, fake_catalog: dict[str, Any], fake_fetcher: Any) -> None:
        """Test providers missing from the catalog are fetched."""
        fake_fetcher.responses["https://api.cloudflare.com/client/v4/accounts/acc123/ai/models/search"] = {
            "success": True,
            "result": [
                {
                    "name": "@cf/meta/llama-3.1-8b-instruct",
                    "description": "Llama",
                    "task": {"name": "Text Generation"},
                }
            ],
        }
        adapter = CloudflareAdapter(keyring=cloudflare_keyring, fetch=fake_fetcher, catalog=fake_catalog)

        models = adapter.list_models().unwrap()

        assert models[0].id == "@cf/meta/llama-3.1-8b-instruct"
        assert models[0].mode == "Text Generation"
        _, headers = fake_fetcher.calls[0]
        assert headers["X-Auth-Key"] == "cf-key"

    def test_google_listing(self, fake_fetcher: Any) -> None:
        """Test Google ids lose their resource prefix."""
        fake_fetcher.responses["https://generativelanguage.googleapis.com/v1beta/models"] = {
            "models": [
                {
                    "name": "models/gemini-1.5-pro",
                    "displayName": "Gemini 1.5 Pro",
                    "inputTokenLimit": 2000000,
                    "outputTokenLimit": 8192,
                }
            ]
        }
        adapter = GoogleAdapter(fetch=fake_fetcher, catalog={})

        models = adapter.list_models({"api_key": "g-key"}).unwrap()

        assert models[0].id == "gemini-1.5-pro"
        assert models[0].context_length == 2000000

    def test_missing_key(self, fake_fetcher: Any) -> None:
        """Test a refresh without credentials fails before any request."""
        adapter = OpenAIAdapter(fetch=fake_fetcher)

        result = adapter.list_models({"refresh": True})

        assert isinstance(result.error, MissingApiKeyError)
        assert fake_fetcher.calls == []

    def test_cloudflare_missing_account(self, fake_fetcher: Any) -> None:
        """Test Cloudflare listings need an account id."""
        adapter = CloudflareAdapter(keyring=Keyring({"cloudflare_api_key": "k"}), fetch=fake_fetcher)

        result = adapter.list_models({"refresh": True})

        assert isinstance(result.error, ModelValidationError)
        assert fake_fetcher.calls == []

    def test_http_failure_is_result(self, base_keyring: Keyring, fake_fetcher: Any) -> None:
        """Test HTTP errors are returned, not raised."""
        fake_fetcher.responses["https://api.openai.com/v1/models"] = ProviderRequestError("HTTP 500", status=500)
        adapter = OpenAIAdapter(keyring=base_keyring, fetch=fake_fetcher)

        result = adapter.list_models({"refresh": True})

        assert isinstance(result.error, ProviderRequestError)
        assert result.error.status == 500
        assert result.error.provider == "openai"

    def test_invalid_options(self) -> None:
        """Test invalid options are a failure."""
        assert isinstance(OpenAIAdapter().list_models({"nope": 1}).error, ModelValidationError)


class TestModelLookup:
    """Tests for single-model lookup."""

    def test_catalog_hit(self, fake_catalog: dict[str, Any], fake_fetcher: Any) -> None:
        """Test known models are answered from the catalog."""
        adapter = OpenAIAdapter(catalog=fake_catalog, fetch=fake_fetcher)

        info = adapter.model("gpt-4o").unwrap()

        assert info.context_length == 128000
        assert fake_fetcher.calls == []

    def test_fetch(self, base_keyring: Keyring, fake_fetcher: Any) -> None:
        """Test lookups outside the catalog hit the API."""
        fake_fetcher.responses["https://api.openai.com/v1/models/gpt-4o-2024-11-20"] = {"id": "gpt-4o-2024-11-20"}
        adapter = OpenAIAdapter(keyring=base_keyring, fetch=fake_fetcher, catalog={})

        assert adapter.model("gpt-4o-2024-11-20").unwrap().id == "gpt-4o-2024-11-20"

    def test_not_found(self, base_keyring: Keyring, fake_fetcher: Any) -> None:
        """Test a 404 becomes ModelNotFoundError."""
        adapter = OpenAIAdapter(keyring=base_keyring, fetch=fake_fetcher, catalog={})

        result = adapter.model("gpt-nope")

        assert isinstance(result.error, ModelNotFoundError)

    def test_invalid_id(self, fake_fetcher: Any) -> None:
        """Test ids are normalized before lookup."""
        result = AnthropicAdapter(fetch=fake_fetcher).model("gpt-4o")

        assert isinstance(result.error, InvalidModelIdError)
        assert fake_fetcher.calls == []

    def test_cloudflare_schema(self, cloudflare_keyring: Keyring, fake_fetcher: Any) -> None:
        """Test Cloudflare lookups use the schema endpoint and keep the requested id."""
        query = urllib.parse.urlencode({"model": "@cf/meta/llama-3.1-8b-instruct"})
        url = f"https://api.cloudflare.com/client/v4/accounts/acc123/ai/models/schema?{query}"
        fake_fetcher.responses[url] = {"success": True, "result": {"input": {}, "output": {}}}
        adapter = CloudflareAdapter(keyring=cloudflare_keyring, fetch=fake_fetcher, catalog={})

        info = adapter.model("meta/llama-3.1-8b-instruct").unwrap()

        assert info.id == "@cf/meta/llama-3.1-8b-instruct"


class TestModelOptions:
    """Tests for ModelOptions parsing."""

    def test_parse_none(self) -> None:
        """Test None yields empty options."""
        assert ModelOptions.parse(None) == ModelOptions()

    def test_parse_instance(self) -> None:
        """Test an instance is returned as-is."""
        options = ModelOptions(model="gpt-4o")

        assert ModelOptions.parse(options) is options

    def test_parse_non_mapping(self) -> None:
        """Test other types are rejected."""
        with pytest.raises(ModelValidationError):
            ModelOptions.parse(["model"])  # type: ignore[arg-type]


class TestStandardizeModelName:
    """Tests for cross-provider model family names."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("claude-3.7-sonnet-20250219", "claude-3.7-sonnet"),
            ("anthropic/claude-3.5-sonnet", "claude-3.5-sonnet"),
            ("gpt-4o-mini-2024-07-18", "gpt-4o-mini"),
            ("gpt-4-0613", "gpt-4"),
            ("mixtral-large-20240101", "mixtral-large"),
            ("foo-1234", "foo"),
            ("plain", "plain"),
        ],
    )
    def test_standardize(self, name: str, expected: str) -> None:
        """Test known families and version suffixes."""
        assert standardize_model_name(name) == expected
