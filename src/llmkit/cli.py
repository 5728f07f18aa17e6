"""llmkit CLI interface.

Commands:
- check: Report which providers have credentials
- keys: List keyring keys (values are never shown)
- providers: List provider definitions
- models: List a provider's models
- render: Render a YAML prompt file
- init: Create a default llmkit configuration

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --ci: JSON log output
- --version: Show version and exit
"""

import json
from pathlib import Path
from typing import Annotated

import typer
import yaml

from llmkit import __version__
from llmkit.config import LLMKitConfig, KeyringSettings, create_default_config, load_config
from llmkit.errors import KeyringNotStartedError, KeyringStartupError, PromptError
from llmkit.keyring import Keyring, get_keyring, has_value, start_keyring, stop_keyring
from llmkit.prompt import Prompt
from llmkit.providers import ProviderRegistry, setup_default_providers
from llmkit.utils.logging import configure_from_cli, get_logger
from llmkit.utils.preflight import check_credentials

app = typer.Typer(
    name="llmkit",
    help="Keyring, versioned prompts and provider adapters for LLM APIs",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: LLMKitConfig | None = None
_keyring: Keyring | None = None
_logger = get_logger("llmkit.cli")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"llmkit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output with timestamps"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress info messages (warnings and errors only)"),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option("--ci", help="Enable CI mode with JSON log output"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """llmkit - unified access to LLM provider APIs."""
    global _config, _keyring

    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)

    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except (KeyringStartupError, ValueError) as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)

    stop_keyring()
    try:
        _keyring = start_keyring(settings=KeyringSettings(app_config_path=_config.config_path))
    except KeyringStartupError as e:
        _logger.error(f"Failed to start keyring: {e}")
        raise typer.Exit(1)


def _require_keyring() -> Keyring:
    try:
        return get_keyring()
    except KeyringNotStartedError as e:
        _logger.error(str(e))
        raise typer.Exit(1)


def _registry() -> ProviderRegistry:
    providers = _config.providers if _config else None
    return setup_default_providers(
        keyring=_keyring,
        timeout=providers.http_timeout if providers else 30.0,
        default=providers.default if providers else None,
    )


# =============================================================================
# check command
# =============================================================================


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON"),
    ] = False,
) -> None:
    """Report which providers have an API key configured.

    Exit codes:
        0: At least one provider is usable
        1: No provider has credentials
    """
    result = check_credentials(_registry())

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        typer.echo("\nProvider credentials\n")
        for c in result.checks:
            status = "✅" if c.configured else "❌"
            typer.echo(f"  {status} {c.provider}")
            typer.echo(f"     └─ {c.message}")
        typer.echo()

    if not result.success:
        if not json_output:
            typer.echo("❌ No provider has credentials configured")
        raise typer.Exit(1)

    if not json_output:
        typer.echo(f"✅ Usable providers: {', '.join(result.configured_providers)}")
    raise typer.Exit(0)


# =============================================================================
# keys command
# =============================================================================


@app.command()
def keys(
    prefix: Annotated[
        str | None,
        typer.Option("--prefix", "-p", help="Only show keys starting with this prefix"),
    ] = None,
) -> None:
    """List keys known to the keyring and whether they hold a value."""
    keyring = _require_keyring()

    for key in keyring.list_keys():
        if prefix and not key.startswith(prefix):
            continue
        marker = "set" if has_value(keyring.get(key)) else "empty"
        typer.echo(f"{key}\t{marker}")


# =============================================================================
# providers / models commands
# =============================================================================


@app.command()
def providers() -> None:
    """List provider definitions."""
    for definition in _registry().list_providers():
        typer.echo(
            f"{definition.id}\t{definition.name}\t{definition.type.value}\t{definition.api_base_url}"
        )


@app.command()
def models(
    provider: Annotated[str, typer.Argument(help="Provider id (e.g. openai)")],
    refresh: Annotated[
        bool,
        typer.Option("--refresh", help="Fetch the list from the provider API"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON"),
    ] = False,
) -> None:
    """List a provider's models."""
    registry = _registry()
    if provider not in registry.provider_ids():
        _logger.error(f"Unknown provider: {provider}. Available: {', '.join(registry.provider_ids())}")
        raise typer.Exit(1)

    result = registry.get(provider).list_models({"refresh": refresh})
    if not result.ok:
        _logger.error(f"Failed to list {provider} models: {result.error}")
        raise typer.Exit(1)

    listed = result.unwrap()
    if json_output:
        typer.echo(
            json.dumps(
                [{"id": m.id, "name": m.name, "mode": m.mode, "max_tokens": m.max_tokens} for m in listed],
                indent=2,
            )
        )
        return

    for m in listed:
        typer.echo(m.id)
    _logger.info(f"{len(listed)} models")


# =============================================================================
# render command
# =============================================================================


def _parse_params(values: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got: {item}", param_hint="--param")
        params[key] = value
    return params


@app.command()
def render(
    prompt_file: Annotated[
        Path,
        typer.Argument(help="YAML prompt file (messages, params, metadata, options)", exists=True, dir_okay=False),
    ],
    param: Annotated[
        list[str] | None,
        typer.Option("--param", "-p", help="Template parameter as key=value (repeatable)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output messages and options as JSON"),
    ] = False,
) -> None:
    """Render a prompt file.

    Example prompt file:

        messages:
          - role: system
            content: You are terse.
          - role: user
            content: "Hello <%= @name %>"
            engine: eex
        params:
          name: Alice
    """
    overrides = _parse_params(param or [])

    try:
        with open(prompt_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        _logger.error(f"Invalid YAML in {prompt_file}: {e}")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        _logger.error(f"Prompt file must contain a mapping: {prompt_file}")
        raise typer.Exit(1)

    try:
        prompt = Prompt.new(data)
        if json_output:
            typer.echo(json.dumps(prompt.render_with_options(overrides), indent=2, default=str))
        else:
            typer.echo(prompt.to_text(overrides))
    except PromptError as e:
        _logger.error(f"Cannot render {prompt_file}: {e}")
        raise typer.Exit(1)


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite existing config"),
    ] = False,
) -> None:
    """Create .llmkit/config.yaml with default settings."""
    config_dir = Path(".llmkit")
    config_dir.mkdir(exist_ok=True)
    config_file = config_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_file.write_text(create_default_config())
    typer.echo(f"✅ Created config: {config_file}")


if __name__ == "__main__":
    app()
