"""llmkit configuration sources.

The keyring reads two kinds of configuration at startup:

1. Environment files, in ascending precedence:
   ./.env, ./envs/.env, ./envs/.<env>.env, ./envs/.<env>.overrides.env
   followed by the process environment.
2. Application configuration: the ``keyring`` section of a YAML file.

Application config file discovery (in priority order):
1. Explicit path (``--config`` on the CLI)
2. ./.llmkit/config.yaml
3. ./llmkit.yaml

Supports environment variable substitution (${VAR}) in config files.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from llmkit.errors import KeyringStartupError

DEFAULT_ENV_NAME = "dev"
ENV_NAME_VARIABLE = "LLMKIT_ENV"
KEYRING_NAMESPACE = "keyring"

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class KeyringSettings:
    """Where the keyring looks for its base values.

    Attributes:
        root: Directory env files are resolved against
        env_name: Environment name used for .<env>.env files (dev, test, prod)
        env_dir: Sub-directory holding the layered env files
        app_config_path: YAML application config (None to skip)
        include_os_environ: Whether the process environment is layered on top
    """

    root: Path = field(default_factory=Path.cwd)
    env_name: str = field(default_factory=lambda: os.environ.get(ENV_NAME_VARIABLE, DEFAULT_ENV_NAME))
    env_dir: str = "envs"
    app_config_path: Path | None = None
    include_os_environ: bool = True

    def __post_init__(self) -> None:
        """Validate settings."""
        self.root = Path(self.root)
        if not self.env_name or not re.fullmatch(r"[A-Za-z0-9_\-]+", self.env_name):
            raise ValueError(f"Invalid environment name: {self.env_name!r}")


@dataclass
class ProvidersConfig:
    """Provider adapter settings.

    Attributes:
        http_timeout: Timeout in seconds for model-listing requests
        default: Provider used when none is given
    """

    http_timeout: float = 30.0
    default: str | None = None

    def __post_init__(self) -> None:
        """Validate provider settings."""
        if self.http_timeout <= 0:
            raise ValueError(f"http_timeout must be positive. Got: {self.http_timeout}")


@dataclass
class LLMKitConfig:
    """Top-level application configuration.

    Attributes:
        keyring: Raw values under the ``keyring`` namespace
        providers: Provider adapter settings
    """

    keyring: dict[str, Any] = field(default_factory=dict)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)

    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path


# =============================================================================
# Environment Variable Substitution
# =============================================================================


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax for environment variable substitution.
    Example: ${ANTHROPIC_API_KEY} -> value of ANTHROPIC_API_KEY

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return pattern.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find the application config file in standard locations.

    Search order:
    1. ./.llmkit/config.yaml
    2. ./llmkit.yaml

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".llmkit" / "config.yaml",
        start_path / "llmkit.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


def env_file_sources(settings: KeyringSettings) -> list[Path]:
    """List env files in ascending precedence.

    Later files override earlier ones for the same key. Files are not
    required to exist.

    Args:
        settings: Keyring settings

    Returns:
        Candidate env file paths
    """
    env_dir = settings.root / settings.env_dir
    return [
        settings.root / ".env",
        env_dir / ".env",
        env_dir / f".{settings.env_name}.env",
        env_dir / f".{settings.env_name}.overrides.env",
    ]


# =============================================================================
# Config Loading
# =============================================================================


def keyring_section(data: dict[str, Any]) -> dict[str, Any]:
    """Return the mapping stored under the keyring namespace.

    Args:
        data: Parsed application config

    Returns:
        The keyring mapping, or an empty dict if absent or not a mapping
    """
    section = data.get(KEYRING_NAMESPACE)
    if isinstance(section, dict):
        return dict(section)
    return {}


def load_config_from_dict(data: dict[str, Any]) -> LLMKitConfig:
    """Load configuration from a dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        LLMKitConfig instance
    """
    data = substitute_env_vars(data)

    config = LLMKitConfig(keyring=keyring_section(data))

    if isinstance(data.get("providers"), dict):
        providers_data = data["providers"]
        config.providers = ProvidersConfig(
            http_timeout=float(providers_data.get("http_timeout", 30.0)),
            default=providers_data.get("default"),
        )

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> LLMKitConfig:
    """Load application configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        LLMKitConfig instance

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
        KeyringStartupError: If the file is not valid YAML or not a mapping
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is None:
        return LLMKitConfig()

    data = read_yaml_mapping(found_path)
    config = load_config_from_dict(data)
    config._config_path = found_path
    return config


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Read a YAML file that must contain a mapping.

    Args:
        path: YAML file

    Returns:
        Parsed mapping (empty file yields {})

    Raises:
        KeyringStartupError: If the file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise KeyringStartupError(f"Cannot read config file: {e}", path=path) from e
    except yaml.YAMLError as e:
        line = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            line = mark.line + 1
        raise KeyringStartupError("Malformed YAML config", path=path, line=line) from e

    if not isinstance(data, dict):
        raise KeyringStartupError("Config file must contain a mapping", path=path)

    return data


def create_default_config() -> str:
    """Create default configuration YAML content.

    Returns:
        YAML string with default configuration and comments
    """
    return '''# llmkit configuration

# Static keyring values (lowest precedence: env files and OS variables win)
keyring:
  # anthropic_api_key: "${ANTHROPIC_API_KEY}"
  # openai_api_key: "sk-..."
  # cloudflare_account_id: "..."

providers:
  http_timeout: 30     # seconds, for model listing requests
  # default: openai
'''
