"""Keyring: hierarchical configuration and credential store.

Values are resolved in this order:

1. Session overrides, scoped to a requester (thread, task or explicit id)
2. Environment: layered .env files, then the process environment
3. Application config (the ``keyring`` section of llmkit.yaml)
4. The caller's default

Levels 2 and 3 are merged once at startup into a read-only base mapping.
Overrides live in a lock-guarded dict keyed by (requester, key), so one
requester's overrides never leak into another's reads.

Usage:
    keyring = start_keyring()
    keyring.get("openai_api_key")

    keyring.set_override("openai_api_key", "sk-test")
    keyring.get("openai_api_key")          # "sk-test" for this requester only
    keyring.clear_override("openai_api_key")

    with keyring.session():
        keyring.set_override("openai_api_key", "sk-scoped")
    # overrides set inside the session are cleared on exit
"""

import io
import logging
import os
import re
import threading
import uuid
from collections.abc import Callable, Hashable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from types import MappingProxyType
from typing import Any

from dotenv import dotenv_values
from dotenv.parser import parse_stream

from llmkit.config import (
    KeyringSettings,
    env_file_sources,
    keyring_section,
    read_yaml_mapping,
    substitute_env_vars,
)
from llmkit.errors import (
    InvalidKeyError,
    KeyringError,
    KeyringNotStartedError,
    KeyringStartupError,
)
from llmkit.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_NAME = "default"


class _Absent:
    """Marker for "no override stored", distinct from a stored None."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

_bound_requester: ContextVar[Hashable | None] = ContextVar("llmkit_requester", default=None)
_thread_identity = threading.local()


def current_requester() -> Hashable:
    """Return the identity overrides are scoped to by default.

    The identity bound by ``Keyring.session()`` wins; otherwise the current
    thread is the requester. Each thread gets its own token on first use;
    tokens are never reused, unlike OS thread ids.
    """
    bound = _bound_requester.get()
    if bound is not None:
        return bound
    token = getattr(_thread_identity, "requester", None)
    if token is None:
        token = ("thread", uuid.uuid4().hex)
        _thread_identity.requester = token
    return token


# =============================================================================
# Key and value helpers
# =============================================================================


def env_var_to_key(name: str) -> str:
    """Convert an environment variable name to a keyring key.

    Lower-cases the name and collapses each run of characters outside
    [a-z0-9_] into a single underscore.

    Examples:
        OPENAI_API_KEY -> openai_api_key
        my-service.token -> my_service_token
    """
    return re.sub(r"[^a-z0-9_]+", "_", name.lower())


def has_value(value: Any) -> bool:
    """Return True only for non-empty strings.

    A credential that is set but empty counts as not configured.
    """
    return isinstance(value, str) and value != ""


def get_env_var(name: str, default: Any = None) -> Any:
    """Read a raw process environment variable."""
    return os.environ.get(name, default)


# =============================================================================
# Base value loading
# =============================================================================


def load_env_file(path: Path) -> dict[str, str] | None:
    """Parse one env file.

    Args:
        path: File to read

    Returns:
        Parsed values, or None if the file does not exist

    Raises:
        KeyringStartupError: If the file is unreadable or has a malformed line
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise KeyringStartupError(f"Cannot read env file: {e}", path=path) from e

    for binding in parse_stream(io.StringIO(text)):
        if binding.error:
            raise KeyringStartupError(
                "Malformed env file entry",
                path=path,
                line=binding.original.line,
            )

    values = dotenv_values(stream=io.StringIO(text))
    return {key: value for key, value in values.items() if value is not None}


def load_from_env(
    settings: KeyringSettings,
    environ: Mapping[str, str] | None = None,
) -> tuple[dict[str, Any], list[Path]]:
    """Load values from env files and the process environment.

    Args:
        settings: Keyring settings
        environ: Environment to layer last (defaults to os.environ)

    Returns:
        Tuple of (normalized values, env files that were loaded)
    """
    values: dict[str, Any] = {}
    loaded: list[Path] = []

    for path in env_file_sources(settings):
        file_values = load_env_file(path)
        if file_values is None:
            continue
        loaded.append(path)
        for name, value in file_values.items():
            values[env_var_to_key(name)] = value
        logger.debug("Loaded %d keys from %s", len(file_values), path)

    if settings.include_os_environ:
        source = os.environ if environ is None else environ
        for name, value in source.items():
            values[env_var_to_key(name)] = value

    return values, loaded


def load_from_app_config(
    settings: KeyringSettings,
    app_config: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Load values from the keyring namespace of the application config.

    Args:
        settings: Keyring settings (app_config_path is read if no mapping is given)
        app_config: Already-parsed application config

    Returns:
        Normalized values
    """
    if app_config is None:
        if settings.app_config_path is None:
            return {}
        data = read_yaml_mapping(settings.app_config_path)
        try:
            data = substitute_env_vars(data)
        except ValueError as e:
            raise KeyringStartupError(str(e), path=settings.app_config_path) from e
    else:
        data = dict(app_config)

    return {env_var_to_key(str(key)): value for key, value in keyring_section(data).items()}


# =============================================================================
# Keyring
# =============================================================================


class Keyring:
    """Configuration store with per-requester overrides.

    Attributes:
        name: Instance name (several instances can coexist, e.g. in tests)
        sources: Env files that contributed to the base mapping
    """

    def __init__(
        self,
        base: Mapping[str, Any] | None = None,
        name: str = DEFAULT_NAME,
        sources: list[Path] | None = None,
    ) -> None:
        """Initialize a keyring over an already-merged base mapping.

        Use ``Keyring.start`` to load the base mapping from env files and
        application config.

        Args:
            base: Base values (copied, then frozen)
            name: Instance name
            sources: Env files the base was loaded from
        """
        self.name = name
        self.sources = tuple(sources or ())
        self._base: Mapping[str, Any] = MappingProxyType(dict(base or {}))
        self._overrides: dict[tuple[Hashable, str], Any] = {}
        self._lock = threading.Lock()

    @classmethod
    def start(
        cls,
        name: str = DEFAULT_NAME,
        settings: KeyringSettings | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        app_config: Mapping[str, Any] | None = None,
    ) -> "Keyring":
        """Load base values and create a keyring.

        Environment values win over application config values for the
        same key.

        Args:
            name: Instance name
            settings: Where to look for env files and app config
            environ: Environment to use instead of os.environ
            app_config: Parsed application config (its ``keyring`` section is used)

        Returns:
            Started Keyring

        Raises:
            KeyringStartupError: If an env file or the app config is malformed
        """
        settings = settings or KeyringSettings()

        env_values, loaded = load_from_env(settings, environ)
        app_values = load_from_app_config(settings, app_config)

        base = {**app_values, **env_values}
        logger.structured(
            logging.DEBUG,
            "Keyring started",
            keyring=name,
            keys=len(base),
            app_config_keys=len(app_values),
            env_files=[str(path) for path in loaded],
        )
        return cls(base, name=name, sources=loaded)

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, key: str, default: Any = None, requester: Hashable | None = None) -> Any:
        """Get a value, checking the requester's override first.

        Args:
            key: Keyring key
            default: Returned when neither an override nor a base value exists
            requester: Override scope (defaults to current_requester())

        Returns:
            Override value, else base value, else default
        """
        value = self.get_override(key, requester)
        if value is ABSENT:
            return self._base.get(key, default)
        return value

    def get_base(self, key: str, default: Any = None) -> Any:
        """Get a value from the base mapping, ignoring overrides."""
        _check_key(key)
        return self._base.get(key, default)

    def get_override(self, key: str, requester: Hashable | None = None) -> Any:
        """Get the requester's override for key.

        Returns:
            The stored value (which may be None), or ABSENT if no override exists
        """
        _check_key(key)
        scope = _scope(requester)
        with self._lock:
            return self._overrides.get((scope, key), ABSENT)

    def list_keys(self) -> list[str]:
        """List keys in the base mapping.

        Overrides are requester-scoped and are not included.
        """
        return sorted(self._base)

    @staticmethod
    def has_value(value: Any) -> bool:
        """Return True only for non-empty strings."""
        return has_value(value)

    # =========================================================================
    # Overrides
    # =========================================================================

    def set_override(self, key: str, value: Any, requester: Hashable | None = None) -> None:
        """Set an override visible only to requester."""
        _check_key(key)
        scope = _scope(requester)
        with self._lock:
            self._overrides[(scope, key)] = value

    def clear_override(self, key: str, requester: Hashable | None = None) -> None:
        """Remove one override. Clearing an absent override is a no-op."""
        _check_key(key)
        scope = _scope(requester)
        with self._lock:
            self._overrides.pop((scope, key), None)

    def clear_all_overrides(self, requester: Hashable | None = None) -> None:
        """Remove every override belonging to requester."""
        scope = _scope(requester)
        with self._lock:
            for composite in [k for k in self._overrides if k[0] == scope]:
                del self._overrides[composite]

    def sweep(self, is_alive: Callable[[Hashable], bool]) -> int:
        """Drop overrides of requesters that are no longer alive.

        Overrides are never pruned on their own; long-lived processes with
        many short-lived requesters should call this periodically or use
        ``session()``.

        The predicate runs without the lock held, so it may read the keyring.

        Args:
            is_alive: Predicate called once per distinct requester

        Returns:
            Number of overrides removed
        """
        with self._lock:
            requesters = {scope for scope, _ in self._overrides}

        dead = {scope for scope in requesters if not is_alive(scope)}
        if not dead:
            return 0

        with self._lock:
            stale = [k for k in self._overrides if k[0] in dead]
            for composite in stale:
                del self._overrides[composite]

        if stale:
            logger.debug("Swept %d overrides from %d requesters", len(stale), len(dead))
        return len(stale)

    def override_count(self) -> int:
        """Return the total number of stored overrides."""
        with self._lock:
            return len(self._overrides)

    @contextmanager
    def session(self, requester: Hashable | None = None) -> Iterator[Hashable]:
        """Bind a requester identity for the duration of a block.

        Calls without an explicit requester inside the block use this
        identity. Its overrides are cleared when the block exits.

        Args:
            requester: Identity to bind (a fresh one is generated if None)

        Yields:
            The bound requester identity
        """
        if requester is None:
            requester = ("session", uuid.uuid4().hex)
        token = _bound_requester.set(requester)
        try:
            yield requester
        finally:
            _bound_requester.reset(token)
            self.clear_all_overrides(requester)

    def __repr__(self) -> str:
        return f"Keyring(name={self.name!r}, keys={len(self._base)})"


def _check_key(key: Any) -> None:
    if not isinstance(key, str):
        raise InvalidKeyError(key)


def _scope(requester: Hashable | None) -> Hashable:
    return current_requester() if requester is None else requester


# =============================================================================
# Named instances
# =============================================================================

_instances: dict[str, Keyring] = {}
_instances_lock = threading.Lock()


def start_keyring(
    name: str = DEFAULT_NAME,
    settings: KeyringSettings | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    app_config: Mapping[str, Any] | None = None,
) -> Keyring:
    """Start a keyring and register it under name.

    Raises:
        KeyringError: If an instance with this name is already started
        KeyringStartupError: If configuration cannot be loaded
    """
    with _instances_lock:
        if name in _instances:
            raise KeyringError(f"Keyring '{name}' is already started")

    keyring = Keyring.start(name, settings, environ=environ, app_config=app_config)

    with _instances_lock:
        if name in _instances:
            raise KeyringError(f"Keyring '{name}' is already started")
        _instances[name] = keyring
    return keyring


def get_keyring(name: str = DEFAULT_NAME) -> Keyring:
    """Return a started keyring.

    Raises:
        KeyringNotStartedError: If no instance is registered under name
    """
    with _instances_lock:
        keyring = _instances.get(name)
    if keyring is None:
        raise KeyringNotStartedError(name)
    return keyring


def stop_keyring(name: str = DEFAULT_NAME) -> None:
    """Unregister a keyring. Stopping an unknown name is a no-op."""
    with _instances_lock:
        _instances.pop(name, None)


def is_started(name: str = DEFAULT_NAME) -> bool:
    """Return True if a keyring is registered under name."""
    with _instances_lock:
        return name in _instances
