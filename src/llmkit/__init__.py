"""llmkit - convenience layer over several LLM provider APIs.

Components:
- Keyring: credential and config store. Per-requester session overrides
  win over env files and the process environment, which win over the
  application config
- Prompt: immutable, versioned, templated message lists
- Providers: one adapter per vendor behind a shared contract
"""

__version__ = "0.1.0"
__author__ = "llmkit Contributors"

from llmkit.utils.logging import get_logger  # noqa: E402
from llmkit.errors import LLMKitError  # noqa: E402
from llmkit.keyring import Keyring, get_keyring, start_keyring, stop_keyring  # noqa: E402
from llmkit.prompt import MessageItem, Prompt  # noqa: E402

__all__ = [
    "Keyring",
    "LLMKitError",
    "MessageItem",
    "Prompt",
    "__version__",
    "get_keyring",
    "get_logger",
    "start_keyring",
    "stop_keyring",
]
