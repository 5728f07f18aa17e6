"""llmkit utility modules.

- logging: Standardized logging with human/verbose/JSON modes
- preflight: Provider credential checks (import from llmkit.utils.preflight)
"""

from llmkit.utils.logging import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
]
