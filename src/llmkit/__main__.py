"""Entry point for running llmkit as a module.

Usage:
    python -m llmkit [command] [options]

Example:
    python -m llmkit check
    python -m llmkit render prompt.yaml --param name=Bob
"""

from llmkit.cli import app

if __name__ == "__main__":
    app()
