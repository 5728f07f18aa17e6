"""Token-based splitting of long inputs.

A PromptSplitter walks a long text in chunks sized to a model's context
window, leaving room for the other content sent with each chunk (for
example a running summary carried from chunk to chunk):

    splitter = PromptSplitter(document, context_length=8000, model="gpt-4o")
    summary = ""
    while not splitter.done:
        chunk = splitter.next_chunk(bespoke_input=summary)
        summary = summarize(summary, chunk)
"""

import logging
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, Protocol

import litellm

from llmkit.errors import PromptValidationError

if TYPE_CHECKING:
    from llmkit.providers.model import ModelInfo

logger = logging.getLogger(__name__)


class Tokenizer(Protocol):
    """Encodes text to tokens and back."""

    def encode(self, text: str) -> list[Any]: ...

    def decode(self, tokens: Sequence[Any]) -> str: ...


class LiteLLMTokenizer:
    """Tokenizer for a model, using LiteLLM's tokenizer selection."""

    def __init__(self, model: str) -> None:
        self.model = model

    def encode(self, text: str) -> list[Any]:
        return list(litellm.encode(model=self.model, text=text))

    def decode(self, tokens: Sequence[Any]) -> str:
        return litellm.decode(model=self.model, tokens=list(tokens))


class WhitespaceTokenizer:
    """Treats each space-separated word as one token."""

    def encode(self, text: str) -> list[Any]:
        return text.split(" ") if text else []

    def decode(self, tokens: Sequence[Any]) -> str:
        return " ".join(tokens)


class PromptSplitter:
    """Splits a text into chunks that fit a context window.

    Attributes:
        context_length: Tokens available per request
        tokenizer: Tokenizer used for the input and the bespoke input
        offset: Number of input tokens already returned
    """

    def __init__(
        self,
        text: str,
        context_length: int,
        model: str | None = None,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        """Tokenize the input.

        Args:
            text: Input to split
            context_length: Tokens available per request
            model: Model name for LiteLLM's tokenizer (used when no tokenizer is given)
            tokenizer: Tokenizer to use instead of LiteLLM's

        Raises:
            PromptValidationError: If context_length is not a positive integer,
                or neither model nor tokenizer is given
        """
        if isinstance(context_length, bool) or not isinstance(context_length, int) or context_length < 1:
            raise PromptValidationError(
                f"context_length must be a positive integer, got {context_length!r}",
                field="context_length",
            )
        if tokenizer is None:
            if not model:
                raise PromptValidationError("A model or a tokenizer is required", field="model")
            tokenizer = LiteLLMTokenizer(model)

        self.context_length = context_length
        self.tokenizer = tokenizer
        self.offset = 0
        self._tokens = tokenizer.encode(text)

    @classmethod
    def for_model(cls, info: "ModelInfo", text: str, tokenizer: Tokenizer | None = None) -> "PromptSplitter":
        """Create a splitter sized to a listed model's context length.

        Raises:
            PromptValidationError: If the listing has no context length
        """
        if not info.context_length:
            raise PromptValidationError(
                f"Model '{info.id}' has no known context length", field="context_length"
            )
        return cls(text, info.context_length, model=info.id, tokenizer=tokenizer)

    @property
    def total_tokens(self) -> int:
        """Number of tokens in the input."""
        return len(self._tokens)

    @property
    def done(self) -> bool:
        """Whether every input token has been returned."""
        return self.offset >= len(self._tokens)

    def next_chunk(self, bespoke_input: str = "") -> str | None:
        """Return the next chunk, or None once the input is exhausted.

        Args:
            bespoke_input: Content sent alongside the chunk; its tokens are
                subtracted from the context length

        Raises:
            PromptValidationError: If the bespoke input leaves no room for a chunk
        """
        if self.done:
            return None

        room = self.context_length - len(self.tokenizer.encode(bespoke_input))
        if room < 1:
            raise PromptValidationError(
                "Bespoke input fills the whole context window", field="bespoke_input"
            )

        chunk = self._tokens[self.offset : self.offset + room]
        self.offset += len(chunk)
        logger.debug("Chunk of %d tokens (%d/%d)", len(chunk), self.offset, len(self._tokens))
        return self.tokenizer.decode(chunk)

    def chunks(self, bespoke_input: str = "") -> Iterator[str]:
        """Yield the remaining chunks with a fixed bespoke input."""
        while (chunk := self.next_chunk(bespoke_input)) is not None:
            yield chunk
