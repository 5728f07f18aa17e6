"""Reusable single-message templates.

A PromptTemplate holds template text plus default inputs, and is formatted
later when the remaining inputs are known:

    template = PromptTemplate.from_string_with_defaults(
        "Hello <%= @name %>, welcome to <%= @service %>!",
        {"service": "llmkit"},
    )
    template.format({"name": "Alice"})
    # "Hello Alice, welcome to llmkit!"

Templates can be composed from sub-templates, turned into MessageItems and
kept under a simple text version history.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from llmkit.errors import PromptValidationError, TemplateRenderError, VersionNotFoundError
from llmkit.prompt.message import Engine, MessageItem, Role, coerce_engine, coerce_role
from llmkit.prompt.template import render_template, validate_template_syntax

logger = logging.getLogger(__name__)

# Rough characters-per-token ratio for English text
CHARS_PER_TOKEN = 4

# Characters that open or close template tags in either engine
TEMPLATE_DELIMITERS = ("<", ">", "{", "}")

InputsHook = Callable[[dict[str, Any]], dict[str, Any]]
TextHook = Callable[[str], str]


@dataclass(frozen=True)
class TemplateVersion:
    """A previous text of a template."""

    version: int
    text: str


@dataclass(frozen=True)
class PromptTemplate:
    """Template text for one message, formatted on demand.

    Attributes:
        text: Template source
        role: Role of messages built from this template
        engine: Template engine (eex by default)
        inputs: Default inputs, overridden by inputs given to format
        version: Version number (>= 1)
        history: Previous texts, newest first
    """

    text: str
    role: Role = Role.USER
    engine: Engine = Engine.EEX
    inputs: Mapping[str, Any] = field(default_factory=dict)
    version: int = 1
    history: tuple[TemplateVersion, ...] = ()

    def __post_init__(self) -> None:
        """Coerce tags, validate fields and check the template compiles."""
        if not isinstance(self.text, str):
            raise PromptValidationError(
                f"Template text must be a string, got {type(self.text).__name__}", field="text"
            )
        object.__setattr__(self, "role", coerce_role(self.role))
        object.__setattr__(self, "engine", coerce_engine(self.engine))

        if not isinstance(self.inputs, Mapping):
            raise PromptValidationError("Template inputs must be a mapping", field="inputs")
        object.__setattr__(self, "inputs", dict(self.inputs))

        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 1:
            raise PromptValidationError(
                f"Template version must be a positive integer, got {self.version!r}", field="version"
            )
        object.__setattr__(self, "history", tuple(self.history))

        try:
            validate_template_syntax(self.text, self.engine)
        except TemplateRenderError as e:
            raise PromptValidationError(f"Invalid template: {e}", field="text") from e

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_string(
        cls,
        text: str,
        role: Role | str = Role.USER,
        engine: Engine | str = Engine.EEX,
    ) -> "PromptTemplate":
        """Create a template from text."""
        return cls(text=text, role=role, engine=engine)  # type: ignore[arg-type]

    @classmethod
    def from_string_with_defaults(
        cls,
        text: str,
        defaults: Mapping[str, Any] | None = None,
        role: Role | str = Role.USER,
        engine: Engine | str = Engine.EEX,
    ) -> "PromptTemplate":
        """Create a template with default inputs that format calls can override."""
        return cls(text=text, role=role, engine=engine, inputs=defaults or {})  # type: ignore[arg-type]

    # =========================================================================
    # Formatting
    # =========================================================================

    def format(
        self,
        inputs: Mapping[str, Any] | None = None,
        *,
        pre_hook: InputsHook | None = None,
        post_hook: TextHook | None = None,
    ) -> str:
        """Render the template.

        Args:
            inputs: Inputs merged over the template's default inputs
            pre_hook: Called with the merged inputs; its return value is rendered
            post_hook: Called with the rendered text; its return value is returned

        Returns:
            Rendered text

        Raises:
            TemplateRenderError: If rendering fails
        """
        merged = {**self.inputs, **dict(inputs or {})}
        if pre_hook is not None:
            merged = pre_hook(merged)
        text = render_template(self.text, self.engine, merged)
        if post_hook is not None:
            text = post_hook(text)
        return text

    def format_composed(
        self,
        sub_templates: Mapping[str, "PromptTemplate | str"],
        inputs: Mapping[str, Any] | None = None,
    ) -> str:
        """Render sub-templates first, then this template with their output.

        Each sub-template is formatted with ``inputs``; plain strings are used
        as they are. The results become the inputs of this template, on top
        of its defaults.

        Raises:
            PromptValidationError: If a sub-template is neither a template nor a string
            TemplateRenderError: If any template fails to render
        """
        rendered: dict[str, Any] = {}
        for key, sub in sub_templates.items():
            if isinstance(sub, PromptTemplate):
                rendered[key] = sub.format(inputs)
            elif isinstance(sub, str):
                rendered[key] = sub
            else:
                raise PromptValidationError(
                    f"Invalid sub-template for {key!r}: {type(sub).__name__}", field="sub_templates"
                )
        return self.format(rendered)

    def to_message(self, inputs: Mapping[str, Any] | None = None) -> MessageItem:
        """Render the template into a plain MessageItem with this template's role."""
        return MessageItem(role=self.role, content=self.format(inputs))

    def estimate_tokens(self, inputs: Mapping[str, Any] | None = None) -> int:
        """Roughly estimate the tokens of the rendered text.

        Uses about four characters per token. Returns 0 if the template
        cannot be rendered with the given inputs.
        """
        try:
            text = self.format(inputs)
        except TemplateRenderError:
            return 0
        return round(len(text) / CHARS_PER_TOKEN)

    # =========================================================================
    # Versions
    # =========================================================================

    def update_text(self, text: str) -> "PromptTemplate":
        """Return a copy with new text, one version up, remembering the old text."""
        snapshot = TemplateVersion(version=self.version, text=self.text)
        return replace(self, text=text, version=self.version + 1, history=(snapshot, *self.history))

    def rollback_to_version(self, version: int) -> "PromptTemplate":
        """Restore the text of an earlier version.

        The version number stays the same and the restored entry leaves
        the history.

        Raises:
            VersionNotFoundError: If the version is not in the history
        """
        for entry in self.history:
            if entry.version == version:
                remaining = tuple(h for h in self.history if h.version != version)
                logger.debug("Rolled template back to version %d text", version)
                return replace(self, text=entry.text, history=remaining)
        raise VersionNotFoundError(version, self.version)

    def list_versions(self) -> list[int]:
        """Return version numbers, newest first."""
        return [self.version, *(h.version for h in self.history)]

    def clean_copy(self) -> "PromptTemplate":
        """Return a copy at version 1 with no history."""
        return replace(self, version=1, history=())


def to_messages(
    items: Iterable["PromptTemplate | MessageItem | str"],
    inputs: Mapping[str, Any] | None = None,
) -> list[MessageItem]:
    """Turn templates, messages and strings into a list of MessageItems.

    Templates are formatted with ``inputs``, messages pass through, and
    strings become user messages.

    Raises:
        PromptValidationError: If an item has another type
    """
    messages = []
    for item in items:
        if isinstance(item, PromptTemplate):
            messages.append(item.to_message(inputs))
        elif isinstance(item, MessageItem):
            messages.append(item)
        elif isinstance(item, str):
            messages.append(MessageItem(role=Role.USER, content=item))
        else:
            raise PromptValidationError(
                f"Cannot convert {type(item).__name__} to a message", field="messages"
            )
    return messages


def sanitize_inputs(inputs: Mapping[str, Any]) -> dict[str, Any]:
    """Escape template delimiters in string inputs, recursing into lists.

    Each of ``< > { }`` gets a backslash in front, so untrusted values no
    longer form complete template tags if the output is rendered again.
    """
    return {key: _sanitize_value(value) for key, value in inputs.items()}


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        for char in TEMPLATE_DELIMITERS:
            value = value.replace(char, "\\" + char)
        return value
    if isinstance(value, list):
        return [_sanitize_value(v) for v in value]
    return value
