"""Versioned, templated prompts.

A Prompt is an immutable value: every mutation returns a new Prompt. The
message list obeys one rule, checked on every construction: at most one
system message, and if present it is the first message.

Usage:
    p1 = Prompt.new("user", "Hello <%= @name %>", engine="eex", params={"name": "Alice"})
    p1.render()                     # [RenderedMessage(USER, "Hello Alice")]
    p1.render({"name": "Bob"})      # [RenderedMessage(USER, "Hello Bob")]

    p2 = p1.new_version(lambda p: p.add_message("assistant", "Hi!"))
    p2.list_versions()              # [2, 1]
    p2.get_version(1).messages == p1.messages
"""

import copy
import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from pydantic import BaseModel, ValidationError

from llmkit.errors import PromptValidationError, TemplateRenderError, VersionNotFoundError
from llmkit.prompt.message import (
    ContentPart,
    Engine,
    MessageItem,
    PartType,
    Role,
)
from llmkit.prompt.options import PromptOptions, build_output_schema, is_output_schema
from llmkit.prompt.template import render_template

logger = logging.getLogger(__name__)

PROMPT_SPEC_FIELDS = frozenset({"messages", "id", "params", "metadata", "options", "output_schema"})


def validate_messages(messages: Sequence[MessageItem]) -> None:
    """Check the system message rule.

    Raises:
        PromptValidationError: If there is more than one system message or
            the system message is not first
    """
    positions = [i for i, m in enumerate(messages) if m.role is Role.SYSTEM]
    if len(positions) > 1:
        raise PromptValidationError(
            f"Only one system message is allowed, found {len(positions)}", field="messages"
        )
    if positions and positions[0] != 0:
        raise PromptValidationError(
            f"System message must be the first message, found at position {positions[0]}",
            field="messages",
        )


# =============================================================================
# Rendered output
# =============================================================================


@dataclass(frozen=True)
class RenderedMessage:
    """A message after template substitution.

    Equality considers role and content only.
    """

    role: Role
    content: str | list[dict[str, str]]
    name: str | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the {"role", "content"} form sent to providers."""
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name is not None:
            data["name"] = self.name
        return data


@dataclass(frozen=True)
class VersionDiff:
    """Messages that differ between two rendered versions.

    Attributes:
        added: Messages in the first version but not the second
        removed: Messages in the second version but not the first
    """

    added: list[RenderedMessage]
    removed: list[RenderedMessage]

    @property
    def unchanged(self) -> bool:
        """True if neither side has messages the other lacks."""
        return not self.added and not self.removed


@dataclass(frozen=True)
class PromptSnapshot:
    """State of a prompt at a past version."""

    version: int
    messages: tuple[MessageItem, ...]
    params: dict[str, Any]
    metadata: dict[str, Any]
    options: PromptOptions
    output_schema: type[BaseModel] | None

    @classmethod
    def capture(cls, prompt: "Prompt") -> "PromptSnapshot":
        """Copy the current state of prompt."""
        return cls(
            version=prompt.version,
            messages=prompt.messages,
            params=copy.deepcopy(prompt.params),
            metadata=copy.deepcopy(prompt.metadata),
            options=prompt.options,
            output_schema=prompt.output_schema,
        )


# =============================================================================
# Prompt
# =============================================================================


@dataclass(frozen=True)
class Prompt:
    """An ordered, versioned list of role-tagged messages.

    Attributes:
        messages: Messages in order
        id: Identifier shared by all versions of the prompt
        version: Current version (starts at 1)
        history: Snapshots of earlier versions, newest first
        params: Default template parameters
        metadata: Free-form metadata
        options: Request options (temperature, max_tokens, ...)
        output_schema: Pydantic model the response must satisfy
    """

    messages: tuple[MessageItem, ...] = ()
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version: int = 1
    history: tuple[PromptSnapshot, ...] = ()
    params: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    options: PromptOptions = field(default_factory=PromptOptions)
    output_schema: type[BaseModel] | None = None

    def __post_init__(self) -> None:
        """Coerce fields and enforce the system message rule."""
        if isinstance(self.messages, (str, bytes)) or not isinstance(self.messages, Sequence):
            raise PromptValidationError("messages must be a list", field="messages")
        messages = tuple(MessageItem.new(m) for m in self.messages)
        validate_messages(messages)
        object.__setattr__(self, "messages", messages)

        if not isinstance(self.id, str) or not self.id:
            raise PromptValidationError("id must be a non-empty string", field="id")
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 1:
            raise PromptValidationError(
                f"version must be a positive integer. Got: {self.version!r}", field="version"
            )

        for name in ("params", "metadata"):
            value = getattr(self, name)
            if not isinstance(value, Mapping):
                raise PromptValidationError(f"{name} must be a mapping", field=name)
            object.__setattr__(self, name, dict(value))

        object.__setattr__(self, "options", PromptOptions.parse(self.options))
        object.__setattr__(self, "history", tuple(self.history))

        if self.output_schema is not None and not is_output_schema(self.output_schema):
            raise PromptValidationError(
                "output_schema must be a pydantic model class", field="output_schema"
            )

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def new(
        cls,
        spec_or_role: Mapping[str, Any] | Role | str,
        content: str | Sequence[ContentPart] | None = None,
        *,
        engine: Engine | str | None = None,
        name: str | None = None,
        params: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> "Prompt":
        """Create a prompt.

        Two forms are accepted:

            Prompt.new({"messages": [...], "params": {...}, "metadata": {...}})
            Prompt.new("user", "Hello", engine="eex", params={...})

        Args:
            spec_or_role: Prompt mapping, or the role of a single message
            content: Message content (single-message form only)
            engine: Template engine (single-message form only)
            name: Message name (single-message form only)
            params: Template parameters (single-message form only)
            metadata: Metadata (single-message form only)

        Returns:
            New Prompt at version 1

        Raises:
            PromptValidationError: If the mapping or any message is invalid
        """
        if isinstance(spec_or_role, Mapping):
            if content is not None:
                raise PromptValidationError(
                    "content cannot be combined with a prompt mapping", field="content"
                )
            return cls._from_spec(spec_or_role)

        if content is None:
            raise PromptValidationError("content is required", field="content")

        message = MessageItem(role=spec_or_role, content=content, engine=engine, name=name)
        return cls(messages=(message,), params=params or {}, metadata=metadata or {})

    @classmethod
    def _from_spec(cls, spec: Mapping[str, Any]) -> "Prompt":
        unknown = set(spec) - PROMPT_SPEC_FIELDS
        if unknown:
            raise PromptValidationError(
                f"Unknown prompt fields: {', '.join(sorted(map(str, unknown)))}", field="spec"
            )

        kwargs: dict[str, Any] = {
            "messages": spec.get("messages", ()),
            "params": spec.get("params") or {},
            "metadata": spec.get("metadata") or {},
            "options": spec.get("options"),
            "output_schema": spec.get("output_schema"),
        }
        if spec.get("id") is not None:
            kwargs["id"] = spec["id"]
        return cls(**kwargs)

    @classmethod
    def from_plain_string(cls, text: str) -> "Prompt":
        """Wrap a bare instruction string as a single system message."""
        if not isinstance(text, str):
            raise PromptValidationError("Prompt text must be a string", field="content")
        return cls(messages=(MessageItem(role=Role.SYSTEM, content=text),))

    # =========================================================================
    # Mutation (returns new prompts)
    # =========================================================================

    def add_message(
        self,
        role: Role | str,
        content: str | Sequence[ContentPart],
        *,
        engine: Engine | str | None = None,
        name: str | None = None,
    ) -> "Prompt":
        """Append a message.

        Raises:
            PromptValidationError: If the message is invalid or breaks the
                system message rule
        """
        message = MessageItem(role=role, content=content, engine=engine, name=name)
        return replace(self, messages=self.messages + (message,))

    def new_version(self, transform: Callable[["Prompt"], "Prompt"]) -> "Prompt":
        """Apply transform and record the current state in history.

        The result always has version ``self.version + 1``, this prompt's id
        and this prompt's history plus a snapshot of this prompt, whatever
        transform did to those fields.

        Args:
            transform: Receives this prompt and must return a Prompt

        Raises:
            PromptValidationError: If transform does not return a Prompt
        """
        snapshot = PromptSnapshot.capture(self)
        result = transform(self)
        if not isinstance(result, Prompt):
            raise PromptValidationError(
                f"Version transform must return a Prompt, got {type(result).__name__}",
                field="transform",
            )

        new_prompt = replace(
            result,
            id=self.id,
            version=self.version + 1,
            history=(snapshot, *self.history),
        )
        logger.debug("Prompt %s advanced to version %d", self.id, new_prompt.version)
        return new_prompt

    def with_options(self, **options: Any) -> "Prompt":
        """Return a copy with request options set."""
        return replace(self, options=self.options.merge(**options))

    def with_temperature(self, temperature: float) -> "Prompt":
        return self.with_options(temperature=temperature)

    def with_max_tokens(self, max_tokens: int) -> "Prompt":
        return self.with_options(max_tokens=max_tokens)

    def with_top_p(self, top_p: float) -> "Prompt":
        return self.with_options(top_p=top_p)

    def with_stop(self, stop: str | Sequence[str]) -> "Prompt":
        return self.with_options(stop=stop)

    def with_timeout(self, timeout: int) -> "Prompt":
        """Return a copy with a request timeout in milliseconds."""
        return self.with_options(timeout=timeout)

    def with_output_schema(self, schema: type[BaseModel]) -> "Prompt":
        """Return a copy constrained to the given pydantic model."""
        return replace(self, output_schema=schema)

    def with_new_output_schema(self, spec: Mapping[str, Any], name: str = "OutputSchema") -> "Prompt":
        """Return a copy constrained to a model built from a field definition.

        See ``build_output_schema`` for the definition format.
        """
        return replace(self, output_schema=build_output_schema(spec, name))

    def validate_output(self, data: Mapping[str, Any]) -> BaseModel:
        """Validate response data against the output schema.

        Returns:
            Model instance

        Raises:
            PromptValidationError: If there is no schema or the data does not match
        """
        if self.output_schema is None:
            raise PromptValidationError("Prompt has no output schema", field="output_schema")
        try:
            return self.output_schema.model_validate(data)
        except ValidationError as e:
            raise PromptValidationError(str(e), field="output_schema") from e

    # =========================================================================
    # Versions
    # =========================================================================

    def get_version(self, version: int) -> "Prompt":
        """Return the prompt as it was at a given version.

        Raises:
            VersionNotFoundError: If version is newer than the current one
                (``future`` is True) or is not in history
        """
        if isinstance(version, bool) or not isinstance(version, int):
            raise PromptValidationError(f"version must be an integer. Got: {version!r}", field="version")

        if version == self.version:
            return self
        if version > self.version:
            raise VersionNotFoundError(version, self.version)

        for snapshot in self.history:
            if snapshot.version == version:
                return Prompt(
                    messages=snapshot.messages,
                    id=self.id,
                    version=snapshot.version,
                    history=tuple(h for h in self.history if h.version < version),
                    params=copy.deepcopy(snapshot.params),
                    metadata=copy.deepcopy(snapshot.metadata),
                    options=snapshot.options,
                    output_schema=snapshot.output_schema,
                )

        raise VersionNotFoundError(version, self.version)

    def list_versions(self) -> list[int]:
        """Return version numbers, newest first."""
        return [self.version, *(h.version for h in self.history)]

    def compare_versions(self, version_a: int, version_b: int) -> VersionDiff:
        """Compare the rendered messages of two versions.

        ``added`` holds messages of version_a missing from version_b and
        ``removed`` the reverse. Messages match on role and content, each
        match consuming one occurrence. Reordering alone produces an empty diff.

        Raises:
            VersionNotFoundError: If either version does not exist
        """
        rendered_a = self.get_version(version_a).render()
        rendered_b = self.get_version(version_b).render()
        return VersionDiff(
            added=_list_difference(rendered_a, rendered_b),
            removed=_list_difference(rendered_b, rendered_a),
        )

    # =========================================================================
    # Rendering
    # =========================================================================

    def render(self, overrides: Mapping[str, Any] | None = None) -> list[RenderedMessage]:
        """Render every message against params merged with overrides.

        Args:
            overrides: Parameters that win over the prompt's own params

        Returns:
            Rendered messages in order

        Raises:
            TemplateRenderError: If a message template fails, naming the message
        """
        merged = {**self.params, **(overrides or {})}
        return [_render_message(i, m, merged) for i, m in enumerate(self.messages)]

    def to_text(self, overrides: Mapping[str, Any] | None = None) -> str:
        """Render as "[role] content" lines, for debugging and logs."""
        lines = []
        for message in self.render(overrides):
            content = message.content
            if isinstance(content, list):
                content = " ".join(p.get("text", f"<{p['type']}>") for p in content)
            lines.append(f"[{message.role.value}] {content}")
        return "\n".join(lines)

    def render_with_options(self, overrides: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Render messages and include the request options that are set.

        Returns:
            {"messages": [...], "temperature": ..., ...}
        """
        return {
            "messages": [m.to_dict() for m in self.render(overrides)],
            **self.options.to_dict(),
        }


def coerce_prompt(value: "Prompt | str | Mapping[str, Any]") -> Prompt:
    """Accept a Prompt, a plain instruction string or a prompt mapping."""
    if isinstance(value, Prompt):
        return value
    if isinstance(value, str):
        return Prompt.from_plain_string(value)
    if isinstance(value, Mapping):
        return Prompt.new(value)
    raise PromptValidationError(
        f"Expected a Prompt, string or mapping, got {type(value).__name__}", field="prompt"
    )


def _render_message(index: int, message: MessageItem, params: dict[str, Any]) -> RenderedMessage:
    try:
        if isinstance(message.content, tuple):
            content: str | list[dict[str, str]] = [
                _render_part(part, message.engine, params) for part in message.content
            ]
        else:
            content = render_template(message.content, message.engine, params)
    except TemplateRenderError as e:
        raise TemplateRenderError(
            str(e), index=index, role=message.role.value, engine=message.engine.value
        ) from e

    return RenderedMessage(role=message.role, content=content, name=message.name)


def _render_part(part: ContentPart, engine: Engine, params: dict[str, Any]) -> dict[str, str]:
    if part.type is PartType.TEXT:
        return {"type": "text", "text": render_template(part.value, engine, params)}
    return part.to_dict()


def _list_difference(left: list[RenderedMessage], right: list[RenderedMessage]) -> list[RenderedMessage]:
    remaining = list(left)
    for item in right:
        if item in remaining:
            remaining.remove(item)
    return remaining
