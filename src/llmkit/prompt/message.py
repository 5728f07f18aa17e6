"""Message items: the role-tagged building blocks of a Prompt."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from llmkit.errors import PromptValidationError


class Role(Enum):
    """Message role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"
    TOOL = "tool"


class Engine(Enum):
    """Template engine a message's content is written for."""

    NONE = "none"
    EEX = "eex"
    LIQUID = "liquid"


class PartType(Enum):
    """Kind of a multi-part content entry."""

    TEXT = "text"
    IMAGE_URL = "image_url"
    FILE_URL = "file_url"


def coerce_role(value: Role | str) -> Role:
    """Convert a role name to a Role.

    Raises:
        PromptValidationError: If the role is unknown
    """
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        valid = ", ".join(r.value for r in Role)
        raise PromptValidationError(
            f"Unknown role: {value!r}. Must be one of: {valid}", field="role"
        ) from None


def coerce_engine(value: Engine | str | None) -> Engine:
    """Convert an engine name to an Engine (None means no templating).

    Raises:
        PromptValidationError: If the engine is unsupported
    """
    if value is None:
        return Engine.NONE
    if isinstance(value, Engine):
        return value
    try:
        return Engine(value)
    except ValueError:
        valid = ", ".join(e.value for e in Engine)
        raise PromptValidationError(
            f"Unsupported template engine: {value!r}. Must be one of: {valid}", field="engine"
        ) from None


@dataclass(frozen=True)
class ContentPart:
    """One entry of multi-part message content.

    Attributes:
        type: Part kind
        value: Text for text parts, URL for image and file parts
    """

    type: PartType
    value: str

    def __post_init__(self) -> None:
        """Validate the part."""
        if not isinstance(self.type, PartType):
            try:
                object.__setattr__(self, "type", PartType(self.type))
            except ValueError:
                raise PromptValidationError(
                    f"Unknown content part type: {self.type!r}", field="content"
                ) from None
        if not isinstance(self.value, str):
            raise PromptValidationError(
                f"Content part value must be a string, got {type(self.value).__name__}",
                field="content",
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContentPart":
        """Create a part from its dict form, e.g. {"type": "text", "text": "Hi"}."""
        part_type = data.get("type")
        if part_type is None:
            raise PromptValidationError("Content part is missing 'type'", field="content")
        key = part_type.value if isinstance(part_type, PartType) else str(part_type)
        if key not in data:
            raise PromptValidationError(f"Content part of type {key!r} is missing {key!r}", field="content")
        return cls(type=part_type, value=data[key])

    def to_dict(self) -> dict[str, str]:
        """Convert to the dict form used in rendered output."""
        return {"type": self.type.value, self.type.value: self.value}


def text_part(text: str) -> ContentPart:
    """Create a text content part."""
    return ContentPart(PartType.TEXT, text)


def image_part(url: str) -> ContentPart:
    """Create an image URL content part."""
    return ContentPart(PartType.IMAGE_URL, url)


def file_part(url: str) -> ContentPart:
    """Create a file URL content part."""
    return ContentPart(PartType.FILE_URL, url)


MESSAGE_FIELDS = frozenset({"role", "content", "engine", "name"})


@dataclass(frozen=True)
class MessageItem:
    """A single message within a prompt.

    Content is either a template source string or a tuple of content parts.
    Only text parts are passed through the template engine when rendering.

    Attributes:
        role: Message role
        content: Template source or content parts
        engine: Template engine for the content
        name: Optional name (function and tool messages)
    """

    role: Role
    content: str | tuple[ContentPart, ...] = ""
    engine: Engine = Engine.NONE
    name: str | None = None

    def __post_init__(self) -> None:
        """Coerce tags and validate content."""
        object.__setattr__(self, "role", coerce_role(self.role))
        object.__setattr__(self, "engine", coerce_engine(self.engine))

        if isinstance(self.content, str):
            pass
        elif isinstance(self.content, (list, tuple)):
            object.__setattr__(self, "content", tuple(_coerce_part(p) for p in self.content))
        else:
            raise PromptValidationError(
                f"Message content must be a string or a list of parts, "
                f"got {type(self.content).__name__}",
                field="content",
            )

        if self.name is not None and not isinstance(self.name, str):
            raise PromptValidationError("Message name must be a string", field="name")

    @property
    def is_multipart(self) -> bool:
        """Whether the content is a sequence of parts."""
        return isinstance(self.content, tuple)

    @classmethod
    def new(cls, attrs: "MessageItem | Mapping[str, Any]") -> "MessageItem":
        """Create a message from a mapping of attributes.

        Args:
            attrs: Mapping with ``role`` and optionally ``content``, ``engine``, ``name``

        Returns:
            MessageItem (attrs is returned unchanged if it already is one)

        Raises:
            PromptValidationError: If the mapping has unknown keys or invalid values
        """
        if isinstance(attrs, MessageItem):
            return attrs
        if not isinstance(attrs, Mapping):
            raise PromptValidationError(
                f"Message must be a mapping, got {type(attrs).__name__}", field="messages"
            )

        unknown = set(attrs) - MESSAGE_FIELDS
        if unknown:
            raise PromptValidationError(
                f"Unknown message fields: {', '.join(sorted(map(str, unknown)))}", field="messages"
            )

        return cls(
            role=attrs.get("role", Role.USER),
            content=attrs.get("content", ""),
            engine=attrs.get("engine", Engine.NONE),
            name=attrs.get("name"),
        )

    @classmethod
    def from_map(cls, data: Mapping[str, Any]) -> "MessageItem":
        """Create a message from external data (e.g. parsed JSON or YAML).

        Unlike ``new``, both ``role`` and ``content`` are required and
        unrecognized keys are ignored.

        Raises:
            PromptValidationError: If role or content is missing
        """
        for required in ("role", "content"):
            if required not in data:
                raise PromptValidationError(f"Message is missing '{required}'", field=required)
        return cls(
            role=data["role"],
            content=data["content"],
            engine=data.get("engine") or Engine.NONE,
            name=data.get("name"),
        )

    @classmethod
    def multipart(cls, role: Role | str, parts: Iterable[ContentPart | Mapping[str, Any]]) -> "MessageItem":
        """Create a message whose content is a list of parts."""
        return cls(role=role, content=tuple(parts))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (tags as strings)."""
        data: dict[str, Any] = {
            "role": self.role.value,
            "content": (
                [p.to_dict() for p in self.content] if isinstance(self.content, tuple) else self.content
            ),
            "engine": self.engine.value,
        }
        if self.name is not None:
            data["name"] = self.name
        return data


def _coerce_part(part: ContentPart | Mapping[str, Any]) -> ContentPart:
    if isinstance(part, ContentPart):
        return part
    if isinstance(part, Mapping):
        return ContentPart.from_dict(part)
    raise PromptValidationError(
        f"Content part must be a mapping, got {type(part).__name__}", field="content"
    )
