"""Prompt request options and output schemas."""

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, create_model

from llmkit.errors import PromptValidationError

# Schema type names accepted by build_output_schema
SCHEMA_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "float": float,
    "number": float,
    "boolean": bool,
    "list": list,
    "map": dict,
    "any": Any,
}


@dataclass(frozen=True)
class PromptOptions:
    """Request options carried by a prompt.

    Attributes:
        temperature: Sampling temperature (0.0 - 2.0)
        max_tokens: Maximum tokens to generate
        top_p: Nucleus sampling threshold (0.0 - 1.0)
        stop: Stop sequences (a single string is wrapped in a tuple)
        timeout: Request timeout in milliseconds
    """

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    stop: tuple[str, ...] | None = None
    timeout: int | None = None

    def __post_init__(self) -> None:
        """Validate option values."""
        if self.temperature is not None:
            if not _is_number(self.temperature) or not 0.0 <= self.temperature <= 2.0:
                raise PromptValidationError(
                    f"temperature must be between 0.0 and 2.0. Got: {self.temperature}",
                    field="temperature",
                )

        if self.max_tokens is not None:
            if not _is_int(self.max_tokens) or self.max_tokens <= 0:
                raise PromptValidationError(
                    f"max_tokens must be a positive integer. Got: {self.max_tokens}",
                    field="max_tokens",
                )

        if self.top_p is not None:
            if not _is_number(self.top_p) or not 0.0 <= self.top_p <= 1.0:
                raise PromptValidationError(
                    f"top_p must be between 0.0 and 1.0. Got: {self.top_p}", field="top_p"
                )

        if self.stop is not None:
            stop = (self.stop,) if isinstance(self.stop, str) else tuple(self.stop)
            if not all(isinstance(s, str) for s in stop):
                raise PromptValidationError("stop must be a string or a list of strings", field="stop")
            object.__setattr__(self, "stop", stop)

        if self.timeout is not None:
            if not _is_int(self.timeout) or self.timeout <= 0:
                raise PromptValidationError(
                    f"timeout must be a positive integer. Got: {self.timeout}", field="timeout"
                )

    def merge(self, **changes: Any) -> "PromptOptions":
        """Return a copy with the given options replaced.

        Raises:
            PromptValidationError: If an option name is unknown or a value is invalid
        """
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise PromptValidationError(
                f"Unknown prompt options: {', '.join(sorted(unknown))}", field="options"
            )
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Return the options that are set, with stop as a list."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        if "stop" in data:
            data["stop"] = list(data["stop"])
        return data

    @classmethod
    def parse(cls, value: "PromptOptions | Mapping[str, Any] | None") -> "PromptOptions":
        """Build options from an instance, a mapping or None."""
        if value is None:
            return cls()
        if isinstance(value, PromptOptions):
            return value
        if isinstance(value, Mapping):
            return cls().merge(**dict(value))
        raise PromptValidationError(
            f"options must be a mapping, got {type(value).__name__}", field="options"
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# =============================================================================
# Output schemas
# =============================================================================


def is_output_schema(value: Any) -> bool:
    """Return True if value is a pydantic model class."""
    return isinstance(value, type) and issubclass(value, BaseModel)


def build_output_schema(spec: Mapping[str, Any], name: str = "OutputSchema") -> type[BaseModel]:
    """Create a pydantic model from a field definition.

    Each field maps to either a Python type or a mapping with ``type``
    (a Python type or one of the names in SCHEMA_TYPES), ``required``
    (default False), ``default`` and ``description``.

    Validation is strict and rejects unknown fields.

    Example:
        build_output_schema({
            "name": {"type": "string", "required": True},
            "age": {"type": "integer", "required": True},
        })

    Raises:
        PromptValidationError: If a field definition is invalid
    """
    definitions: dict[str, Any] = {}

    for field_name, field_spec in spec.items():
        if not isinstance(field_name, str) or not field_name.isidentifier():
            raise PromptValidationError(f"Invalid schema field name: {field_name!r}", field="output_schema")

        if not isinstance(field_spec, Mapping):
            field_spec = {"type": field_spec, "required": True}

        annotation = _schema_type(field_name, field_spec.get("type", "any"))
        if field_spec.get("required", False):
            definitions[field_name] = (annotation, ...)
        else:
            optional = annotation if annotation is Any else annotation | None
            definitions[field_name] = (optional, field_spec.get("default"))

    return create_model(
        name,
        __config__=ConfigDict(strict=True, extra="forbid"),
        **definitions,
    )


def _schema_type(field_name: str, type_spec: Any) -> Any:
    if isinstance(type_spec, str):
        try:
            return SCHEMA_TYPES[type_spec]
        except KeyError:
            valid = ", ".join(SCHEMA_TYPES)
            raise PromptValidationError(
                f"Unknown type {type_spec!r} for field '{field_name}'. Must be one of: {valid}",
                field="output_schema",
            ) from None
    if isinstance(type_spec, type):
        return type_spec
    raise PromptValidationError(
        f"Invalid type for field '{field_name}': {type_spec!r}", field="output_schema"
    )
