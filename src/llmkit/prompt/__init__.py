"""Prompt model: role-tagged messages, templates and versions.

- message: Role and Engine tags, MessageItem and multi-part content
- template: eex-style and liquid-style rendering
- prompt_template: reusable single-message templates with default inputs
- splitter: token-based chunking of long inputs
- options: request options and pydantic output schemas
- prompt: the versioned Prompt value
"""

from llmkit.prompt.message import (
    ContentPart,
    Engine,
    MessageItem,
    PartType,
    Role,
    file_part,
    image_part,
    text_part,
)
from llmkit.prompt.options import PromptOptions, build_output_schema
from llmkit.prompt.prompt import (
    Prompt,
    PromptSnapshot,
    RenderedMessage,
    VersionDiff,
    coerce_prompt,
    validate_messages,
)
from llmkit.prompt.prompt_template import (
    PromptTemplate,
    TemplateVersion,
    sanitize_inputs,
    to_messages,
)
from llmkit.prompt.splitter import (
    LiteLLMTokenizer,
    PromptSplitter,
    Tokenizer,
    WhitespaceTokenizer,
)
from llmkit.prompt.template import render_template, validate_template_syntax

__all__ = [
    "ContentPart",
    "Engine",
    "LiteLLMTokenizer",
    "MessageItem",
    "PartType",
    "Prompt",
    "PromptOptions",
    "PromptSnapshot",
    "PromptSplitter",
    "PromptTemplate",
    "RenderedMessage",
    "Role",
    "TemplateVersion",
    "Tokenizer",
    "VersionDiff",
    "WhitespaceTokenizer",
    "build_output_schema",
    "coerce_prompt",
    "file_part",
    "image_part",
    "render_template",
    "sanitize_inputs",
    "text_part",
    "to_messages",
    "validate_messages",
    "validate_template_syntax",
]
