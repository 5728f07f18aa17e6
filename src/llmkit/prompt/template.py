"""Template rendering for message content.

Two engines are supported, selected by the message's engine tag:

- eex: ``<%= @name %>`` output tags, ``<% ... %>`` statements and ``<%# ... %>``
  comments. Rendered with a sandboxed Jinja2 environment using those
  delimiters. ``@name`` refers to the parameter ``name``; referencing an
  unknown parameter is an error.
- liquid: ``{{ name }}`` and ``{% ... %}`` rendered with python-liquid.
  Parameter keys are converted to strings first.
"""

import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from jinja2 import StrictUndefined, Template, TemplateError
from jinja2.sandbox import SandboxedEnvironment
from liquid import Environment as LiquidEnvironment
from liquid.exceptions import LiquidError

from llmkit.errors import TemplateRenderError
from llmkit.prompt.message import Engine

EEX_TAG = re.compile(r"(<%[=]?)(?!#)(.*?)(%>)", re.DOTALL)
EEX_ASSIGN = re.compile(r"""("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')|@([A-Za-z_]\w*)""")

# Errors raised while evaluating expressions inside a template
EVALUATION_ERRORS = (TypeError, ValueError, ArithmeticError, LookupError, AttributeError)

_eex_env = SandboxedEnvironment(
    block_start_string="<%",
    block_end_string="%>",
    variable_start_string="<%=",
    variable_end_string="%>",
    comment_start_string="<%#",
    comment_end_string="%>",
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)

_liquid_env = LiquidEnvironment()


def _strip_assign_markers(source: str) -> str:
    """Rewrite ``@name`` to ``name`` inside eex tags, leaving string literals alone."""

    def assign(match: re.Match[str]) -> str:
        return match.group(1) or match.group(2)

    def rewrite(match: re.Match[str]) -> str:
        opening, body, closing = match.groups()
        return opening + EEX_ASSIGN.sub(assign, body) + closing

    return EEX_TAG.sub(rewrite, source)


@lru_cache(maxsize=256)
def _compile_eex(source: str) -> Template:
    return _eex_env.from_string(_strip_assign_markers(source))


@lru_cache(maxsize=256)
def _compile_liquid(source: str) -> Any:
    return _liquid_env.from_string(source)


def render_template(source: str, engine: Engine, params: Mapping[Any, Any]) -> str:
    """Render one template source with the given engine.

    Args:
        source: Template source
        engine: Engine tag
        params: Parameters available to the template

    Returns:
        Rendered text (source unchanged for Engine.NONE)

    Raises:
        TemplateRenderError: If the template is malformed or fails to evaluate
    """
    context = {str(key): value for key, value in params.items()}

    match engine:
        case Engine.NONE:
            return source
        case Engine.EEX:
            try:
                return _compile_eex(source).render(context)
            except (TemplateError, *EVALUATION_ERRORS) as e:
                raise TemplateRenderError(f"{type(e).__name__}: {e}") from e
        case Engine.LIQUID:
            try:
                return _compile_liquid(source).render(**context)
            except (LiquidError, *EVALUATION_ERRORS) as e:
                raise TemplateRenderError(f"{type(e).__name__}: {e}") from e
        case _:
            raise TemplateRenderError(f"Unsupported template engine: {engine!r}")


def validate_template_syntax(source: str, engine: Engine) -> None:
    """Compile a template source without rendering it.

    Raises:
        TemplateRenderError: If the source does not parse
    """
    match engine:
        case Engine.NONE:
            return
        case Engine.EEX:
            try:
                _compile_eex(source)
            except TemplateError as e:
                raise TemplateRenderError(f"{type(e).__name__}: {e}") from e
        case Engine.LIQUID:
            try:
                _compile_liquid(source)
            except LiquidError as e:
                raise TemplateRenderError(f"{type(e).__name__}: {e}") from e
        case _:
            raise TemplateRenderError(f"Unsupported template engine: {engine!r}")
