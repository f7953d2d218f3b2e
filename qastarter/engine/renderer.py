"""Jinja2 template rendering for pack files.

Provides the ``TemplateRenderer`` which expands both the output path and the
content of template entries against a frozen context.  Rendering happens in
Jinja2's immutable sandbox with ``StrictUndefined``: a reference to a missing
context key is an error, not an empty string, and templates cannot call into
arbitrary Python.  Static entries are passed through byte-for-byte.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional
from xml.sax.saxutils import escape

from jinja2 import StrictUndefined
from jinja2.sandbox import ImmutableSandboxedEnvironment

from qastarter.engine.context import Context
from qastarter.errors import RenderError
from qastarter.models import FileEntry
from qastarter.utils import package_to_path, slugify, to_camel, to_kebab, to_pascal, to_snake

TEMPLATE_SUFFIX = ".j2"

# CI definitions use ``${{ ... }}`` natively; those must survive rendering.
_WORKFLOW_MARKERS = (
    ".github/workflows/",
    "Jenkinsfile",
    "azure-pipelines.yml",
    ".gitlab-ci.yml",
    ".circleci/config.yml",
)
_CI_EXPRESSION = re.compile(r"\$\{\{.*?\}\}")
_PLACEHOLDER = "\x1eQAS_CI_{}\x1e"
_PLACEHOLDER_RE = re.compile("\x1eQAS_CI_(\\d+)\x1e")


@dataclass(frozen=True)
class RenderedFile:
    """A manifest entry after path and content expansion."""

    path: str
    content: bytes
    is_template: bool
    mode: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders pack entries with a fixed set of pure helper functions.

    Available inside templates besides the context itself:

    * globals ``eq(a, b)``, ``ne(a, b)``, ``includes(seq, value)``
    * filters ``camel_case``, ``pascal_case``, ``snake_case``, ``kebab_case``,
      ``slugify``, ``package_to_path``, ``escape_xml``, ``to_json``
      (plus Jinja2's built-in filters)
    """

    def __init__(self) -> None:
        self.env = ImmutableSandboxedEnvironment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.globals.clear()
        self.env.globals.update(eq=_eq, ne=_ne, includes=_includes)
        self.env.filters["camel_case"] = _string_filter(to_camel)
        self.env.filters["pascal_case"] = _string_filter(to_pascal)
        self.env.filters["snake_case"] = _string_filter(to_snake)
        self.env.filters["kebab_case"] = _string_filter(to_kebab)
        self.env.filters["slugify"] = _string_filter(slugify)
        self.env.filters["package_to_path"] = _string_filter(package_to_path)
        self.env.filters["escape_xml"] = _string_filter(_escape_xml)
        self.env.filters["to_json"] = _to_json

    # -- Entry rendering ---------------------------------------------------

    def render(self, entry: FileEntry, context: Context, body: bytes) -> RenderedFile:
        """Render one manifest entry.

        Args:
            entry: The manifest entry being rendered.
            context: Frozen template context.
            body: Raw bytes of the entry's source file.

        Returns:
            The expanded path and content.

        Raises:
            RenderError: On an unknown context reference, a syntax error, a
                sandbox violation, or a template body that is not UTF-8.
        """
        path = self.render_path(entry.path, context)
        if not entry.is_template:
            return RenderedFile(path=path, content=body, is_template=False, mode=entry.mode)

        try:
            source = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RenderError(entry.path, f"template is not valid UTF-8: {exc}") from exc

        text = self.render_string(source, context, name=entry.path)
        return RenderedFile(
            path=path,
            content=text.encode("utf-8"),
            is_template=True,
            mode=entry.mode,
        )

    def render_path(self, path: str, context: Context) -> str:
        """Expand expressions in an output path (``src/{{ packagePath }}/X.java``)."""
        if "{" not in path:
            return path
        rendered = self.render_string(path, context, name=path).strip()
        if not rendered:
            raise RenderError(path, "path rendered to an empty string")
        return rendered

    def render_string(self, source: str, context: Context, *, name: str = "<string>") -> str:
        """Compile and render *source*, mapping every failure to ``RenderError``."""
        masked: list[str] = []
        if _is_workflow_file(name):
            source = _mask_ci_expressions(source, masked)

        try:
            template = self.env.from_string(source)
            result = template.render(context)
        except Exception as exc:
            raise RenderError(name, f"{type(exc).__name__}: {exc}") from exc

        if masked:
            result = _PLACEHOLDER_RE.sub(lambda m: masked[int(m.group(1))], result)
        return result


# ---------------------------------------------------------------------------
# CI expression masking
# ---------------------------------------------------------------------------

def _is_workflow_file(path: str) -> bool:
    return any(marker in path for marker in _WORKFLOW_MARKERS)


def _mask_ci_expressions(source: str, store: list[str]) -> str:
    def _swap(match: re.Match[str]) -> str:
        store.append(match.group(0))
        return _PLACEHOLDER.format(len(store) - 1)

    return _CI_EXPRESSION.sub(_swap, source)


# ---------------------------------------------------------------------------
# Template helpers
# ---------------------------------------------------------------------------

def _eq(a: Any, b: Any) -> bool:
    return a == b


def _ne(a: Any, b: Any) -> bool:
    return a != b


def _includes(seq: Any, value: Any) -> bool:
    if isinstance(seq, (str, bytes)) or seq is None:
        return False
    try:
        return value in seq
    except TypeError:
        return False


def _string_filter(func):
    """Wrap a ``str -> str`` helper so non-string input is stringified first."""

    def _apply(value: Any) -> str:
        return func(str(value)) if value is not None else ""

    _apply.__name__ = func.__name__
    return _apply


def _escape_xml(value: str) -> str:
    return escape(value, {'"': "&quot;", "'": "&apos;"})


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (tuple, list)):
        return [_thaw(v) for v in value]
    return value


def _to_json(value: Any, indent: int = 2) -> str:
    return json.dumps(_thaw(value), indent=indent, sort_keys=True)
