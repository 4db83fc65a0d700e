"""Interpolation tag compilation for xtpl compiler.

Provides mixin for compiling ``{name:format(args)+math}`` tags into Python
expressions.

Plain tags compile inline to a resolution call. Tags carrying a format or
math suffix can raise (a failing format, arithmetic on a missing value), so
they compile into a contained helper function whose failures are reported
and render as empty text.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from xtpl.compiler.expressions import reject_suspension

# name, optional ":format(args)", optional arithmetic suffix
_TAG_RE = re.compile(r"([\w\-.#]+)(?::([\w.]*)(?:\((.*?)?\))?)?(\s?[+\-*/]\s?[\d.+\-*/()]+)?")
_PLACEHOLDER = "__xtpl_tag__"


@dataclass(frozen=True, slots=True)
class TagSpec:
    """Parsed parts of one interpolation tag.

    Attributes:
        name: Value name (``.``, ``#``, ``parent.x``, ``a.b.c`` or a key)
        format: Format function name (``this.x`` names a template method)
        args: Raw argument text of the format call, if any
        math: Arithmetic suffix such as ``+5`` or ``* 2``
    """

    name: str
    format: str | None = None
    args: str | None = None
    math: str | None = None


def parse_tag(tag: str) -> TagSpec | None:
    """Split the body of ``{...}`` into its parts; None if it is not a tag.

    Example:
        >>> parse_tag("price:currency('EUR')")
        TagSpec(name='price', format='currency', args="'EUR'", math=None)
        >>> parse_tag("age + 5")
        TagSpec(name='age', format=None, args=None, math=' + 5')
    """
    m = _TAG_RE.search(tag)
    if m is None:
        return None
    return TagSpec(m.group(1), m.group(2) or None, m.group(3) or None, m.group(4))


def is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def _call(func: str, *args: ast.expr) -> ast.Call:
    return ast.Call(func=ast.Name(id=func, ctx=ast.Load()), args=list(args), keywords=[])


def _name(id: str) -> ast.Name:
    return ast.Name(id=id, ctx=ast.Load())


def _attribute_chain(root: str, dotted: str) -> ast.expr:
    node: ast.expr = _name(root)
    for part in dotted.split("."):
        node = ast.Attribute(value=node, attr=part, ctx=ast.Load())
    return node


class _Substitute(ast.NodeTransformer):
    def __init__(self, value: ast.expr):
        self._value = value

    def visit_Name(self, node: ast.Name) -> ast.AST:
        return self._value if node.id == _PLACEHOLDER else node


class TagCompilationMixin:
    """Mixin for compiling interpolation tags.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        disable_formats: bool

        # From Compiler core
        def _contained_call(self, source: str, body: list[ast.stmt]) -> ast.expr: ...
        def _failed_call(self, source: str, message: str) -> ast.expr: ...

    def _tag_value(self, name: str) -> ast.expr:
        """Resolution expression for a tag name (no format, no math)."""
        if name == ".":
            return _call("_scalar", _name("values"))
        if name == "#":
            return _name("xindex")
        if name.startswith("parent."):
            keys = tuple(name[7:].split("."))
            return _call("_path", _name("parent"), ast.Constant(value=keys))
        if "." in name and "-" not in name and not is_number(name):
            keys = tuple(name.split("."))
            return _call("_path", _name("values"), ast.Constant(value=keys))
        return _call("_lookup", _name("values"), ast.Constant(value=name))

    def _compile_tag(self, tag: TagSpec, source: str) -> ast.expr:
        """Compile a parsed tag to the expression producing its value."""
        value = self._tag_value(tag.name)
        contained = False

        if tag.math:
            try:
                math = ast.parse(_PLACEHOLDER + tag.math, mode="eval").body
            except SyntaxError as e:
                return self._failed_call(source, f"Invalid arithmetic: {e.msg}")
            value = _Substitute(value).visit(math)
            contained = True

        if tag.format and not self.disable_formats:
            if not all(part.isidentifier() for part in tag.format.split(".")):
                return self._failed_call(source, f"Invalid format name {tag.format!r}")
            try:
                call = ast.parse(f"_({tag.args or ''})", mode="eval").body
                reject_suspension(call)
            except SyntaxError as e:
                return self._failed_call(source, f"Invalid format arguments: {e.msg}")
            assert isinstance(call, ast.Call)
            if tag.format.startswith("this."):
                func = _attribute_chain("this", tag.format[5:])
            else:
                func = _attribute_chain("fm", tag.format)
            value = ast.Call(func=func, args=[value, *call.args], keywords=call.keywords)
            contained = True

        if contained:
            return self._contained_call(source, [ast.Return(value=value)])
        return value
