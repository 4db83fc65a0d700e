"""xtpl Compiler core: template source to Python AST in one pass.

The Compiler is a Parser whose callouts append Python AST statements to a
stack of statement lists. There is no intermediate template tree: each
``<tpl>`` directive opens a Python block (``if``, ``for``, ``match``) whose
body list is pushed, and ``</tpl>`` pops it.

Generated module shape::

    <definitions>                       # module-level statements from config

    def _f0(this, out, values, parent, xindex, xcount):
        try:
            return <rewritten expression>
        except Exception as _exc:
            return _report(this, '<source>', _exc)

    def render(this, out, values, parent, xindex, xcount):
        _append = out.append
        _frames = [_LoopFrame.root(values, parent, xindex, xcount)]
        _append('Name: ')
        _v = _lookup(values, 'name')
        if _v is not None and _v is not _UNDEFINED:
            _append(_str(_v))
        ...

Every evaluation that can fail on template-author input (rich expressions,
exec bodies, formatted tags, code blocks) is contained: it logs, records a
diagnostic and renders as empty text instead of aborting the render.

"""

from __future__ import annotations

import ast
import keyword
import logging
import re
import types
from collections.abc import Sequence
from typing import Any

from xtpl.compiler.expressions import (
    RESERVED_NAMES,
    dedent_code,
    parse_statements,
    rewrite_expression,
    rewrite_statements,
)
from xtpl.compiler.statements import StatementCompilationMixin
from xtpl.compiler.tags import TagCompilationMixin, parse_tag
from xtpl.environment.exceptions import ErrorCode, TemplateSyntaxError
from xtpl.parser.core import Parser
from xtpl.template.helpers import STATIC_NAMESPACE
from xtpl.template.loop_frame import LoopFrame

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_]\w*$")

# Names the scope rewrite must never turn into data lookups.
_INTERNAL_NAMES = frozenset(STATIC_NAMESPACE) | {
    "_LoopFrame",
    "_frames",
    "_append",
    "_v",
    "_exc",
}

_RENDER_ARGS = ("this", "out", "values", "parent", "xindex", "xcount")


def _name(id: str) -> ast.Name:
    return ast.Name(id=id, ctx=ast.Load())


def _call(func: str, *args: ast.expr) -> ast.Call:
    return ast.Call(func=_name(func), args=list(args), keywords=[])


def _arguments() -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=arg) for arg in _RENDER_ARGS],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[],
    )


def _function(name: str, body: list[ast.stmt]) -> ast.FunctionDef:
    return ast.FunctionDef(
        name=name,
        args=_arguments(),
        body=body,
        decorator_list=[],
        returns=None,
        type_params=[],
    )


class Compiler(StatementCompilationMixin, TagCompilationMixin, Parser):
    """Compile XTemplate source into a Python render function.

    Attributes:
        disable_formats: Ignore ``:format`` suffixes on tags
        definitions: Module-level code prepended to the generated module

    Example:
        >>> compiler = Compiler("greeting")
        >>> code = compiler.compile("Name: {name}")
        >>> namespace = Compiler.namespace(default_formats())
        >>> exec(code, namespace)
        >>> out = []
        >>> namespace["render"](None, out, {"name": "Don"}, {}, 1, 1)
        >>> "".join(out)
        'Name: Don'

    """

    def __init__(
        self,
        name: str | None = None,
        *,
        disable_formats: bool = False,
        definitions: str | Sequence[str] = (),
    ):
        super().__init__(name)
        self.disable_formats = disable_formats
        if isinstance(definitions, str):
            definitions = [definitions]
        self.definitions = tuple(definitions)
        self._reset()

    def _reset(self) -> None:
        self._helpers: list[ast.stmt] = []
        self._body: list[ast.stmt] = []
        self._bodies: list[list[ast.stmt]] = [self._body]
        self._blocks: list[Any] = []
        self._uses_frames = False

    # ─────────────────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────────────────

    def generate(self, source: str) -> ast.Module:
        """Parse ``source`` and return the generated module AST.

        Raises:
            TemplateSyntaxError: On directive nesting errors or invalid
                definitions.
        """
        self._reset()
        definitions = self._compile_definitions()
        self.parse(source)

        preamble: list[ast.stmt] = [
            ast.Assign(
                targets=[ast.Name(id="_append", ctx=ast.Store())],
                value=ast.Attribute(value=_name("out"), attr="append", ctx=ast.Load()),
            )
        ]
        if self._uses_frames:
            preamble.append(
                ast.Assign(
                    targets=[ast.Name(id="_frames", ctx=ast.Store())],
                    value=ast.List(
                        elts=[
                            ast.Call(
                                func=ast.Attribute(
                                    value=_name("_LoopFrame"), attr="root", ctx=ast.Load()
                                ),
                                args=[_name(arg) for arg in _RENDER_ARGS[2:]],
                                keywords=[],
                            )
                        ],
                        ctx=ast.Load(),
                    ),
                )
            )

        render = _function("render", preamble + self._body)
        module = ast.Module(body=[*definitions, *self._helpers, render], type_ignores=[])
        return ast.fix_missing_locations(module)

    def compile(self, source: str) -> types.CodeType:
        """Compile template source to a code object defining ``render``."""
        module = self.generate(source)
        try:
            return compile(module, f"<xtpl {self.name or 'template'}>", "exec")
        except SyntaxError as e:
            raise TemplateSyntaxError(
                f"Generated code does not compile: {e.msg}",
                name=self.name,
                code=ErrorCode.INVALID_EXPRESSION,
            ) from e

    def _compile_definitions(self) -> list[ast.stmt]:
        statements: list[ast.stmt] = []
        for chunk in self.definitions:
            try:
                statements.extend(ast.parse(dedent_code(chunk)).body)
            except SyntaxError as e:
                raise TemplateSyntaxError(
                    f"Invalid definitions: {e.msg}",
                    lineno=e.lineno,
                    name=self.name,
                    source=chunk,
                    col_offset=(e.offset - 1) if e.offset else None,
                    code=ErrorCode.INVALID_DEFINITIONS,
                ) from e
        return statements

    # ─────────────────────────────────────────────────────────────────────────
    # Statement buffers
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def _current(self) -> list[ast.stmt]:
        """Statement list that receives output right now."""
        return self._bodies[-1]

    def _close_body(self) -> list[ast.stmt]:
        body = self._bodies.pop()
        if not body:
            body.append(ast.Pass())
        return body

    def _emit_output(self, value_expr: ast.expr) -> ast.stmt:
        """Generate ``_append(value)``."""
        return ast.Expr(value=_call("_append", value_expr))

    def _emit_value(self, value_expr: ast.expr) -> list[ast.stmt]:
        """Append a value unless it is None or UNDEFINED.

        Generates:
            _v = value
            if _v is not None and _v is not _UNDEFINED:
                _append(_str(_v))
        """
        return [
            ast.Assign(targets=[ast.Name(id="_v", ctx=ast.Store())], value=value_expr),
            self._emit_present(),
        ]

    def _emit_present(self) -> ast.If:
        """Append ``_v`` unless it is None or UNDEFINED."""
        return ast.If(
            test=ast.BoolOp(
                op=ast.And(),
                values=[
                    ast.Compare(
                        left=_name("_v"), ops=[ast.IsNot()], comparators=[ast.Constant(None)]
                    ),
                    ast.Compare(
                        left=_name("_v"), ops=[ast.IsNot()], comparators=[_name("_UNDEFINED")]
                    ),
                ],
            ),
            body=[self._emit_output(_call("_str", _name("_v")))],
            orelse=[],
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Contained helpers
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def _reserved(self) -> frozenset[str]:
        return _INTERNAL_NAMES | RESERVED_NAMES

    def _add_fn(self, body: list[ast.stmt]) -> str:
        """Append a helper function to the module; return its name."""
        name = f"_f{len(self._helpers)}"
        self._helpers.append(_function(name, body))
        return name

    def _helper_call(self, name: str) -> ast.Call:
        return ast.Call(func=_name(name), args=[_name(arg) for arg in _RENDER_ARGS], keywords=[])

    def _contain(self, source: str, body: list[ast.stmt]) -> ast.Try:
        """Wrap ``body`` so any exception is reported and yields UNDEFINED."""
        return ast.Try(
            body=body,
            handlers=[
                ast.ExceptHandler(
                    type=_name("Exception"),
                    name="_exc",
                    body=[
                        ast.Return(
                            value=_call("_report", _name("this"), ast.Constant(source), _name("_exc"))
                        )
                    ],
                )
            ],
            orelse=[],
            finalbody=[],
        )

    def _contained_call(self, source: str, body: list[ast.stmt]) -> ast.expr:
        """Emit a contained helper running ``body``; return a call to it."""
        return self._helper_call(self._add_fn([self._contain(source, body)]))

    def _failed_call(self, source: str, message: str) -> ast.expr:
        """Helper that reports ``message`` every time it is evaluated."""
        logger.debug("Template %s: %s in %r", self.name or "<template>", message, source)
        failure = _call("_invalid", ast.Constant(message), ast.Constant(source))
        report = _call("_report", _name("this"), ast.Constant(source), failure)
        return self._helper_call(self._add_fn([ast.Return(value=report)]))

    def _expression_call(self, source: str) -> ast.expr:
        """Evaluate a rich expression against the data object (contained)."""
        stripped = source.strip()
        if stripped == ".":
            return _name("values")
        if stripped == "..":
            return _name("parent")
        try:
            expr = rewrite_expression(stripped, self._reserved)
        except SyntaxError as e:
            return self._failed_call(source, f"Invalid expression: {e.msg}")
        return self._contained_call(source, [ast.Return(value=expr)])

    def _exec_call(self, source: str) -> ast.stmt:
        """Run ``exec=`` statements against the data object (contained)."""
        try:
            statements = rewrite_statements(source, self._reserved)
            self._check_statements(statements, in_loop=False)
        except SyntaxError as e:
            return ast.Expr(value=self._failed_call(source, f"Invalid statement: {e.msg}"))
        return ast.Expr(value=self._contained_call(source, statements))

    def _condition(self, action: str) -> ast.expr:
        """Governing expression of ``if``/``elseif``/``switch``/``for``.

        ``.`` is the data object, a bare identifier resolves like a tag,
        anything else is a rich expression.
        """
        stripped = action.strip()
        if stripped == ".":
            return _name("values")
        if (
            _IDENTIFIER_RE.match(stripped)
            and not keyword.iskeyword(stripped)
            and stripped not in RESERVED_NAMES
        ):
            return self._tag_value(stripped)
        return self._expression_call(action)

    def _check_statements(self, statements: list[ast.stmt], in_loop: bool) -> None:
        """Compile a throwaway function around ``statements``.

        Catches what ``ast.parse`` accepts but ``compile`` rejects, such as
        ``break`` outside a loop.

        Raises:
            SyntaxError: If the statements cannot be compiled in place.
        """
        body = statements
        if in_loop:
            body = [
                ast.For(
                    target=ast.Name(id="_", ctx=ast.Store()),
                    iter=ast.Tuple(elts=[], ctx=ast.Load()),
                    body=statements,
                    orelse=[],
                )
            ]
        trial = ast.Module(body=[_function("_check", body)], type_ignores=[])
        compile(ast.fix_missing_locations(trial), "<xtpl check>", "exec")

    # ─────────────────────────────────────────────────────────────────────────
    # Callouts: text, tags, expression blocks, code blocks
    # ─────────────────────────────────────────────────────────────────────────

    def do_text(self, text: str) -> None:
        if not text:
            return
        body = self._current
        # Coalesce adjacent literal runs into one _append
        if body:
            last = body[-1]
            if (
                isinstance(last, ast.Expr)
                and isinstance(last.value, ast.Call)
                and isinstance(last.value.func, ast.Name)
                and last.value.func.id == "_append"
                and isinstance(last.value.args[0], ast.Constant)
                and isinstance(last.value.args[0].value, str)
            ):
                last.value.args[0] = ast.Constant(last.value.args[0].value + text)
                return
        body.append(self._emit_output(ast.Constant(text)))

    def do_tag(self, tag: str) -> None:
        spec = parse_tag(tag)
        if spec is None:
            self.do_text("{" + tag + "}")
            return
        self._current.extend(self._emit_value(self._compile_tag(spec, "{" + tag + "}")))

    def do_expr(self, expr: str) -> None:
        """Compile ``{[ expr ]}`` inline so code-block locals stay visible.

        Generates:
            try:
                _v = <rewritten expr>
            except Exception as _exc:
                _v = _report(this, '<expr>', _exc)
            if _v is not None and _v is not _UNDEFINED:
                _append(_str(_v))
        """
        stripped = expr.strip()
        target = ast.Name(id="_v", ctx=ast.Store())
        if stripped == ".":
            value: ast.expr = _name("values")
        elif stripped == "..":
            value = _name("parent")
        else:
            try:
                value = rewrite_expression(stripped, self._reserved)
            except SyntaxError as e:
                value = self._failed_call(expr, f"Invalid expression: {e.msg}")
        self._current.append(
            ast.Try(
                body=[ast.Assign(targets=[target], value=value)],
                handlers=[
                    ast.ExceptHandler(
                        type=_name("Exception"),
                        name="_exc",
                        body=[
                            ast.Assign(
                                targets=[ast.Name(id="_v", ctx=ast.Store())],
                                value=_call(
                                    "_report", _name("this"), ast.Constant(expr), _name("_exc")
                                ),
                            )
                        ],
                    )
                ],
                orelse=[],
                finalbody=[],
            )
        )
        self._current.append(self._emit_present())

    def do_eval(self, code: str) -> None:
        """Splice a ``{% code %}`` block into the render body, contained.

        ``break``/``continue`` are only valid inside a ``for`` directive.
        """
        try:
            statements = parse_statements(code)
            self._check_statements(statements, in_loop=self.level > 0)
        except SyntaxError as e:
            call = self._failed_call(code, f"Invalid code block: {e.msg}")
            self._current.append(ast.Expr(value=call))
            return
        if not statements:
            return
        report = _call("_report", _name("this"), ast.Constant(code), _name("_exc"))
        self._current.append(
            ast.Try(
                body=statements,
                handlers=[
                    ast.ExceptHandler(
                        type=_name("Exception"), name="_exc", body=[ast.Expr(value=report)]
                    )
                ],
                orelse=[],
                finalbody=[],
            )
        )

    def do_exec(self, action: str, actions: dict[str, Any]) -> None:
        self._current.append(self._exec_call(action))

    # ─────────────────────────────────────────────────────────────────────────
    # Namespace
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def namespace(formats: Any) -> dict[str, Any]:
        """Globals for executing a compiled module."""
        namespace: dict[str, Any] = STATIC_NAMESPACE.copy()
        namespace["_LoopFrame"] = LoopFrame
        namespace["fm"] = formats
        return namespace
