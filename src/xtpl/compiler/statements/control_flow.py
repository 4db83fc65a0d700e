"""Control flow directive compilation for xtpl compiler.

Provides mixin for compiling ``<tpl if>``, ``<tpl elseif>``, ``<tpl else>``
and ``<tpl for>`` directives, plus the ``</tpl>`` that closes them.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from xtpl._types import DirectiveKind
from xtpl.environment.exceptions import ErrorCode

if TYPE_CHECKING:
    from xtpl.environment.exceptions import TemplateSyntaxError


@dataclass(slots=True)
class IfBlock:
    """Open ``if`` chain. ``node`` is the innermost ``If`` (last elseif)."""

    node: ast.If
    in_else: bool = False


@dataclass(slots=True)
class ForBlock:
    """Open ``for`` loop and its per-iteration ``exec`` statement."""

    node: ast.For
    exec_stmt: ast.stmt | None = None


def _name(id: str, store: bool = False) -> ast.Name:
    return ast.Name(id=id, ctx=ast.Store() if store else ast.Load())


def _top_frame() -> ast.Subscript:
    """``_frames[-1]``"""
    return ast.Subscript(
        value=_name("_frames"),
        slice=ast.UnaryOp(op=ast.USub(), operand=ast.Constant(1)),
        ctx=ast.Load(),
    )


class ControlFlowMixin:
    """Mixin for compiling conditional and loop directives.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        # Host attributes (from Compiler.__init__)
        _bodies: list[list[ast.stmt]]
        _blocks: list[Any]
        _uses_frames: bool

        # From Compiler core
        @property
        def _current(self) -> list[ast.stmt]: ...
        def _close_body(self) -> list[ast.stmt]: ...
        def _condition(self, action: str) -> ast.expr: ...
        def _exec_call(self, source: str) -> ast.stmt: ...

        # From PatternMatchingMixin
        def _end_switch(self) -> None: ...

        # From Parser
        def error(
            self, message: str, code: ErrorCode, index: int | None = None
        ) -> TemplateSyntaxError: ...

    def _exec_action(self, actions: dict[str, Any]) -> ast.stmt | None:
        action = actions.get("exec")
        if not action:
            return None
        if isinstance(action, list):
            action = action[0]
        return self._exec_call(action)

    # ─────────────────────────────────────────────────────────────────────────
    # if / elseif / else
    # ─────────────────────────────────────────────────────────────────────────

    def do_if(self, action: str, actions: dict[str, Any]) -> None:
        """Open an ``if`` chain; ``exec`` runs on entering the branch."""
        node = ast.If(test=self._condition(action), body=[], orelse=[])
        self._current.append(node)
        self._blocks.append(IfBlock(node))
        self._bodies.append(node.body)
        self._emit_branch_exec(actions)

    def do_elseif(self, action: str, actions: dict[str, Any]) -> None:
        block = self._open_if("elseif")
        self._close_body()
        node = ast.If(test=self._condition(action), body=[], orelse=[])
        block.node.orelse.append(node)
        block.node = node
        self._bodies.append(node.body)
        self._emit_branch_exec(actions)

    def do_else(self) -> None:
        block = self._open_if("else")
        self._close_body()
        block.in_else = True
        self._bodies.append(block.node.orelse)

    def _open_if(self, directive: str) -> IfBlock:
        block = self._blocks[-1] if self._blocks else None
        if not isinstance(block, IfBlock):
            raise self.error(
                f"<tpl {directive}> outside of an <tpl if>", ErrorCode.MISPLACED_BRANCH
            )
        if block.in_else:
            raise self.error(f"<tpl {directive}> after <tpl else>", ErrorCode.MISPLACED_BRANCH)
        return block

    def _emit_branch_exec(self, actions: dict[str, Any]) -> None:
        stmt = self._exec_action(actions)
        if stmt is not None:
            self._current.append(stmt)

    # ─────────────────────────────────────────────────────────────────────────
    # for
    # ─────────────────────────────────────────────────────────────────────────

    def do_for(self, action: str, actions: dict[str, Any]) -> None:
        """Open a loop over the resolved source.

        Generates:
            _frames.append(_LoopFrame(<source>, _frames[-1], values, parent, xindex, xcount))
            parent = _frames[-1].parent
            xcount = _frames[-1].count
            for xindex, values in _frames[-1]:
                ...
        """
        self._uses_frames = True
        keywords: list[ast.keyword] = []
        prop = actions.get("prop")
        if prop:
            keywords.append(ast.keyword(arg="prop", value=ast.Constant(prop)))
        if action.strip() == ".":
            keywords.append(ast.keyword(arg="dot", value=ast.Constant(True)))

        frame = ast.Call(
            func=_name("_LoopFrame"),
            args=[
                self._condition(action),
                _top_frame(),
                *(_name(arg) for arg in ("values", "parent", "xindex", "xcount")),
            ],
            keywords=keywords,
        )
        current = self._current
        current.append(
            ast.Expr(
                value=ast.Call(
                    func=ast.Attribute(value=_name("_frames"), attr="append", ctx=ast.Load()),
                    args=[frame],
                    keywords=[],
                )
            )
        )
        for binding, attr in (("parent", "parent"), ("xcount", "count")):
            current.append(
                ast.Assign(
                    targets=[_name(binding, store=True)],
                    value=ast.Attribute(value=_top_frame(), attr=attr, ctx=ast.Load()),
                )
            )

        node = ast.For(
            target=ast.Tuple(
                elts=[_name("xindex", store=True), _name("values", store=True)],
                ctx=ast.Store(),
            ),
            iter=_top_frame(),
            body=[],
            orelse=[],
        )
        current.append(node)
        self._blocks.append(ForBlock(node, self._exec_action(actions)))
        self._bodies.append(node.body)

    def _end_for(self) -> None:
        """Close a loop and restore the pre-loop bindings.

        Generates:
                <exec statement, once per iteration>
            parent, values, xcount, xindex = _frames.pop().restore()
        """
        block = self._blocks.pop()
        assert isinstance(block, ForBlock)
        if block.exec_stmt is not None:
            self._current.append(block.exec_stmt)
        self._close_body()
        pop = ast.Call(
            func=ast.Attribute(value=_name("_frames"), attr="pop", ctx=ast.Load()),
            args=[],
            keywords=[],
        )
        self._current.append(
            ast.Assign(
                targets=[
                    ast.Tuple(
                        elts=[
                            _name(n, store=True) for n in ("parent", "values", "xcount", "xindex")
                        ],
                        ctx=ast.Store(),
                    )
                ],
                value=ast.Call(
                    func=ast.Attribute(value=pop, attr="restore", ctx=ast.Load()),
                    args=[],
                    keywords=[],
                ),
            )
        )

    # ─────────────────────────────────────────────────────────────────────────
    # </tpl>
    # ─────────────────────────────────────────────────────────────────────────

    def do_end(self, kind: DirectiveKind, actions: dict[str, Any]) -> None:
        if kind is DirectiveKind.IF:
            self._blocks.pop()
            self._close_body()
        elif kind is DirectiveKind.FOR:
            self._end_for()
        elif kind is DirectiveKind.SWITCH:
            self._end_switch()
