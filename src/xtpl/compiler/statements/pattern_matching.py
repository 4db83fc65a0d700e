"""Switch directive compilation for xtpl compiler.

Provides mixin for compiling ``<tpl switch>``, ``<tpl case>`` and
``<tpl default>`` to a Python ``match`` statement.

Case arms never fall through. Each switch keeps a counter of arms opened so
far: a new ``case``/``default`` closes the previous arm when the counter is
non-zero, and otherwise marks the first arm as started. Text between
``<tpl switch>`` and the first arm is unreachable and discarded. A
``default`` arm always compiles to the trailing ``case _:`` wherever it
appears in the source.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from xtpl.environment.exceptions import ErrorCode

if TYPE_CHECKING:
    from xtpl.environment.exceptions import TemplateSyntaxError

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^\s*(\d+)\s*$")


@dataclass(slots=True)
class SwitchBlock:
    """Open ``switch``.

    Attributes:
        subject: Governing expression
        cases: Closed ``case`` arms, in source order
        default: Body of the ``default`` arm, once closed
        emitted: Arms opened so far (0 until the first case/default)
        pattern: Pattern of the arm currently open (None for default)
        has_default: A ``default`` arm was opened
    """

    subject: ast.expr
    cases: list[ast.match_case] = field(default_factory=list)
    default: list[ast.stmt] | None = None
    emitted: int = 0
    pattern: ast.pattern | None = None
    has_default: bool = False


def case_pattern(labels: list[str]) -> ast.pattern:
    """Pattern matching any of ``labels``.

    Digit-only labels match integers; anything else matches the string.

    Example:
        >>> ast.unparse(ast.match_case(case_pattern(["1", "two"]), body=[ast.Pass()]))
        "case 1 | 'two':\\n    pass"
    """
    patterns: list[ast.pattern] = []
    for label in labels:
        m = _INT_RE.match(label)
        value: int | str = int(m.group(1)) if m else label
        patterns.append(ast.MatchValue(value=ast.Constant(value)))
    if len(patterns) == 1:
        return patterns[0]
    return ast.MatchOr(patterns=patterns)


class PatternMatchingMixin:
    """Mixin for compiling switch directives.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        name: str | None
        _bodies: list[list[ast.stmt]]
        _blocks: list[Any]

        @property
        def _current(self) -> list[ast.stmt]: ...
        def _close_body(self) -> list[ast.stmt]: ...
        def _condition(self, action: str) -> ast.expr: ...
        def error(
            self, message: str, code: ErrorCode, index: int | None = None
        ) -> TemplateSyntaxError: ...

    def do_switch(self, action: str, actions: dict[str, Any]) -> None:
        self._blocks.append(SwitchBlock(self._condition(action)))
        # Receives whatever precedes the first arm; never emitted
        self._bodies.append([])

    def do_case(self, action: str | list[str], actions: dict[str, Any]) -> None:
        block = self._open_switch("case")
        labels = [action] if isinstance(action, str) else list(action)
        self._begin_arm(block, case_pattern(labels))

    def do_default(self) -> None:
        block = self._open_switch("default")
        if block.has_default:
            raise self.error("Duplicate <tpl default> in switch", ErrorCode.DUPLICATE_DEFAULT)
        block.has_default = True
        self._begin_arm(block, None)

    def _open_switch(self, directive: str) -> SwitchBlock:
        block = self._blocks[-1] if self._blocks else None
        if not isinstance(block, SwitchBlock):
            raise self.error(
                f"<tpl {directive}> outside of a <tpl switch>", ErrorCode.MISPLACED_CASE
            )
        return block

    def _begin_arm(self, block: SwitchBlock, pattern: ast.pattern | None) -> None:
        if block.emitted:
            self._close_arm(block)
        else:
            block.emitted += 1
            skipped = self._bodies.pop()
            if skipped:
                logger.debug(
                    "Template %s: discarding output before the first case of a switch",
                    self.name or "<template>",
                )
        block.pattern = pattern
        self._bodies.append([])

    def _close_arm(self, block: SwitchBlock) -> None:
        """Seal the open arm so control never falls into the next one."""
        body = self._close_body()
        if block.pattern is None:
            block.default = body
        else:
            block.cases.append(ast.match_case(pattern=block.pattern, guard=None, body=body))

    def _end_switch(self) -> None:
        """Close the switch and emit ``match``.

        Generates:
            match <subject>:
                case 'a' | 'b':
                    ...
                case _:
                    ...
        """
        block = self._blocks.pop()
        assert isinstance(block, SwitchBlock)
        if block.emitted:
            self._close_arm(block)
        else:
            self._bodies.pop()

        cases = list(block.cases)
        if block.default is not None:
            cases.append(
                ast.match_case(
                    pattern=ast.MatchAs(pattern=None, name=None), guard=None, body=block.default
                )
            )
        if not cases:
            # No arms: evaluate the subject for its side effects only
            self._current.append(ast.Expr(value=block.subject))
            return
        self._current.append(ast.Match(subject=block.subject, cases=cases))
