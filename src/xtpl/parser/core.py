"""xtpl Parser: scans template source and drives callouts.

The parser does not build a tree. It walks the source left to right and
calls one ``do_*`` method per syntactic unit, keeping only a stack of open
``<tpl>`` directives and the ``for`` nesting level. A subclass (the
Compiler) implements the callouts.

Syntactic units, in the order they are tried at each position:

    {% statements %}        -> do_eval(code)
    {[ expression ]}        -> do_expr(expr)
    {name:format(args)+1}   -> do_tag(tag)
    <tpl attrs>             -> do_if / do_switch / do_case / do_elseif /
                               do_for / do_exec / do_else / do_default / do_tpl
    </tpl>                  -> do_end(kind, actions)

Anything between units is passed to ``do_text`` verbatim.

Directive dispatch priority for one open tag:
    if > switch > case > elseif > for > exec > (else | default | tpl)

Only one structural callout fires per open tag; the full attribute map is
passed along so ``if``/``elseif``/``for`` can also honour ``exec`` and
``for`` can read ``prop``.

"""

from __future__ import annotations

import html
import re

from xtpl._types import Actions, DirectiveFrame, DirectiveKind
from xtpl.environment.exceptions import ErrorCode, TemplateSyntaxError

# Top-level units, directive attributes and bare branch markers
_TOP_RE = re.compile(r"(?:(\{%)|(\{\[)|\{([^{}]*)\})|(?:<tpl([^>]*)>)|(?:</tpl>)")
_ACTIONS_RE = re.compile(
    r"\s*(?<![\w-])(elif|elseif|if|for|exec|switch|case|eval)\s*=\s*"
    r"""(?:"([^"]*)"|'([^']*)')\s*"""
)
_PROP_RE = re.compile(r"""(?<![\w-])prop\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_DEFAULT_RE = re.compile(r"^\s*default\s*$")
_ELSE_RE = re.compile(r"^\s*else\s*$")

_ALIASES = {"elif": "elseif"}


class Parser:
    """Template scanner with a directive-nesting stack.

    Attributes:
        level: ``for`` nesting depth. Incremented before ``do_for`` is
            called and decremented after the matching ``do_end``, so it is 1
            inside the first loop's callouts.
        stack: Open directive frames, innermost last.
        name: Template name used in syntax errors.

    Precondition:
        Directives are well nested. Violations raise TemplateSyntaxError
        (unmatched ``</tpl>``, unclosed ``<tpl>``) rather than being repaired.
    """

    def __init__(self, name: str | None = None):
        self.name = name
        self.level = 0
        self.stack: list[DirectiveFrame] = []
        self._source = ""
        self._pos = 0

    # ─────────────────────────────────────────────────────────────────────────
    # Callouts (implemented by the Compiler)
    # ─────────────────────────────────────────────────────────────────────────

    def do_text(self, text: str) -> None:
        """Process a run of literal text."""
        raise NotImplementedError

    def do_expr(self, expr: str) -> None:
        """Process the body of an expression block ``{[ expr ]}``."""
        raise NotImplementedError

    def do_tag(self, tag: str) -> None:
        """Process the body of an interpolation tag ``{tag}``."""
        raise NotImplementedError

    def do_eval(self, code: str) -> None:
        """Process the body of an inline code block ``{% code %}``."""
        raise NotImplementedError

    def do_if(self, action: str, actions: Actions) -> None:
        raise NotImplementedError

    def do_elseif(self, action: str, actions: Actions) -> None:
        raise NotImplementedError

    def do_else(self) -> None:
        raise NotImplementedError

    def do_switch(self, action: str, actions: Actions) -> None:
        raise NotImplementedError

    def do_case(self, action: str | list[str], actions: Actions) -> None:
        """Process ``<tpl case="a">``; repeated ``case`` attributes arrive as a list."""
        raise NotImplementedError

    def do_default(self) -> None:
        raise NotImplementedError

    def do_for(self, action: str, actions: Actions) -> None:
        raise NotImplementedError

    def do_exec(self, action: str, actions: Actions) -> None:
        raise NotImplementedError

    def do_end(self, kind: DirectiveKind, actions: Actions) -> None:
        """Process ``</tpl>`` for the directive that opened ``kind``."""
        raise NotImplementedError

    def do_tpl(self) -> None:
        """Process an unstructured ``<tpl>`` (no recognised directive). No-op."""

    # ─────────────────────────────────────────────────────────────────────────
    # Scanning
    # ─────────────────────────────────────────────────────────────────────────

    def parse(self, source: str) -> None:
        """Scan ``source`` and invoke the callouts in order.

        Raises:
            TemplateSyntaxError: On unterminated ``{%``/``{[`` blocks or
                mismatched ``<tpl>``/``</tpl>`` nesting.
        """
        self._source = source
        self.level = 0
        self.stack = stack = []
        length = len(source)
        index = 0

        while index < length:
            m = _TOP_RE.search(source, index)
            if m is None:
                self.do_text(source[index:])
                break

            begin, end = m.span()
            if index < begin:
                self._pos = index
                self.do_text(source[index:begin])

            self._pos = begin
            if m.group(1):
                end = self._block_end(begin, "%}")
                self.do_eval(source[begin + 2 : end])
                end += 2
            elif m.group(2):
                end = self._block_end(begin, "]}")
                self.do_expr(source[begin + 2 : end])
                end += 2
            elif m.group(3) is not None:
                self.do_tag(m.group(3))
            elif m.group(4):
                self._open_directive(m.group(4), begin)
            elif m.group(0) == "<tpl>":
                self.do_tpl()
                stack.append(self._frame(DirectiveKind.TPL, {}, begin))
            else:
                self._close_directive(begin)

            index = end

        if stack:
            frame = stack[-1]
            raise TemplateSyntaxError(
                f"Unclosed <tpl> directive ({frame.kind.value})",
                lineno=frame.lineno,
                name=self.name,
                source=source,
                col_offset=frame.col_offset,
                code=ErrorCode.UNCLOSED_DIRECTIVE,
            )

    def error(self, message: str, code: ErrorCode, index: int | None = None) -> TemplateSyntaxError:
        """Build a syntax error located at ``index`` (default: current unit)."""
        lineno, col = self.position(self._pos if index is None else index)
        return TemplateSyntaxError(
            message,
            lineno=lineno,
            name=self.name,
            source=self._source,
            col_offset=col,
            code=code,
        )

    def _open_directive(self, attrs: str, begin: int) -> None:
        actions = parse_actions(attrs)
        stack = self.stack

        if not actions:
            if _ELSE_RE.match(attrs):
                self.do_else()
            elif _DEFAULT_RE.match(attrs):
                self.do_default()
            else:
                self.do_tpl()
                stack.append(self._frame(DirectiveKind.TPL, {}, begin))
        elif "if" in actions:
            self.do_if(_single(actions["if"]), actions)
            stack.append(self._frame(DirectiveKind.IF, actions, begin))
        elif "switch" in actions:
            self.do_switch(_single(actions["switch"]), actions)
            stack.append(self._frame(DirectiveKind.SWITCH, actions, begin))
        elif "case" in actions:
            self.do_case(actions["case"], actions)
        elif "elseif" in actions:
            self.do_elseif(_single(actions["elseif"]), actions)
        elif "for" in actions:
            self.level += 1
            prop = _PROP_RE.search(attrs)
            if prop:
                actions["prop"] = prop.group(1) or prop.group(2) or ""
            self.do_for(_single(actions["for"]), actions)
            stack.append(self._frame(DirectiveKind.FOR, actions, begin))
        elif "exec" in actions:
            self.do_exec(_single(actions["exec"]), actions)
            stack.append(self._frame(DirectiveKind.EXEC, actions, begin))
        else:
            # Unstructured tpl: recognised attributes but no directive (e.g. eval=)
            self.do_tpl()
            stack.append(self._frame(DirectiveKind.TPL, actions, begin))

    def _close_directive(self, begin: int) -> None:
        if not self.stack:
            raise self.error("Unmatched </tpl>", ErrorCode.UNMATCHED_CLOSE, begin)
        frame = self.stack.pop()
        self.do_end(frame.kind, frame.actions)
        if frame.kind is DirectiveKind.FOR:
            self.level -= 1

    def _block_end(self, begin: int, terminator: str) -> int:
        end = self._source.find(terminator, begin + 2)
        if end < 0:
            raise self.error(
                f"Unterminated block, expected '{terminator}'", ErrorCode.INVALID_EXPRESSION, begin
            )
        return end

    def _frame(self, kind: DirectiveKind, actions: Actions, begin: int) -> DirectiveFrame:
        lineno, col = self.position(begin)
        return DirectiveFrame(kind, actions, lineno, col)

    def position(self, index: int) -> tuple[int, int]:
        """Return the (1-based line, 0-based column) of ``index`` in the source."""
        lineno = self._source.count("\n", 0, index) + 1
        col = index - (self._source.rfind("\n", 0, index) + 1)
        return lineno, col


def parse_actions(attrs: str) -> Actions:
    """Extract directive attributes from the body of a ``<tpl ...>`` tag.

    Values are HTML-entity decoded. Empty values are ignored. A repeated
    attribute accumulates its values into a list in source order.

    Example:
        >>> parse_actions(' case="Aubrey" case="Nikol"')
        {'case': ['Aubrey', 'Nikol']}
        >>> parse_actions(' if="age &gt; 1"')
        {'if': 'age > 1'}
    """
    actions: Actions = {}
    for match in _ACTIONS_RE.finditer(attrs):
        value = match.group(2) or match.group(3)
        if not value:
            continue
        value = html.unescape(value)
        key = _ALIASES.get(match.group(1), match.group(1))
        prev = actions.get(key)
        if prev is None:
            actions[key] = value
        elif isinstance(prev, str):
            actions[key] = [prev, value]
        else:
            prev.append(value)
    return actions


def _single(value: str | list[str]) -> str:
    # Only ``case`` is meaningful repeated; elsewhere the first occurrence wins.
    return value if isinstance(value, str) else value[0]
