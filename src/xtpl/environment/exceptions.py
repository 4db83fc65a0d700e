"""Exceptions for the xtpl template system.

Exception Hierarchy:
TemplateError (base)
├── TemplateSyntaxError       # Directive nesting / definitions error (first use)
└── TemplateRuntimeError      # Uncontained render-time failure
    ├── FormatNotFoundError   # Unknown format function name
    └── RenderDepthError      # Nested apply() calls too deep

Contained evaluations (helper expressions, exec bodies, code blocks) never
let these escape a render: they are logged and recorded as diagnostics on
the active RenderContext instead. What does escape is a template that
cannot be compiled at all, or a failure outside any contained boundary.

Example:
    ```
    X-PAR-001: Syntax Error: Unmatched </tpl>
      --> kids.html:3:12
         |
       1 | <ul>
       2 | <tpl for="kids">
    >  3 | {name}</tpl></tpl>
         |             ^
         |
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from xtpl.environment import terminal

_XTPL_DOCS_BASE = "https://xtpl.readthedocs.io/en/latest/errors"

# Lines up with the "|" of format_source_line (">NNN | ")
_GUTTER = "     |"


class ErrorCode(Enum):
    """Searchable error codes for xtpl errors.

    Format: X-{CATEGORY}-{NUMBER}
    Categories: PAR (parser/compiler), RUN (runtime), FMT (format library)
    """

    # Parser / compiler errors (X-PAR-xxx)
    UNMATCHED_CLOSE = "X-PAR-001"
    UNCLOSED_DIRECTIVE = "X-PAR-002"
    MISPLACED_BRANCH = "X-PAR-003"
    MISPLACED_CASE = "X-PAR-004"
    DUPLICATE_DEFAULT = "X-PAR-005"
    INVALID_DEFINITIONS = "X-PAR-006"
    INVALID_EXPRESSION = "X-PAR-007"

    # Runtime errors (X-RUN-xxx)
    RUNTIME_ERROR = "X-RUN-001"
    RENDER_DEPTH = "X-RUN-002"

    # Format library errors (X-FMT-xxx)
    FORMAT_NOT_FOUND = "X-FMT-001"

    @property
    def docs_url(self) -> str:
        """Documentation URL for this error code."""
        return f"{_XTPL_DOCS_BASE}/#{self.value.lower()}"

    @property
    def category(self) -> str:
        """Error category ('parser', 'runtime' or 'format')."""
        prefix = self.value.split("-")[1]
        return {
            "PAR": "parser",
            "RUN": "runtime",
            "FMT": "format",
        }.get(prefix, "unknown")


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source context around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional column offset for caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        """Format the snippet with line numbers and the error line highlighted."""
        parts: list[str] = [terminal.dim_text(_GUTTER)]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        if self.column is not None:
            caret = " " * self.column + "^"
            parts.append(f"{terminal.dim_text(_GUTTER)} {terminal.error_line(caret)}")
        parts.append(terminal.dim_text(_GUTTER))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet from template source.

    Args:
        source: Full template source text.
        error_line: 1-based line number of the error.
        context_lines: Number of lines to show before/after the error line.
        column: Optional column offset for caret pointer.
    """
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


class TemplateError(Exception):
    """Base exception for all xtpl errors.

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format the error as a short, human-readable summary with docs link."""
        parts = [terminal.format_error_header(self.code.value if self.code else None, str(self))]
        if self.code:
            parts.append(f"  Docs: {terminal.docs_url(self.code.docs_url)}")
        return "\n".join(parts)


class TemplateSyntaxError(TemplateError):
    """Template source that cannot be compiled.

    Raised when the renderer is built (on first ``apply``/``apply_out``),
    never at construction time. When ``source`` and ``lineno`` are given the
    message carries the offending line, and ``col_offset`` adds a caret.
    """

    code: ErrorCode | None = ErrorCode.INVALID_EXPRESSION

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        source: str | None = None,
        col_offset: int | None = None,
        *,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.name = name
        self.source = source
        self.col_offset = col_offset
        self.source_snippet: SourceSnippet | None = None
        if source and lineno and 0 < lineno <= len(source.splitlines()):
            self.source_snippet = build_source_snippet(source, lineno, column=col_offset)
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        location = self.name or "<template>"
        if self.lineno:
            location += f":{self.lineno}"
            if self.col_offset is not None:
                location += f":{self.col_offset}"

        header = f"Syntax Error: {self.message}\n  --> {location}"

        if self.source_snippet is not None:
            return header + "\n" + self.source_snippet.format()
        return header


class TemplateRuntimeError(TemplateError):
    """Render-time failure outside any contained evaluation.

    Attributes:
        message: Error description
        expression: Template expression that failed
        values: Dict of variable names -> values for context
        template_name: Name of the template
        suggestion: Actionable fix suggestion
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        values: dict[str, Any] | None = None,
        template_name: str | None = None,
        suggestion: str | None = None,
    ):
        self.message = message
        self.expression = expression
        self.values = values or {}
        self.template_name = template_name
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"Runtime Error: {self.message}"]

        if self.template_name:
            parts.append(f"  Location: {terminal.location(self.template_name)}")

        if self.expression:
            parts.append(f"  Expression: {self.expression}")

        if self.values:
            parts.append("  Values:")
            for name, value in self.values.items():
                value_repr = repr(value)
                if len(value_repr) > 80:
                    value_repr = value_repr[:77] + "..."
                parts.append(f"    {name} = {value_repr} ({type(value).__name__})")

        if self.suggestion:
            parts.append(f"\n  {terminal.hint('Suggestion:')} {self.suggestion}")

        return "\n".join(parts)


class FormatNotFoundError(TemplateRuntimeError, AttributeError):
    """A tag named a format function the Format Library does not have.

    Also an AttributeError, so ``getattr(library, name, default)`` keeps
    working on a FormatLibrary.
    """

    code: ErrorCode | None = ErrorCode.FORMAT_NOT_FOUND

    def __init__(self, name: str, available: frozenset[str] = frozenset()):
        suggestion = "Register it with library[name] = func before the first render"
        if available:
            from difflib import get_close_matches

            close = get_close_matches(name, sorted(available), n=3, cutoff=0.6)
            if close:
                suggestion = f"Did you mean one of: {', '.join(close)}?"
        super().__init__(f"Unknown format function '{name}'", suggestion=suggestion)
        # AttributeError.__init__ resets .name, so bind it afterwards
        self.name = name


class RenderDepthError(TemplateRuntimeError):
    """Nested ``apply()`` calls made from inside templates went too deep."""

    code: ErrorCode | None = ErrorCode.RENDER_DEPTH
