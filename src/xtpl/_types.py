"""Shared types for the xtpl parser and compiler.

Directive frames are what the parser keeps on its nesting stack: one frame
per open ``<tpl ...>`` tag, popped by the matching ``</tpl>``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DirectiveKind(Enum):
    """Structural kind of an open ``<tpl>`` directive."""

    TPL = "tpl"
    IF = "if"
    SWITCH = "switch"
    FOR = "for"
    EXEC = "exec"


# Attribute name -> accumulated value(s). A value is a str for a single
# occurrence and a list[str] once the attribute repeats (``case="a" case="b"``).
Actions = dict[str, str | list[str]]


@dataclass(slots=True)
class DirectiveFrame:
    """One entry of the parser's directive stack.

    Attributes:
        kind: What the opening tag started
        actions: Every recognised attribute of the opening tag
        lineno: 1-based line of the opening tag (for nesting errors)
        col_offset: 0-based column of the opening tag
    """

    kind: DirectiveKind
    actions: Actions = field(default_factory=dict)
    lineno: int = 0
    col_offset: int = 0
