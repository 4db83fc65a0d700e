"""Directive compilation for xtpl compiler.

Provides mixins turning ``<tpl>`` directives into Python statements:
- control_flow: if / elseif / else / for, and ``</tpl>`` dispatch
- pattern_matching: switch / case / default as ``match``

Uses inline TYPE_CHECKING declarations for host attributes.

"""

from __future__ import annotations

from xtpl.compiler.statements.control_flow import ControlFlowMixin
from xtpl.compiler.statements.pattern_matching import PatternMatchingMixin


class StatementCompilationMixin(ControlFlowMixin, PatternMatchingMixin):
    """Combined mixin for compiling all directive types.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks in each individual mixin.

    """
