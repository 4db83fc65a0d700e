"""xtpl parser: directive-aware scanner for XTemplate source.

The Parser walks template text once and reports each unit (text, tag,
expression block, code block, ``<tpl>`` open/close) through ``do_*``
callouts; the Compiler subclasses it to emit Python AST.

"""

from xtpl.parser.core import Parser, parse_actions

__all__ = ["Parser", "parse_actions"]
