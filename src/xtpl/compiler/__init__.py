"""xtpl compiler: XTemplate source to Python AST.

Generates ``ast.Module`` objects directly and compiles them with the
built-in ``compile()``; no Python source strings are assembled.

"""

from xtpl.compiler.core import Compiler
from xtpl.compiler.tags import TagSpec, parse_tag

__all__ = ["Compiler", "TagSpec", "parse_tag"]
