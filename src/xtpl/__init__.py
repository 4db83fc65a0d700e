"""xtpl: XTemplate-style templates compiled to Python functions.

Templates mix literal text with value tags, expression and code blocks, and
``<tpl>`` directives for conditionals, switches and loops. Each template is
compiled lazily, once, into a Python render function.

Quickstart:
    >>> from xtpl import XTemplate
    >>> tpl = XTemplate('<tpl for="kids">{#}:{name} </tpl>')
    >>> tpl.apply({"kids": [{"name": "a"}, {"name": "b"}, {"name": "c"}]})
    '1:a 2:b 3:c '

Syntax:
    {name}  {a.b.c}  {parent.x}  {.}  {#}        value tags
    {price:currency('EUR ')}  {age+5}            formats and arithmetic
    {[ values['a'] * 2 ]}                        expression block
    {% total = 0 %}                              code block
    <tpl if="age > 18">..<tpl elseif="..">..<tpl else>..</tpl>
    <tpl switch="kind"><tpl case="a" case="b">..<tpl default>..</tpl>
    <tpl for="kids" exec="...">..</tpl>

Architecture:
Template Source → Parser (callouts) → Compiler → Python AST → exec()

1. **Parser**: Scans the source once and reports text, tags, blocks and
   directives through ``do_*`` callouts
2. **Compiler**: Implements the callouts, emitting ``ast`` nodes directly
3. **XTemplate**: Compiles on first use and wraps ``render`` with
   ``apply()``/``apply_out()``

Error Containment:
    Rich expressions, exec bodies, formatted tags and code blocks that
    raise are logged at WARNING, recorded on the active RenderContext and
    rendered as empty text. The rest of the output is produced normally.

"""

from xtpl.datasources import ItemCollection, PagedStore
from xtpl.environment import (
    ErrorCode,
    FormatNotFoundError,
    RenderDepthError,
    SourceSnippet,
    TemplateError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    build_source_snippet,
)
from xtpl.formats import FormatLibrary, default_formats
from xtpl.render_context import Diagnostic, RenderContext, get_render_context, render_context
from xtpl.template import EMPTY, UNDEFINED, LoopFrame, XTemplate

__version__ = "0.1.0"

__all__ = [
    "EMPTY",
    "UNDEFINED",
    "Diagnostic",
    "ErrorCode",
    "FormatLibrary",
    "FormatNotFoundError",
    "ItemCollection",
    "LoopFrame",
    "PagedStore",
    "RenderContext",
    "RenderDepthError",
    "SourceSnippet",
    "TemplateError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "XTemplate",
    "__version__",
    "build_source_snippet",
    "default_formats",
    "get_render_context",
    "render_context",
]
