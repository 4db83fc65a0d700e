"""Diagnostics -- contained failures and syntax errors.

Failing expressions, exec bodies and code blocks do not abort a render:
they are logged at WARNING, recorded on the active RenderContext and
render as empty text. Malformed directive nesting raises
TemplateSyntaxError on first use, with a source snippet.

Run:
    python app.py
"""

import logging

from xtpl import TemplateSyntaxError, XTemplate, render_context

logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

template = XTemplate(
    '<tpl for="orders">',
    "#{id}: {[ total / qty ]} per item",
    '<tpl if="total &gt; 100"> (large)</tpl>\n',
    "</tpl>",
    name="orders.html",
)

orders = [
    {"id": 1, "total": 50, "qty": 2},
    {"id": 2, "total": 300, "qty": 0},
]

with render_context() as ctx:
    output = template.apply({"orders": orders})

diagnostics = ctx.diagnostics

broken = XTemplate('<ul>\n<tpl for="items">\n  <li>{.}</li>\n</ul>', name="broken.html")

try:
    broken.apply({"items": [1]})
except TemplateSyntaxError as e:
    syntax_error = e


def main() -> None:
    print(output)
    for diagnostic in diagnostics:
        print(diagnostic.format())
    print()
    print(syntax_error.format_compact())


if __name__ == "__main__":
    main()
