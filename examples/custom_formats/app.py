"""Custom formats -- extending the Format Library and template members.

Demonstrates registering formats on a private FormatLibrary, the
``@library.register()`` decorator, and member functions called from
expression blocks as ``this.name(...)``.

Run:
    python app.py
"""

from xtpl import XTemplate, default_formats

library = default_formats()


# Custom format: item assignment
def money(amount: float, currency: str = "$") -> str:
    """Format amount as currency."""
    return f"{currency}{amount:,.2f}"


library["money"] = money


# Custom format: decorator
@library.register()
def pluralize(n: int, singular: str, plural: str) -> str:
    """Return singular or plural form based on count."""
    return f"{n} {singular if n == 1 else plural}"


def line_total(self, item: dict) -> str:
    """Member function: price times quantity, formatted with the library."""
    return self.formats.money(item["price"] * item["qty"])


template = XTemplate(
    "Invoice: {total:money} / {total:money('€')}\n",
    "{item_count:pluralize('item', 'items')}\n",
    '<tpl for="items">',
    "- {name:uppercase} x{qty}: {[ this.line_total(values) ]}\n",
    "</tpl>",
    formats=library,
    line_total=line_total,
)

output = template.apply(
    {
        "total": 1234.56,
        "item_count": 3,
        "items": [
            {"name": "Widget A", "price": 19.99, "qty": 2},
            {"name": "Widget B", "price": 5.00, "qty": 1},
        ],
    }
)


def main() -> None:
    print(output)


if __name__ == "__main__":
    main()
