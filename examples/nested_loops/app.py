"""Nested loops -- ``<tpl for>``, ``{#}``, ``parent`` and ``prop``.

Inside a loop the data object is the current element, ``{#}`` is its
1-based position and ``parent`` is the object that held the list. Loop
bindings are restored when the loop ends.

Run:
    python app.py
"""

from xtpl import XTemplate

family = {
    "name": "Don",
    "kids": [
        {"name": "Aubrey", "age": 17, "toys": ["kite", "yo-yo"]},
        {"name": "Nikol", "age": 5, "toys": ["ball"]},
        {"name": "Ellie", "age": 3, "toys": []},
    ],
}

template = XTemplate(
    "<p>{name}'s kids:</p>\n",
    '<tpl for="kids">',
    "{#}. {name} ({age}), child of {parent.name}",
    '<tpl if="toys">: <tpl for="toys">{.}<tpl if="xindex &lt; xcount">, </tpl></tpl></tpl>\n',
    "</tpl>",
    "<p>Back to {name}</p>",
    name="family",
)

names = XTemplate('<tpl for="kids" prop="name">{.} </tpl>')

output = template.apply(family)


def main() -> None:
    print(output)
    print(names.apply(family))


if __name__ == "__main__":
    main()
