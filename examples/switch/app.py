"""Switch -- ``<tpl switch>`` with ``case`` and ``default`` arms.

Arms never fall through. A case may list several labels, and digit-only
labels match integers.

Run:
    python app.py
"""

from xtpl import XTemplate

template = XTemplate(
    '<tpl for="people">',
    "{name}: ",
    '<tpl switch="role">',
    '<tpl case="admin" case="owner">full access',
    '<tpl case="editor">can edit',
    "<tpl default>read only",
    "</tpl>",
    " (level ",
    '<tpl switch="level"><tpl case="1">one<tpl case="2">two<tpl default>{level}</tpl>',
    ")\n",
    "</tpl>",
)

people = [
    {"name": "Ann", "role": "owner", "level": 1},
    {"name": "Bob", "role": "editor", "level": 2},
    {"name": "Cy", "role": "guest", "level": 7},
]

output = template.apply({"people": people})


def main() -> None:
    print(output)


if __name__ == "__main__":
    main()
