"""Hello World -- the simplest xtpl example.

Build a template from a string and apply it to a data object.
Compilation happens on the first apply.

Run:
    python app.py
"""

from xtpl import XTemplate

template = XTemplate("Hello, {name}!")

# Apply to a data object
output = template.apply({"name": "World"})


def main() -> None:
    print(output)
    print()

    # Multiple renders with different data
    for name in ["xtpl", "Python", "Templates"]:
        print(template.apply({"name": name}))


if __name__ == "__main__":
    main()
