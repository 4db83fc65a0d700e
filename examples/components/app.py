"""Components -- templates attached to classes.

A class stores its template as plain source (or a config mapping).
``XTemplate.get_tpl`` builds the XTemplate on first use and writes it back
to the class, so every instance shares one compiled renderer. Templates
can apply other templates from expression blocks.

Run:
    python app.py
"""

from xtpl import XTemplate


class Badge:
    tpl = {
        "source": '<span class="badge badge-{kind}">{label:this.short}</span>',
        "name": "badge",
        "short": lambda self, text: text if len(text) <= 8 else text[:6] + ".",
    }


class Card:
    tpl = {
        "source": [
            '<div class="card">',
            "<h2>{title:html_encode}</h2>",
            '<tpl for="badges">{[ this.badge.apply(values) ]}</tpl>',
            "</div>",
        ],
        "badge": XTemplate.get_tpl(Badge(), "tpl"),
    }

    def __init__(self, title: str, badges: list[dict[str, str]]):
        self.title = title
        self.badges = badges

    def render(self) -> str:
        tpl = XTemplate.get_tpl(self, "tpl")
        return tpl.apply(self)


badge = Badge.tpl

cards = [
    Card("Fish & Chips", [{"kind": "new", "label": "Seasonal"}]),
    Card("Soup", [{"kind": "hot", "label": "Chef's choice"}, {"kind": "veg", "label": "Vegan"}]),
]

output = "\n".join(card.render() for card in cards)


def main() -> None:
    print(output)


if __name__ == "__main__":
    main()
