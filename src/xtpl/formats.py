"""Format Library: named value-formatting functions for ``{name:format}`` tags.

A tag such as ``{price:currency('EUR ', 2)}`` compiles to
``fm.currency(value, 'EUR ', 2)``, where ``fm`` is the FormatLibrary bound
to the template. ``{name:this.shout}`` calls a member function of the
template instead.

Built-in formats:
**Strings**:
    - `trim`: Strip surrounding whitespace
    - `ellipsis(length, word=False)`: Truncate with "..."
    - `substr(start, length=None)`: Slice
    - `lowercase` / `uppercase` / `capitalize`
    - `left_pad(size, char=" ")`: Pad on the left
    - `nl2br`: Newlines to ``<br/>``

**HTML**:
    - `html_encode` / `html_decode`
    - `strip_tags` / `strip_scripts`

**Values**:
    - `undef`: Missing value to ''
    - `default_value(default='')`: Fallback for missing or empty values
    - `plural(singular, plural=None)`: "1 item" / "2 items"

**Numbers and dates**:
    - `number(pattern='0,000.00')`
    - `round(precision=0)`
    - `currency(sign='$', decimals=2, end=False)` / `us_money`
    - `file_size`: "1.5 KB"
    - `date(pattern='%m/%d/%Y')`

Custom Formats:
    >>> library = default_formats()
    >>> library["shout"] = lambda value: f"{value}!"
    >>> tpl = XTemplate("{name:shout}", formats=library)

"""

from __future__ import annotations

import html
import re
from collections.abc import Callable, Iterator, Mapping
from datetime import date as _date
from datetime import datetime
from typing import Any

from xtpl.environment.exceptions import FormatNotFoundError
from xtpl.template.helpers import is_absent

_TAGS_RE = re.compile(r"</?[^>]+>")
_SCRIPTS_RE = re.compile(r"(?is)<script\b[^>]*>.*?</script>")
_NEWLINE_RE = re.compile(r"\r?\n")


class FormatLibrary:
    """Named format functions, readable as attributes.

    Supports:
        - library.currency(value)          (what compiled tags do)
        - library['name'] = func
        - library.update({'name': func})
        - 'name' in library

    Mutations replace the underlying dict (copy-on-write), so a render in
    progress on another thread keeps a consistent view.
    """

    __slots__ = ("_formats",)

    def __init__(self, formats: Mapping[str, Callable[..., Any]] | None = None):
        self._formats: dict[str, Callable[..., Any]] = dict(formats or {})

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._formats[name]
        except KeyError:
            raise FormatNotFoundError(name, frozenset(self._formats)) from None

    def __getitem__(self, name: str) -> Callable[..., Any]:
        return self._formats[name]

    def __setitem__(self, name: str, func: Callable[..., Any]) -> None:
        new = self._formats.copy()
        new[name] = func
        self._formats = new

    def __contains__(self, name: object) -> bool:
        return name in self._formats

    def __iter__(self) -> Iterator[str]:
        return iter(self._formats)

    def __len__(self) -> int:
        return len(self._formats)

    def get(self, name: str, default: Callable[..., Any] | None = None) -> Callable[..., Any] | None:
        return self._formats.get(name, default)

    def update(self, mapping: Mapping[str, Callable[..., Any]]) -> None:
        """Batch update formats."""
        new = self._formats.copy()
        new.update(mapping)
        self._formats = new

    def register(self, name: str | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a format under ``name`` (default: function name).

        Example:
            >>> @library.register()
            ... def shout(value):
            ...     return f"{value}!"
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self[name or func.__name__] = func
            return func

        return decorator

    def copy(self) -> FormatLibrary:
        return FormatLibrary(self._formats)

    def keys(self):
        return self._formats.keys()

    def items(self):
        return self._formats.items()

    def __repr__(self) -> str:
        return f"<FormatLibrary {len(self._formats)} formats>"


def _text(value: Any) -> str:
    return "" if is_absent(value) else str(value)


# ─────────────────────────────────────────────────────────────────────────
# Strings
# ─────────────────────────────────────────────────────────────────────────


def trim(value: Any) -> str:
    return _text(value).strip()


def ellipsis(value: Any, length: int, word: bool = False) -> str:
    """Truncate to ``length`` characters including the trailing "...".

    With ``word=True`` the cut moves back to the last space when one
    exists in the kept part.
    """
    text = _text(value)
    if len(text) <= length:
        return text
    if word:
        kept = text[: length - 2]
        space = kept.rfind(" ")
        if space > 0:
            return kept[:space] + "..."
    return text[: max(length - 3, 0)] + "..."


def substr(value: Any, start: int, length: int | None = None) -> str:
    text = _text(value)
    if length is None:
        return text[start:]
    return text[start : start + length]


def lowercase(value: Any) -> str:
    return _text(value).lower()


def uppercase(value: Any) -> str:
    return _text(value).upper()


def capitalize(value: Any) -> str:
    """First character upper-cased, the rest lower-cased."""
    text = _text(value)
    return text[:1].upper() + text[1:].lower()


def left_pad(value: Any, size: int, char: str = " ") -> str:
    return _text(value).rjust(size, char[:1] or " ")


def nl2br(value: Any) -> str:
    return _NEWLINE_RE.sub("<br/>", _text(value))


# ─────────────────────────────────────────────────────────────────────────
# HTML
# ─────────────────────────────────────────────────────────────────────────


def html_encode(value: Any) -> str:
    return html.escape(_text(value), quote=True)


def html_decode(value: Any) -> str:
    return html.unescape(_text(value))


def strip_tags(value: Any) -> str:
    return _TAGS_RE.sub("", _text(value))


def strip_scripts(value: Any) -> str:
    return _SCRIPTS_RE.sub("", _text(value))


# ─────────────────────────────────────────────────────────────────────────
# Values
# ─────────────────────────────────────────────────────────────────────────


def undef(value: Any) -> Any:
    return "" if is_absent(value) else value


def default_value(value: Any, default: Any = "") -> Any:
    if is_absent(value) or value == "":
        return default
    return value


def plural(value: Any, singular: str, plural: str | None = None) -> str:
    """``{count:plural('item')}`` -> "1 item", "3 items"."""
    word = singular if value == 1 else (plural or singular + "s")
    return f"{_text(value)} {word}"


# ─────────────────────────────────────────────────────────────────────────
# Numbers and dates
# ─────────────────────────────────────────────────────────────────────────


def number(value: Any, pattern: str = "0,000.00") -> str:
    """Format a number from an example pattern.

    The digits after ``.`` in ``pattern`` give the decimal places and a
    ``,`` turns on thousands separators.

    Example:
        >>> number(1234.5, "0,000.00")
        '1,234.50'
        >>> number(1234.4, "0")
        '1234'
    """
    if is_absent(value) or value == "":
        return ""
    decimals = len(pattern.split(".", 1)[1]) if "." in pattern else 0
    grouping = "," if "," in pattern else ""
    return f"{float(value):{grouping}.{decimals}f}"


def round_(value: Any, precision: int = 0) -> float | int:
    if precision:
        return round(float(value), precision)
    return round(float(value))


def currency(value: Any, sign: str = "$", decimals: int = 2, end: bool = False) -> str:
    """Money with thousands separators; the sign goes before a minus-free amount.

    Example:
        >>> currency(-1234.5)
        '-$1,234.50'
        >>> currency(3, " EUR", 0, end=True)
        '3 EUR'
    """
    amount = float(value)
    formatted = f"{abs(amount):,.{decimals}f}"
    formatted = formatted + sign if end else sign + formatted
    return "-" + formatted if amount < 0 else formatted


def us_money(value: Any) -> str:
    return currency(value, "$", 2)


def file_size(size: Any) -> str:
    """Human readable byte count: "512 bytes", "1.5 KB", "2.3 MB", "1.1 GB"."""
    size = float(size)
    if size < 1024:
        return f"{int(size)} bytes"
    for unit, scale in (("KB", 1024), ("MB", 1024**2)):
        if size < scale * 1024:
            return f"{round(size / scale, 1):g} {unit}"
    return f"{round(size / 1024**3, 1):g} GB"


def date(value: Any, pattern: str = "%m/%d/%Y") -> str:
    """Format a date/datetime, or an ISO-8601 string, with ``strftime``."""
    if is_absent(value) or value == "":
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, _date):
        raise TypeError(f"date format expects a date, got {type(value).__name__}")
    return value.strftime(pattern)


DEFAULT_FORMATS: dict[str, Callable[..., Any]] = {
    "trim": trim,
    "ellipsis": ellipsis,
    "substr": substr,
    "lowercase": lowercase,
    "uppercase": uppercase,
    "capitalize": capitalize,
    "left_pad": left_pad,
    "nl2br": nl2br,
    "html_encode": html_encode,
    "html_decode": html_decode,
    "strip_tags": strip_tags,
    "strip_scripts": strip_scripts,
    "undef": undef,
    "default_value": default_value,
    "plural": plural,
    "number": number,
    "round": round_,
    "currency": currency,
    "us_money": us_money,
    "file_size": file_size,
    "date": date,
}


def default_formats() -> FormatLibrary:
    """A fresh FormatLibrary holding the built-in formats."""
    return FormatLibrary(DEFAULT_FORMATS)


# Shared by every template that is not given its own library.
formats = default_formats()

__all__ = ["DEFAULT_FORMATS", "FormatLibrary", "default_formats", "formats"]
