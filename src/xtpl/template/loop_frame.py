"""Loop frames for ``<tpl for="...">`` directives.

A compiled renderer keeps a stack of LoopFrame records, one per active
``for`` directive plus a root frame describing the top-level data object.
Each frame knows the resolved iteration source, the element currently being
visited, and the bindings (values, parent, xindex, xcount) it must restore
when the loop exits, so code after a loop always sees its pre-loop scope.

Generated code for a loop looks like::

    _frames.append(_LoopFrame(<source>, _frames[-1], values, parent, xindex, xcount))
    parent = _frames[-1].parent
    xcount = _frames[-1].count
    for xindex, values in _frames[-1]:
        ...
    parent, values, xcount, xindex = _frames.pop().restore()

"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from xtpl.template.helpers import UNDEFINED, lookup


def is_blank(source: Any) -> bool:
    """None, UNDEFINED, or a falsy scalar (``0``, ``''``, ``False``)."""
    if source is None or source is UNDEFINED:
        return True
    return isinstance(source, (str, bytes, int, float)) and not source


def normalize_source(source: Any) -> tuple[Sequence[Any], bool]:
    """Turn a resolved ``for`` source into ``(items, is_sequence)``.

    - blank values iterate zero times
    - mixed collections iterate their ``items``
    - stores iterate the ``items`` of their current ``data`` page
    - native sequences (not strings) iterate as-is
    - other non-mapping iterables (sets, generators, views) are materialized
    - anything else iterates once, as a one-element list

    Only native sequences and materialized iterables report
    ``is_sequence=True``; that drives how nested loops compute ``parent``.
    """
    if is_blank(source):
        return (), False
    if getattr(source, "is_mixed_collection", False):
        return source.items, False
    if getattr(source, "is_store", False):
        return source.data.items, False
    if isinstance(source, (str, bytes, bytearray, Mapping)):
        return (source,), False
    if isinstance(source, Sequence):
        return source, True
    if isinstance(source, Iterable):
        return list(source), True
    return (source,), False


class LoopFrame:
    """State of one active ``for`` directive.

    Attributes:
        source: Resolved iteration source
        items: Normalized elements being iterated
        is_sequence: Whether ``source`` was a native sequence
        count: Number of elements (bound to ``xcount`` in the body)
        index: 0-based position of the current element
        current: Current element, before ``prop`` projection
        parent: Binding of ``parent`` inside the loop body
    """

    __slots__ = (
        "_prop",
        "_saved",
        "count",
        "current",
        "index",
        "is_root",
        "is_sequence",
        "items",
        "parent",
        "source",
    )

    def __init__(
        self,
        source: Any,
        ancestor: LoopFrame,
        values: Any,
        parent: Any,
        xindex: int,
        xcount: int,
        *,
        prop: str | None = None,
        dot: bool = False,
    ) -> None:
        self.source = source
        self.items, self.is_sequence = normalize_source(source)
        self.count = len(self.items)
        self.index = 0
        self.current: Any = UNDEFINED
        self.is_root = False
        self._prop = prop or None
        self._saved = (parent, values, xcount, xindex)

        # for="." inside a loop keeps the enclosing parent; otherwise
        # parent is the enclosing element (sequence ancestor) or source.
        if dot and not ancestor.is_root:
            self.parent = parent
        elif ancestor.is_sequence:
            self.parent = ancestor.current
        else:
            self.parent = ancestor.source

    @classmethod
    def root(cls, values: Any, parent: Any, xindex: int, xcount: int) -> LoopFrame:
        """Base frame for the top-level data object. Never a sequence."""
        frame = cls.__new__(cls)
        frame.source = values
        frame.items = ()
        frame.is_sequence = False
        frame.count = xcount
        frame.index = xindex - 1
        frame.current = values
        frame.is_root = True
        frame.parent = parent
        frame._prop = None
        frame._saved = (parent, values, xcount, xindex)
        return frame

    def __iter__(self) -> Iterator[tuple[int, Any]]:
        """Yield ``(xindex, values)`` per element; xindex is 1-based."""
        prop = self._prop
        for i, item in enumerate(self.items):
            self.index = i
            self.current = item
            yield i + 1, lookup(item, prop) if prop else item

    def restore(self) -> tuple[Any, Any, int, int]:
        """Pre-loop ``(parent, values, xcount, xindex)``."""
        return self._saved

    def __repr__(self) -> str:
        if self.is_root:
            return "<LoopFrame root>"
        return f"<LoopFrame {self.index + 1}/{self.count}>"
