"""Data sources that ``<tpl for>`` recognises besides plain sequences.

``<tpl for="rows">`` iterates a native sequence as-is. Two richer shapes
are also understood, identified by marker attributes rather than by type
so any object can opt in:

    is_mixed_collection = True   -> iterate ``obj.items``
    is_store = True              -> iterate ``obj.data.items`` (current page)

ItemCollection and PagedStore are small concrete implementations.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Hashable, Iterable, Iterator
from typing import Any


class ItemCollection:
    """Ordered items with optional lookup by key.

    Attributes:
        items: The items, in insertion order

    Example:
        >>> people = ItemCollection([{"id": 1, "name": "Al"}], key=lambda p: p["id"])
        >>> people.get(1)["name"]
        'Al'
    """

    is_mixed_collection = True

    def __init__(
        self,
        items: Iterable[Any] = (),
        key: Callable[[Any], Hashable] | None = None,
    ):
        self.items: list[Any] = []
        self._key = key
        self._index: dict[Hashable, Any] = {}
        self.extend(items)

    def add(self, item: Any) -> Any:
        self.items.append(item)
        if self._key is not None:
            self._index[self._key(item)] = item
        return item

    def extend(self, items: Iterable[Any]) -> None:
        for item in items:
            self.add(item)

    def remove(self, item: Any) -> None:
        """Remove ``item``.

        Raises:
            ValueError: If ``item`` is not in the collection.
        """
        self.items.remove(item)
        if self._key is not None:
            self._index.pop(self._key(item), None)

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Item registered under ``key`` (requires a key function)."""
        if self._key is None:
            raise TypeError("ItemCollection was created without a key function")
        return self._index.get(key, default)

    def clear(self) -> None:
        self.items = []
        self._index = {}

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)

    def __repr__(self) -> str:
        return f"<ItemCollection {len(self.items)} items>"


class PagedStore:
    """Rows split into pages; ``data`` holds the currently loaded page.

    Example:
        >>> store = PagedStore(range(1, 8), page_size=3)
        >>> store.data.items
        [1, 2, 3]
        >>> store.load_page(3).data.items
        [7]
    """

    is_store = True

    def __init__(self, rows: Iterable[Any] = (), page_size: int = 25):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.page_size = page_size
        self._rows = list(rows)
        self.page = 1
        self.data = ItemCollection(self._rows[:page_size])

    @property
    def total_count(self) -> int:
        return len(self._rows)

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self._rows) / self.page_size))

    def load_page(self, page: int) -> PagedStore:
        """Make ``page`` (1-based) the current page.

        Raises:
            ValueError: If ``page`` is outside 1..page_count.
        """
        if not 1 <= page <= self.page_count:
            raise ValueError(f"Page {page} out of range 1..{self.page_count}")
        start = (page - 1) * self.page_size
        self.page = page
        self.data = ItemCollection(self._rows[start : start + self.page_size])
        return self

    def load(self, rows: Iterable[Any]) -> PagedStore:
        """Replace all rows and go back to the first page."""
        self._rows = list(rows)
        return self.load_page(1)

    def __repr__(self) -> str:
        return f"<PagedStore page {self.page}/{self.page_count}>"
