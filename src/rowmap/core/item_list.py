"""Lazy list of items built from query result rows."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, overload

if TYPE_CHECKING:
    from rowmap.core.database import Database
    from rowmap.core.item import Item


class ItemList:
    """Ordered, indexable collection of items of one table.

    Rows are kept as fetched; each item is built on first access and reused
    afterwards.
    """

    def __init__(
        self,
        table: str,
        rows: Iterable[Mapping[str, Any]],
        database: Database | None = None,
    ) -> None:
        self.table = table
        self._database = database
        self._rows = list(rows)
        self._items: dict[int, Item] = {}

    def _item(self, index: int) -> Item:
        item = self._items.get(index)
        if item is None:
            from rowmap.core.item import Item

            item = Item.from_array(self.table, self._rows[index], self._database)
            self._items[index] = item
        return item

    @overload
    def __getitem__(self, index: int) -> Item: ...

    @overload
    def __getitem__(self, index: slice) -> list[Item]: ...

    def __getitem__(self, index: int | slice) -> Item | list[Item]:
        if isinstance(index, slice):
            return [self._item(i) for i in range(*index.indices(len(self._rows)))]
        if index < 0:
            index += len(self._rows)
        if not 0 <= index < len(self._rows):
            raise IndexError(f"ItemList index out of range ({index})")
        return self._item(index)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Item]:
        for index in range(len(self._rows)):
            yield self._item(index)

    def __bool__(self) -> bool:
        return bool(self._rows)

    def rows(self) -> list[dict[str, Any]]:
        """Return copies of the raw result rows."""
        return [dict(row) for row in self._rows]

    def __repr__(self) -> str:
        return f"<ItemList {self.table} ({len(self._rows)} items)>"
