"""Belongs-to relations discovered by column naming convention.

A column named ``<name>Id`` means the item belongs to an item of type
``<name>``. Reading ``<name>`` on the item loads that related item lazily and
memoizes it. A missing related row is not an error: the caller gets an empty
item of the target type instead.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from rowmap.exceptions import LoadError

if TYPE_CHECKING:
    from rowmap.core.item import Item
    from rowmap.schema.catalog import SchemaCatalog

logger = logging.getLogger(__name__)


def relation_column(name: str) -> str:
    """Return the identity column name implied by a relation name (customer -> customerId)."""
    return f"{name}Id"


class RelationResolver:
    """Resolves relation names on items into related items."""

    def __init__(self, catalog: SchemaCatalog) -> None:
        self._catalog = catalog

    def relation_id_column(self, table: str, name: str) -> str:
        """Return the real ``<name>Id`` column on ``table``, or '' if ``name`` is no relation."""
        return self._catalog.has_column(table, relation_column(name))

    def target_table(self, name: str, aliases: Mapping[str, str] | None = None) -> str:
        """Pick the table a relation points at.

        Order: registered alias, a table named like the relation, the plural
        ``<name>s`` table. Falls back to the relation name itself.
        """
        lowered = name.lower()
        for alias_name, target in (aliases or {}).items():
            if alias_name.lower() == lowered:
                return target

        return self._catalog.relation_table(name) or name

    def resolve(self, item: Item, name: str) -> Item:
        """Return the item related to ``item`` through relation ``name``.

        Raises:
            TableNotFoundError: If no table exists for the relation's target
        """
        key = name.lower()
        cached = item.relation_cache.get(key)
        if cached is not None:
            return cached

        id_column = self.relation_id_column(item.table, name)
        target = self.target_table(name, item.relations)
        related_id = item.get(id_column)

        try:
            related = item.from_id(target, related_id, item.database)
        except LoadError as e:
            logger.debug(f"Relation {item.table}.{name} is empty: {e.message}")
            related = item.factory(target, item.database)

        item.relation_cache[key] = related
        return related
