"""Schema metadata caching."""

from rowmap.schema.catalog import SchemaCatalog

__all__ = ["SchemaCatalog"]
