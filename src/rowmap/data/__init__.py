"""Value coercion and statement caching."""

from rowmap.data.codec import CodecRule, ValueCodec, allowed_values, split_type
from rowmap.data.statements import StatementCache

__all__ = ["CodecRule", "ValueCodec", "StatementCache", "allowed_values", "split_type"]
