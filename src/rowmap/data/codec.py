"""Value coercion between storage form and application form.

All type-specific conversion goes through one rule table keyed by declared
type name, so items never special-case types themselves:

    boolean   0/1 integer          <-> bool
    dollar    float                <-> "$1234.50"
    phone     "5551234567"         <-> "555-123-4567"
    set/enum  "a,b"                <-> ["a", "b"]

Types without a rule pass through on decode and are handed to the database's
generic filter on encode.
"""

from __future__ import annotations

import re
import threading
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from rowmap.core.types import ColumnKind

if TYPE_CHECKING:
    from rowmap.core.database import Database

_TYPE_WITH_EXTRA = re.compile(r"^(.*?)\((.*)\)\s*$", re.DOTALL)
_QUOTED_VALUE = re.compile(r"'((?:[^']|'')*)'")
_PHONE = re.compile(r"^(\d{3})(\d{3})(\d{4})$")
_FALSE_STRINGS = {"", "0", "false", "no", "off"}

Decoder = Callable[[Any, str], Any]
Encoder = Callable[[Any], Any]


def split_type(declared_type: str) -> tuple[str, str]:
    """Split a declared type into (lowercased base type, parenthesized extra).

    >>> split_type("enum('open','closed')")
    ('enum', "'open','closed'")
    """
    lowered = (declared_type or "").strip().lower()
    match = _TYPE_WITH_EXTRA.match(lowered)
    if match:
        return match.group(1).strip(), match.group(2)
    return lowered, ""


def allowed_values(declared_type: str) -> list[str]:
    """Decode the allowed values out of a set/enum type definition."""
    _, extra = split_type(declared_type)
    if not extra:
        return []
    quoted = _QUOTED_VALUE.findall(extra)
    if quoted:
        return [value.replace("''", "'") for value in quoted]
    return [value.strip() for value in extra.split(",")]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _decode_boolean(value: Any, extra: str) -> bool:
    return _as_bool(value)


def _encode_boolean(value: Any) -> int:
    return int(_as_bool(value))


def _decode_dollar(value: Any, extra: str) -> str:
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        amount = 0.0
    return f"${amount:.2f}"


def _encode_dollar(value: Any) -> float | None:
    if value is None:
        return None
    cleaned = re.sub(r"[$,\s]", "", str(value))
    try:
        return float(cleaned or 0)
    except ValueError:
        return 0.0


def _decode_phone(value: Any, extra: str) -> Any:
    if value is None:
        return None
    # numeric-affinity storage may hand back an int
    digits = str(value) if isinstance(value, int) else value
    if isinstance(digits, str):
        match = _PHONE.match(digits)
        if match:
            return "-".join(match.groups())
    return value


def _encode_phone(value: Any) -> str | None:
    if value is None:
        return None
    return re.sub(r"\D", "", str(value))


def _decode_list(value: Any, extra: str) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).lower() for v in value]
    return str(value).lower().split(",")


def _encode_list(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(v).lower() for v in value)
    return str(value).lower()


@dataclass(frozen=True)
class CodecRule:
    """Decode/encode pair for one declared type (either side optional)."""

    decode: Decoder | None = None
    encode: Encoder | None = None


class ValueCodec:
    """Converts column values between storage and application form.

    Items share one codec per database (see for_database), so a rule
    registered there applies to every item of that database.

    Args:
        fallback: Generic encoder ``(declared_type, value) -> stored value`` used
            for types without an encode rule (normally Database.filter_value)
    """

    _instances: weakref.WeakKeyDictionary[Database, ValueCodec] = weakref.WeakKeyDictionary()
    _instances_lock = threading.Lock()

    def __init__(self, fallback: Callable[[str, Any], Any] | None = None) -> None:
        self._fallback = fallback
        self._rules: dict[str, CodecRule] = {
            ColumnKind.BOOLEAN.value: CodecRule(_decode_boolean, _encode_boolean),
            ColumnKind.DOLLAR.value: CodecRule(_decode_dollar, _encode_dollar),
            ColumnKind.PHONE.value: CodecRule(_decode_phone, _encode_phone),
            ColumnKind.SET.value: CodecRule(_decode_list, _encode_list),
            ColumnKind.ENUM.value: CodecRule(_decode_list, _encode_list),
        }

    @classmethod
    def for_database(cls, database: Database) -> ValueCodec:
        """Return the shared codec for a database, falling back to its filter_value."""
        with cls._instances_lock:
            codec = cls._instances.get(database)
            if codec is None:
                codec = cls(database.filter_value)
                cls._instances[database] = codec
            return codec

    def register(
        self,
        type_name: str,
        decode: Decoder | None = None,
        encode: Encoder | None = None,
    ) -> None:
        """Add or replace the rule for a declared type name."""
        self._rules[type_name.lower()] = CodecRule(decode, encode)

    def rule(self, type_name: str) -> CodecRule | None:
        """Return the rule registered for a base type name, if any."""
        return self._rules.get(type_name.lower())

    def decode(self, type_name: str, extra: str, value: Any) -> Any:
        """Convert a stored value to its application form."""
        rule = self.rule(type_name)
        if rule is None or rule.decode is None:
            return value
        return rule.decode(value, extra)

    def decode_declared(self, declared_type: str, value: Any) -> Any:
        """decode() for an unsplit declared type such as ``enum('a','b')``."""
        type_name, extra = split_type(declared_type)
        return self.decode(type_name, extra, value)

    def decode_allowed(self, declared_type: str) -> list[str] | None:
        """Allowed values of a set/enum declared type, or None for other types."""
        type_name, _ = split_type(declared_type)
        if type_name not in ColumnKind.listable():
            return None
        return allowed_values(declared_type)

    def encode(self, declared_type: str, value: Any) -> Any:
        """Convert a raw input value to its storage form."""
        type_name, _ = split_type(declared_type)
        rule = self.rule(type_name)
        if rule is not None and rule.encode is not None:
            return rule.encode(value)
        if self._fallback is None:
            return value
        return self._fallback(declared_type, value)
