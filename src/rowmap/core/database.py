"""The Database collaborator used by items.

Everything that actually talks to the relational store lives here: schema
reflection, prepared statements, inserts/updates/deletes by identity and the
construction of search statements. Items never build SQL themselves.

Reflection is NOT cached at this level; see rowmap.schema.catalog for that.
"""

from __future__ import annotations

import logging
import os
import re
import threading
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any

from sqlalchemy import column, delete, insert, inspect, select, table, text, update
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from rowmap.core.connection import DatabaseConnection
from rowmap.core.types import ColumnInfo
from rowmap.exceptions import ColumnNotFoundError, ConnectionError, QueryError, TableNotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.sql import Select, TableClause

logger = logging.getLogger(__name__)

DATABASE_URL_ENV = "ROWMAP_DATABASE_URL"

_INTEGER_TYPES = {"int", "integer", "tinyint", "smallint", "mediumint", "bigint", "serial", "bigserial"}
_FLOAT_TYPES = {"float", "double", "double precision", "real", "decimal", "numeric"}
_DATE_TYPES = {"date", "datetime", "timestamp", "time"}
_TEXT_TYPES = {
    "char",
    "varchar",
    "character",
    "character varying",
    "text",
    "tinytext",
    "mediumtext",
    "longtext",
    "string",
    "enum",
}

_BASE_TYPE = re.compile(r"^\s*([a-z][a-z ]*?)\s*(?:\(|$)")
_QUOTED_DEFAULT = re.compile(r"^'((?:[^']|'')*)'(?:::.+)?$")


def _base_type(declared_type: str) -> str:
    """Return the lowercased base name of a declared type (varchar(20) -> varchar)."""
    match = _BASE_TYPE.match(declared_type.lower())
    return match.group(1) if match else declared_type.lower().strip()


def _parse_default(raw: Any) -> Any:
    """Turn a reflected SQL default expression into a Python value.

    Literals are converted; expressions (CURRENT_TIMESTAMP, nextval(...)) and
    NULL become None so they are never written back as text.
    """
    if raw is None or not isinstance(raw, str):
        return raw

    value = raw.strip()
    while value.startswith("(") and value.endswith(")"):
        value = value[1:-1].strip()

    quoted = _QUOTED_DEFAULT.match(value)
    if quoted:
        return quoted.group(1).replace("''", "'")

    lowered = value.lower()
    if lowered == "null":
        return None
    if lowered in ("true", "false"):
        return lowered == "true"

    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return None


class PreparedStatement:
    """A reusable parameterized statement.

    Parameters are bound by name, then execute() runs the statement and
    buffers its rows for fetch(). Failures are reported through execute()'s
    return value and error_info(), mirroring a DB-API style statement handle.

    A statement may be shared by several callers (see StatementCache); hold
    ``lock`` across bind/execute/fetch when doing so.
    """

    NO_ERROR = ("00000", None, None)

    def __init__(self, engine: Engine, sql: str) -> None:
        self._engine = engine
        self.sql = sql
        self._clause = text(sql)
        self._params: dict[str, Any] = {}
        self._rows: list[dict[str, Any]] = []
        self._cursor = 0
        self._error: tuple[str, Any, str | None] = self.NO_ERROR
        self.lock = threading.RLock()

    def bind_param(self, name: str, value: Any) -> None:
        """Bind a value to a named parameter (leading ':' optional)."""
        self._params[name.lstrip(":")] = value

    def execute(self) -> bool:
        """Run the statement with the bound parameters.

        Returns:
            True on success, False on failure (see error_info)
        """
        self._rows = []
        self._cursor = 0
        try:
            with self._engine.begin() as conn:
                result = conn.execute(self._clause, dict(self._params))
                if result.returns_rows:
                    self._rows = [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            orig = getattr(e, "orig", None)
            self._error = (
                getattr(orig, "sqlstate", None) or "HY000",
                getattr(orig, "sqlite_errorcode", None),
                str(orig or e),
            )
            logger.warning(f"Statement failed ({self.sql}): {self._error[2]}")
            return False

        self._error = self.NO_ERROR
        return True

    def fetch(self) -> dict[str, Any] | None:
        """Return the next buffered row, or None when exhausted."""
        if self._cursor >= len(self._rows):
            return None
        row = self._rows[self._cursor]
        self._cursor += 1
        return row

    def error_info(self) -> tuple[str, Any, str | None]:
        """Return (sqlstate, driver code, message) for the last execution."""
        return self._error


class Database:
    """Relational store access for items.

    Wraps a DatabaseConnection and exposes the small contract items depend on.
    Expected persistence failures (constraint violations, no matching row) are
    logged and returned as falsy values; schema problems raise.
    """

    def __init__(
        self,
        url: str | DatabaseConnection,
        echo: bool = False,
        declared_types: Mapping[str, Mapping[str, str]] | None = None,
    ) -> None:
        """Initialize the database.

        Args:
            url: Database URL or an existing DatabaseConnection
            echo: Whether to echo SQL statements
            declared_types: Optional {table: {column: declared type}} overlay for
                declared types the store cannot express (e.g. enum on SQLite)
        """
        if isinstance(url, DatabaseConnection):
            self._connection = url
        else:
            self._connection = DatabaseConnection(url, echo=echo)

        self._declared_types = {
            t.lower(): {c.lower(): decl for c, decl in cols.items()}
            for t, cols in (declared_types or {}).items()
        }

    @property
    def connection(self) -> DatabaseConnection:
        """Get the underlying connection."""
        return self._connection

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        return self._connection.engine

    def _quote(self, identifier: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(identifier)

    def _clause(self, table_name: str, columns: Iterable[str]) -> TableClause:
        return table(table_name, *[column(name) for name in columns])

    # === Schema reflection ===

    def table_names(self) -> list[str]:
        """List the tables in the database."""
        return inspect(self.engine).get_table_names()

    def find_table(self, table_name: str) -> str:
        """Return the real name of a table (case-insensitive), or ''."""
        lowered = table_name.lower()
        for name in self.table_names():
            if name.lower() == lowered:
                return name
        return ""

    def has_table(self, table_name: str) -> bool:
        """Check whether a table exists."""
        return bool(self.find_table(table_name))

    def get_columns(self, table_name: str) -> dict[str, ColumnInfo]:
        """Reflect the columns of a table, in table order.

        Raises:
            TableNotFoundError: If the table does not exist
        """
        if self._connection.is_sqlite:
            columns = self._sqlite_columns(table_name)
        else:
            columns = self._reflected_columns(table_name)

        overlay = self._declared_types.get(table_name.lower(), {})
        for name, info in columns.items():
            if name.lower() in overlay:
                info.type = overlay[name.lower()]
        return columns

    def _sqlite_columns(self, table_name: str) -> dict[str, ColumnInfo]:
        # PRAGMA keeps declared type names verbatim (dollar, phone, ...)
        with self.engine.connect() as conn:
            rows = conn.execute(text(f"PRAGMA table_info({self._quote(table_name)})")).fetchall()

        if not rows:
            raise TableNotFoundError(table_name)

        return {
            row[1]: ColumnInfo(
                name=row[1],
                type=row[2] or "",
                default=_parse_default(row[4]),
                nullable=not row[3],
                primary_key=bool(row[5]),
            )
            for row in rows
        }

    def _reflected_columns(self, table_name: str) -> dict[str, ColumnInfo]:
        inspector = inspect(self.engine)
        try:
            reflected = inspector.get_columns(table_name)
            pk = set(inspector.get_pk_constraint(table_name).get("constrained_columns") or [])
        except NoSuchTableError as e:
            raise TableNotFoundError(table_name) from e

        columns: dict[str, ColumnInfo] = {}
        for col in reflected:
            try:
                type_name = col["type"].compile(dialect=self.engine.dialect)
            except Exception:
                type_name = str(col["type"])
            columns[col["name"]] = ColumnInfo(
                name=col["name"],
                type=type_name,
                default=_parse_default(col.get("default")),
                nullable=col.get("nullable", True),
                primary_key=col["name"] in pk,
            )
        return columns

    def get_column_data(self, table_name: str, column_name: str) -> ColumnInfo:
        """Return the descriptor for one column.

        Raises:
            ColumnNotFoundError: If the column does not exist
        """
        columns = self.get_columns(table_name)
        real_name = self._match_column(columns, column_name)
        if not real_name:
            raise ColumnNotFoundError(column_name, table_name, list(columns))
        return columns[real_name]

    def has_column(self, table_name: str, column_name: str) -> str:
        """Return the real name of a column (case-insensitive), or ''."""
        return self._match_column(self.get_columns(table_name), column_name)

    @staticmethod
    def _match_column(columns: Mapping[str, Any], column_name: str) -> str:
        lowered = column_name.lower()
        for name in columns:
            if name.lower() == lowered:
                return name
        return ""

    def _id_column(self, table_name: str, id_column: str | None) -> str:
        if id_column:
            return id_column
        real_name = self.has_column(table_name, "id")
        if not real_name:
            raise ColumnNotFoundError("id", table_name, list(self.get_columns(table_name)))
        return real_name

    # === Statements ===

    def prepare(self, sql: str) -> PreparedStatement:
        """Prepare a reusable statement with named parameters (:name)."""
        return PreparedStatement(self.engine, sql)

    def load_sql(self, table_name: str, id_column: str) -> str:
        """SQL selecting one full row by identity, bound to :item_id."""
        return (
            f"SELECT * FROM {self._quote(table_name)} "
            f"WHERE {self._quote(id_column)} = :item_id LIMIT 1"
        )

    def query(self, statement: Any, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute a query and return its rows as dicts.

        Args:
            statement: SQL text or a SQLAlchemy executable (e.g. from make_search_query)
            params: Bound parameters for SQL text

        Raises:
            QueryError: If execution fails
        """
        if isinstance(statement, str):
            statement = text(statement)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(statement, dict(params or {}))
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise QueryError(f"Query failed: {e}") from e

    # === Persistence ===

    def insert(self, table_name: str, row: Mapping[str, Any], id_column: str | None = None) -> Any:
        """Insert a row.

        Returns:
            The new identity value, or None on failure
        """
        if self._connection.is_postgresql:
            id_name = self._id_column(table_name, id_column)
            clause = self._clause(table_name, set(row) | {id_name})
            stmt = insert(clause).values(dict(row)).returning(clause.c[id_name])
        else:
            stmt = insert(self._clause(table_name, row)).values(dict(row))

        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
                if self._connection.is_postgresql:
                    new_id = result.scalar()
                else:
                    new_id = result.lastrowid
        except SQLAlchemyError as e:
            logger.warning(f"Insert into {table_name} failed: {e}")
            return None

        return new_id or None

    def update(
        self,
        table_name: str,
        item_id: Any,
        row: Mapping[str, Any],
        id_column: str | None = None,
    ) -> bool:
        """Update the row with the given identity.

        Returns:
            True if a row matched, False otherwise
        """
        id_name = self._id_column(table_name, id_column)
        clause = self._clause(table_name, set(row) | {id_name})
        stmt = update(clause).where(clause.c[id_name] == item_id).values(dict(row))

        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as e:
            logger.warning(f"Update of {table_name} {id_name}={item_id} failed: {e}")
            return False

        return result.rowcount > 0

    def delete(self, table_name: str, item_id: Any, id_column: str | None = None) -> bool:
        """Delete the row with the given identity.

        Returns:
            True if a row was deleted, False otherwise
        """
        id_name = self._id_column(table_name, id_column)
        clause = self._clause(table_name, [id_name])
        stmt = delete(clause).where(clause.c[id_name] == item_id)

        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as e:
            logger.warning(f"Delete from {table_name} {id_name}={item_id} failed: {e}")
            return False

        return result.rowcount > 0

    # === Search ===

    def make_search_query(
        self,
        table_name: str,
        criteria: Mapping[str, Any] | None = None,
        order: str | Iterable[str] | None = None,
        limit: int | None = None,
    ) -> Select:
        """Build a parameterized search statement over a table.

        Criteria values: scalar -> equality, None -> IS NULL,
        list/tuple/set -> IN, string containing '%' -> LIKE.
        Order: "column", "column DESC", or a list of those.

        Raises:
            ColumnNotFoundError: If a criteria or order column does not exist
        """
        columns = self.get_columns(table_name)
        clause = self._clause(table_name, columns)
        stmt = select(clause)

        def resolve(name: str) -> str:
            real_name = self._match_column(columns, name)
            if not real_name:
                raise ColumnNotFoundError(name, table_name, list(columns))
            return real_name

        for name, value in (criteria or {}).items():
            col = clause.c[resolve(name)]
            if value is None:
                stmt = stmt.where(col.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(col.in_(list(value)))
            elif isinstance(value, str) and "%" in value:
                stmt = stmt.where(col.like(value))
            else:
                stmt = stmt.where(col == value)

        if isinstance(order, str):
            order = [order]
        for term in order or []:
            parts = term.split()
            if not parts:
                continue
            col = clause.c[resolve(parts[0])]
            descending = len(parts) > 1 and parts[1].lower() == "desc"
            stmt = stmt.order_by(col.desc() if descending else col.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        return stmt

    # === Value filtering ===

    @staticmethod
    def filter_value(declared_type: str, value: Any) -> Any:
        """Convert a raw value to its storage form for a declared type.

        This is the generic fallback for types without a dedicated codec rule.
        """
        if value is None:
            return None

        base = _base_type(declared_type or "")

        if base in _INTEGER_TYPES:
            if isinstance(value, str):
                value = value.strip()
                if value == "":
                    return None
                try:
                    return int(value)
                except ValueError:
                    try:
                        return int(float(value))
                    except ValueError:
                        return value
            if isinstance(value, (bool, int, float)):
                return int(value)
            return value

        if base in _FLOAT_TYPES:
            if isinstance(value, str):
                value = value.strip()
                if value == "":
                    return None
            try:
                return float(value)
            except (TypeError, ValueError):
                return value

        if base in _DATE_TYPES:
            if isinstance(value, datetime):
                return value.isoformat(sep=" ")
            if isinstance(value, (date, time)):
                return value.isoformat()
            return value

        if base == "set":
            if isinstance(value, (list, tuple, set, frozenset)):
                return ",".join(str(v).lower() for v in value)
            return str(value).lower()

        if base in _TEXT_TYPES and not isinstance(value, str):
            return str(value)

        return value

    def close(self) -> None:
        """Dispose of the underlying engine."""
        self._connection.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()


_default_database: Database | None = None
_default_lock = threading.Lock()


def database_url_from_env() -> str | None:
    """Return the URL configured in ROWMAP_DATABASE_URL, if any."""
    return os.getenv(DATABASE_URL_ENV) or None


def set_default_database(database: Database | None) -> None:
    """Set (or clear, with None) the process-wide default database."""
    global _default_database
    with _default_lock:
        _default_database = database


def get_default_database() -> Database:
    """Return the process-wide default database.

    Falls back to a Database built from the ROWMAP_DATABASE_URL environment
    variable when none was set explicitly.

    Raises:
        ConnectionError: If no default is configured
    """
    global _default_database
    with _default_lock:
        if _default_database is None:
            url = database_url_from_env()
            if not url:
                raise ConnectionError(
                    "No default database configured. "
                    f"Call set_default_database() or set {DATABASE_URL_ENV}."
                )
            logger.debug(f"Creating default database from {DATABASE_URL_ENV}")
            _default_database = Database(url)
        return _default_database
