"""Per-invocation state shared by CLI commands.

A command works against one Database for its whole run. That database is also
installed as the process-wide default, so items built without an explicit
database (related items, search results) land on it too.
"""

from dataclasses import dataclass, field

from rowmap.cli.output import OutputFormatter
from rowmap.core.database import Database, database_url_from_env, set_default_database

DEFAULT_DATABASE_URL = "sqlite:///./rowmap.db"


def get_database_url(url: str | None) -> str:
    """Pick the database URL: the --database option, then ROWMAP_DATABASE_URL,
    then a rowmap.db file in the working directory."""
    return url or database_url_from_env() or DEFAULT_DATABASE_URL


@dataclass
class CLIContext:
    """Global options plus the lazily opened Database of one CLI run."""

    database_url: str
    echo: bool
    json_output: bool
    declared_types: dict[str, dict[str, str]] = field(default_factory=dict)
    _db: Database | None = field(default=None, init=False, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        return OutputFormatter(self.json_output)

    def get_db(self) -> Database:
        """Open the database on first use and make it the default database."""
        if self._db is None:
            self._db = Database(
                self.database_url, echo=self.echo, declared_types=self.declared_types
            )
            set_default_database(self._db)
        return self._db

    def close(self) -> None:
        """Dispose of the database and clear the default it installed."""
        if self._db is None:
            return
        set_default_database(None)
        self._db.close()
        self._db = None
