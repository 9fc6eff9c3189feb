"""Session: the entry point tying a connection to a grammar."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import MutableSequence, Sequence
from typing import Any

from querykit.builder import QueryBuilder
from querykit.config import DatabaseConfig
from querykit.connection import Connection, DBAPIConnection
from querykit.eager import EagerLoader
from querykit.exceptions import ConfigurationError
from querykit.executor import Executor
from querykit.grammar import Grammar, grammar_for

logger = logging.getLogger(__name__)


class Session:
    """A connection plus the grammar used to compile statements for it.

    The session does not open transactions itself. ``commit()`` and
    ``rollback()`` are forwarded to the connection when it supports them, and
    using the session as a context manager commits on success and rolls back
    on error.

    Example:
        >>> with connect("sqlite::memory:") as session:
        ...     admins = session.table("users").where("role", "admin").get()
        ...     users = session.query(User).with_("posts").get()
    """

    def __init__(self, connection: Connection, grammar: Grammar | None = None, *, owns_connection: bool = False) -> None:
        self.connection = connection
        self.grammar = grammar or grammar_for(getattr(connection, "dialect", None))
        self._owns_connection = owns_connection
        self._closed = False

    def __repr__(self) -> str:
        return f"<Session grammar={self.grammar.name!r} connection={self.connection!r}>"

    def __enter__(self) -> Session:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        if self._owns_connection:
            self.close()

    # ========== Builders ==========

    def builder(self) -> QueryBuilder:
        """An empty builder on this session's connection and grammar."""
        return QueryBuilder(self.connection, self.grammar)

    def table(self, name: str, alias: str | None = None) -> QueryBuilder:
        """A ``SELECT *`` builder over ``name``."""
        return self.builder().from_(name, alias)

    def query(self, model: type) -> QueryBuilder:
        """A builder over ``model``'s table that hydrates rows into ``model``."""
        return self.table(model.__tablename__).model(model)

    # ========== Execution ==========

    def raw(self, sql: str, bindings: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a hand-written statement and return its rows (if any)."""
        return Executor(self.connection).fetch_all(sql, bindings)

    def load(self, owner_type: type, parents: MutableSequence[Any], names: Sequence[str] | str) -> None:
        """Eager-load relations onto already fetched records."""
        if isinstance(names, str):
            names = [names]
        EagerLoader(self.connection, self.grammar).load(owner_type, parents, names)

    # ========== Transactions ==========

    def commit(self) -> None:
        commit = getattr(self.connection, "commit", None)
        if commit is not None and not self._closed:
            commit()

    def rollback(self) -> None:
        rollback = getattr(self.connection, "rollback", None)
        if rollback is not None and not self._closed:
            rollback()

    def close(self) -> None:
        """Close the underlying connection (idempotent)."""
        if self._closed:
            return
        close = getattr(self.connection, "close", None)
        if close is not None:
            close()
        self._closed = True


def create_session(connection: Connection, **kwargs: Any) -> Session:
    """Create a session for an existing connection."""
    return Session(connection, **kwargs)


def connect(url_or_config: str | DatabaseConfig, **connect_args: Any) -> Session:
    """Open a DB-API connection and return a Session that owns it.

    Supported URLs:
        sqlite::memory:            in-memory SQLite
        sqlite:///path/to/app.db   SQLite file
        postgresql://user@host/db  PostgreSQL (requires ``querykit[postgres]``)

    Example:
        >>> session = connect("sqlite::memory:")
        >>> session.grammar.name
        'sqlite'
    """
    if isinstance(url_or_config, DatabaseConfig):
        config = url_or_config
    else:
        config = DatabaseConfig.from_url(url_or_config)

    url = config.get_url()
    args = {**config.connect_args, **connect_args}
    scheme = url.split(":", 1)[0].split("+", 1)[0].lower()

    if scheme == "sqlite":
        raw = sqlite3.connect(_sqlite_path(url), **args)
        dialect = "sqlite"
    elif scheme in ("postgres", "postgresql"):
        try:
            import psycopg2
        except ImportError:
            raise ConfigurationError(
                "psycopg2 is required for PostgreSQL. Install with: pip install querykit[postgres]"
            ) from None
        raw = psycopg2.connect(url, **args)
        dialect = "postgresql"
    else:
        raise ConfigurationError(
            f"Unsupported database URL scheme [{scheme}]; wrap a DB-API connection in DBAPIConnection instead"
        )

    logger.debug("Opened %s connection", dialect)
    connection = DBAPIConnection(raw, dialect=dialect)
    return Session(connection, grammar_for(config.dialect or dialect), owns_connection=True)


def _sqlite_path(url: str) -> str:
    """``sqlite::memory:`` / ``sqlite:///app.db`` -> path for sqlite3.connect()."""
    rest = url.split(":", 1)[1]
    if rest in (":memory:", "//:memory:", "///:memory:", "", "//"):
        return ":memory:"
    if rest.startswith("///"):
        return rest[3:]
    if rest.startswith("//"):
        return rest[2:]
    return rest
