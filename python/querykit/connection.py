"""Connection contract consumed by the executor, plus a DB-API adapter."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Statement(Protocol):
    """A prepared statement: execute once with ordered bindings, then fetch."""

    rowcount: int
    lastrowid: Any

    def execute(self, bindings: Sequence[Any]) -> None: ...

    def fetch_all(self) -> list[dict[str, Any]]: ...


@runtime_checkable
class Connection(Protocol):
    """Anything that can prepare a parameterized statement."""

    def prepare(self, sql: str) -> Statement: ...


class DBAPIStatement:
    """Statement backed by a PEP 249 cursor."""

    def __init__(self, cursor: Any, sql: str) -> None:
        self._cursor = cursor
        self.sql = sql
        self.rowcount = -1
        self.lastrowid: Any = None
        self.closed = False

    def execute(self, bindings: Sequence[Any]) -> None:
        self._cursor.execute(self.sql, tuple(bindings))
        self.rowcount = self._cursor.rowcount
        self.lastrowid = getattr(self._cursor, "lastrowid", None)

    def fetch_all(self) -> list[dict[str, Any]]:
        """Fetch remaining rows as dicts keyed by column name."""
        description = self._cursor.description
        if description is None:
            return []
        names = [column[0] for column in description]
        return [dict(zip(names, row, strict=True)) for row in self._cursor.fetchall()]

    def close(self) -> None:
        self._cursor.close()
        self.closed = True


class DBAPIConnection:
    """Adapt a PEP 249 connection (sqlite3, psycopg2, ...) to :class:`Connection`.

    Example:
        >>> import sqlite3
        >>> conn = DBAPIConnection(sqlite3.connect(":memory:"), dialect="sqlite")
        >>> stmt = conn.prepare("SELECT 1 AS one")
        >>> stmt.execute([])
        >>> stmt.fetch_all()
        [{'one': 1}]
    """

    def __init__(self, raw: Any, *, dialect: str | None = None) -> None:
        self.raw = raw
        self.dialect = dialect

    def prepare(self, sql: str) -> DBAPIStatement:
        return DBAPIStatement(self.raw.cursor(), sql)

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def close(self) -> None:
        self.raw.close()

    def __repr__(self) -> str:
        return f"<DBAPIConnection dialect={self.dialect!r}>"
