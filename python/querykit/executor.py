"""Run compiled SQL against a connection."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from querykit.connection import Connection, Statement
from querykit.exceptions import QueryError

logger = logging.getLogger(__name__)


class Executor:
    """Drive a connection with compiled SQL and ordered bindings.

    Every call is exactly one blocking round trip. Driver failures are
    re-raised as :class:`QueryError` carrying the SQL that failed; nothing is
    retried.
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> Statement:
        """Prepare and execute a statement, returning it for fetching."""
        logger.debug("Executing %s with %d binding(s)", sql, len(bindings))
        statement = None
        try:
            statement = self.connection.prepare(sql)
            statement.execute(list(bindings))
        except Exception as exc:
            if statement is not None:
                self.close(statement)
            raise QueryError(str(exc), code=_error_code(exc), sql=sql, bindings=bindings) from exc
        return statement

    def fetch_all(self, sql: str, bindings: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute a query and return every row as a dict."""
        statement = self.execute(sql, bindings)
        try:
            return list(statement.fetch_all())
        except Exception as exc:
            raise QueryError(str(exc), code=_error_code(exc), sql=sql, bindings=bindings) from exc
        finally:
            self.close(statement)

    def scalar(self, sql: str, bindings: Sequence[Any] = (), column: str = "aggregate") -> Any:
        """Execute a query and return one column of its first row (or None)."""
        rows = self.fetch_all(sql, bindings)
        return rows[0].get(column) if rows else None

    @staticmethod
    def close(statement: Statement) -> None:
        """Release the statement's cursor, if the driver has one."""
        close = getattr(statement, "close", None)
        if close is not None:
            close()

    @staticmethod
    def hydrate[R](rows: list[dict[str, Any]], record_type: type[R] | None) -> list[Any]:
        """Build record_type instances from rows; rows pass through without one."""
        if record_type is None:
            return rows
        from_row = getattr(record_type, "from_row", None)
        if from_row is not None:
            return [from_row(row) for row in rows]
        return [record_type(**row) for row in rows]


def _error_code(exc: BaseException) -> Any:
    """Best-effort driver error code (sqlite3, psycopg2, MySQL drivers)."""
    for attr in ("sqlite_errorcode", "pgcode", "errno"):
        code = getattr(exc, attr, None)
        if code is not None:
            return code
    if exc.args and isinstance(exc.args[0], int):
        return exc.args[0]
    return None
