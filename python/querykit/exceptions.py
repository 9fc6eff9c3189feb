"""Exception hierarchy for querykit."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class QueryKitError(Exception):
    """Base class for all querykit errors."""


class ConfigurationError(QueryKitError):
    """A query or model was configured incorrectly.

    Raised before any statement reaches the connection: unknown statement
    kinds, unknown where nodes, malformed insert/update payloads and similar
    mistakes in calling code.
    """


class QueryError(QueryKitError):
    """A statement failed while executing on the connection.

    Wraps the driver exception (available as ``__cause__``) together with the
    SQL text and bindings that were sent.

    Attributes:
        code: Driver error code, if the driver exposes one.
        message: Driver error message.
        sql: The compiled SQL text that failed.
        bindings: The ordered bindings that were sent with it.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Any = None,
        sql: str | None = None,
        bindings: Sequence[Any] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.sql = sql
        self.bindings = list(bindings)

    def __str__(self) -> str:
        parts = [self.message]
        if self.code is not None:
            parts.append(f"[code {self.code}]")
        if self.sql:
            parts.append(f"(SQL: {self.sql})")
        return " ".join(parts)
