"""Immutable description of a pending SQL statement."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from querykit.exceptions import ConfigurationError

BOOLEANS = frozenset({"AND", "OR"})

OPERATORS = frozenset({
    "=", "!=", "<>", "<", ">", "<=", ">=",
    "LIKE", "NOT LIKE", "ILIKE", "NOT ILIKE",
})

DIRECTIONS = frozenset({"ASC", "DESC"})

JOIN_KINDS = frozenset({"INNER", "LEFT", "RIGHT", "CROSS"})


class StatementKind(str, Enum):
    """The kind of statement a QueryModel compiles to."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Raw:
    """A SQL fragment that is emitted verbatim, never identifier-wrapped."""

    sql: str

    def __str__(self) -> str:
        return self.sql


# ========== Where nodes ==========

@dataclass(frozen=True)
class Basic:
    """``column operator ?``"""

    column: str
    operator: str
    boolean: str = "AND"


@dataclass(frozen=True)
class In:
    """``column IN (?, ...)`` with one placeholder per value."""

    column: str
    count: int
    boolean: str = "AND"


@dataclass(frozen=True)
class NotIn:
    """``column NOT IN (?, ...)``"""

    column: str
    count: int
    boolean: str = "AND"


@dataclass(frozen=True)
class Between:
    """``column BETWEEN ? AND ?``"""

    column: str
    boolean: str = "AND"


@dataclass(frozen=True)
class NotBetween:
    """``column NOT BETWEEN ? AND ?``"""

    column: str
    boolean: str = "AND"


@dataclass(frozen=True)
class Null:
    """``column IS NULL``"""

    column: str
    boolean: str = "AND"


@dataclass(frozen=True)
class NotNull:
    """``column IS NOT NULL``"""

    column: str
    boolean: str = "AND"


@dataclass(frozen=True)
class Nested:
    """A parenthesised group of where nodes."""

    children: tuple[WhereNode, ...]
    boolean: str = "AND"


type WhereNode = Basic | In | NotIn | Between | NotBetween | Null | NotNull | Nested


def placeholder_count(node: WhereNode) -> int:
    """Number of bound values a where node (and its children) consumes."""
    match node:
        case Basic():
            return 1
        case In(count=count) | NotIn(count=count):
            return count
        case Between() | NotBetween():
            return 2
        case Null() | NotNull():
            return 0
        case Nested(children=children):
            return sum(placeholder_count(child) for child in children)
    raise ConfigurationError(f"Unknown where type [{type(node).__name__}]")


# ========== Statement parts ==========

@dataclass(frozen=True)
class Join:
    """``<kind> JOIN table ON first operator second``"""

    kind: str
    table: str
    first: str
    operator: str
    second: str


@dataclass(frozen=True)
class Aggregate:
    """A scalar projection such as ``COUNT(*)``."""

    function: str
    columns: tuple[str, ...] = ("*",)


@dataclass(frozen=True)
class QueryModel:
    """Everything needed to compile one statement.

    Instances are never modified; use ``dataclasses.replace`` (or the
    QueryBuilder, which does so) to derive a changed copy.
    """

    kind: StatementKind = StatementKind.SELECT
    table: str | None = None
    alias: str | None = None
    columns: tuple[str | Raw, ...] = ()
    joins: tuple[Join, ...] = ()
    wheres: tuple[WhereNode, ...] = ()
    groups: tuple[str, ...] = ()
    orders: tuple[tuple[str, str], ...] = ()
    limit: int | None = None
    offset: int | None = None
    aggregate: Aggregate | None = None
    data: tuple[tuple[str, Any], ...] = field(default=())

    @property
    def data_columns(self) -> list[str]:
        """Payload columns, in binding order."""
        return [column for column, _ in self.data]

    @property
    def data_values(self) -> list[Any]:
        """Payload values, in the same order as data_columns."""
        return [value for _, value in self.data]


def normalize_boolean(boolean: str) -> str:
    """Upper-case and validate an AND/OR connector."""
    normalized = boolean.strip().upper()
    if normalized not in BOOLEANS:
        raise ConfigurationError(f"Invalid boolean connector [{boolean}]; expected AND or OR")
    return normalized


def normalize_operator(operator: str) -> str:
    """Upper-case and validate a comparison operator."""
    if not isinstance(operator, str):
        raise ConfigurationError(f"Invalid operator [{operator!r}]")
    normalized = " ".join(operator.split()).upper()
    if normalized not in OPERATORS:
        raise ConfigurationError(f"Invalid operator [{operator}]")
    return normalized


def normalize_direction(direction: str) -> str:
    """Upper-case and validate an ORDER BY direction."""
    normalized = direction.strip().upper()
    if normalized not in DIRECTIONS:
        raise ConfigurationError(f"Invalid order direction [{direction}]; expected ASC or DESC")
    return normalized
