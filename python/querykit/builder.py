"""Fluent query builder.

Every builder method returns a new QueryBuilder; the receiver is never
modified. That makes any builder safe to reuse as the base of several
queries, and is what count(), first(), exists() and paginate() rely on.

Bindings for the where tree are appended in the same call that appends the
corresponding where node, so their order always matches the order in which
the grammar emits placeholders.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from querykit.exceptions import ConfigurationError
from querykit.executor import Executor
from querykit.grammar import Grammar, MySqlGrammar
from querykit.pagination import Page, Paginator
from querykit.query import (
    JOIN_KINDS,
    Aggregate,
    Basic,
    Between,
    In,
    Join,
    Nested,
    NotBetween,
    NotIn,
    NotNull,
    Null,
    QueryModel,
    Raw,
    StatementKind,
    WhereNode,
    normalize_boolean,
    normalize_direction,
    normalize_operator,
    placeholder_count,
)

if TYPE_CHECKING:
    from querykit.connection import Connection

_MISSING: Any = object()


class QueryBuilder:
    """Builds one SQL statement and runs it.

    Example:
        >>> q = (
        ...     QueryBuilder(grammar=MySqlGrammar())
        ...     .from_("users")
        ...     .where("role", "=", "admin")
        ...     .or_where("credits", ">", 100)
        ... )
        >>> q.to_sql()
        'SELECT * FROM `users` WHERE `role` = ? OR `credits` > ?'
        >>> q.get_bindings()
        ['admin', 100]
    """

    def __init__(self, connection: Connection | None = None, grammar: Grammar | None = None) -> None:
        self._connection = connection
        self._grammar = grammar or MySqlGrammar()
        self._query = QueryModel()
        self._bindings: tuple[Any, ...] = ()
        self._record_type: type | None = None
        self._with: tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"<QueryBuilder {self._query.kind.value} {self._query.table!r}>"

    @property
    def query_model(self) -> QueryModel:
        """The immutable statement description compiled by the grammar."""
        return self._query

    @property
    def grammar(self) -> Grammar:
        return self._grammar

    @property
    def connection(self) -> Connection | None:
        return self._connection

    @property
    def record_type(self) -> type | None:
        return self._record_type

    @property
    def eager_loads(self) -> tuple[str, ...]:
        return self._with

    def clone(self) -> QueryBuilder:
        """An independent copy (builders are immutable, so this is cheap)."""
        return copy.copy(self)

    def _derive(self, bindings: tuple[Any, ...] | None = None, **changes: Any) -> QueryBuilder:
        clone = copy.copy(self)
        if changes:
            clone._query = replace(self._query, **changes)
        if bindings is not None:
            clone._bindings = bindings
        return clone

    def _fresh(self) -> QueryBuilder:
        """An empty builder sharing this one's connection and grammar."""
        return QueryBuilder(self._connection, self._grammar)

    # ========== Statement kind / target ==========

    def select(self, *columns: str | Raw) -> QueryBuilder:
        """Select columns; no columns means all columns.

        Example:
            >>> builder.select("id", "name").from_("users")
        """
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            columns = tuple(columns[0])
        return self._derive(kind=StatementKind.SELECT, columns=tuple(columns))

    def from_(self, table: str, alias: str | None = None) -> QueryBuilder:
        """Set the target table (``from`` is a Python keyword)."""
        return self._derive(table=table, alias=alias)

    def insert(self, table: str, data: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> QueryBuilder:
        """Build an INSERT; columns and bindings follow the payload's order.

        Example:
            >>> builder.insert("users", {"name": "Alice", "email": "a@b.com"}).execute()
        """
        return self._derive(kind=StatementKind.INSERT, table=table, data=_payload(data, "INSERT"))

    def update(self, table: str, data: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> QueryBuilder:
        """Build an UPDATE; constrain it with where() before executing."""
        return self._derive(kind=StatementKind.UPDATE, table=table, data=_payload(data, "UPDATE"))

    def delete(self, table: str | None = None) -> QueryBuilder:
        """Build a DELETE from ``table`` (or the table already set)."""
        return self._derive(kind=StatementKind.DELETE, table=table or self._query.table)

    def model(self, record_type: type) -> QueryBuilder:
        """Hydrate fetched rows into ``record_type``."""
        clone = copy.copy(self)
        clone._record_type = record_type
        return clone

    def with_(self, *relations: str | Iterable[str]) -> QueryBuilder:
        """Eager-load relations of the bound model after get().

        Example:
            >>> session.query(User).with_("posts", "profile").get()
        """
        names: list[str] = list(self._with)
        for relation in relations:
            items = [relation] if isinstance(relation, str) else list(relation)
            for item in items:
                if item not in names:
                    names.append(str(item))
        clone = copy.copy(self)
        clone._with = tuple(names)
        return clone

    # ========== Joins ==========

    def join(self, table: str, first: str, operator: str, second: str, kind: str = "INNER") -> QueryBuilder:
        """Add ``<kind> JOIN table ON first operator second``."""
        kind = kind.strip().upper()
        if kind not in JOIN_KINDS:
            raise ConfigurationError(f"Invalid join type [{kind}]")
        join = Join(kind, table, first, normalize_operator(operator), second)
        return self._derive(joins=self._query.joins + (join,))

    def left_join(self, table: str, first: str, operator: str, second: str) -> QueryBuilder:
        return self.join(table, first, operator, second, "LEFT")

    def right_join(self, table: str, first: str, operator: str, second: str) -> QueryBuilder:
        return self.join(table, first, operator, second, "RIGHT")

    # ========== Where ==========

    def _push(self, node: WhereNode, values: Sequence[Any] = ()) -> QueryBuilder:
        """Append a where node together with the values it binds."""
        if placeholder_count(node) != len(values):
            raise ConfigurationError(
                f"{type(node).__name__} on {getattr(node, 'column', 'group')!r} expects "
                f"{placeholder_count(node)} value(s), got {len(values)}"
            )
        return self._derive(
            wheres=self._query.wheres + (node,),
            bindings=self._bindings + tuple(values),
        )

    def _fold(self, nested: QueryBuilder, boolean: str) -> QueryBuilder:
        """Append another builder's where tree as one nested group."""
        if not nested._query.wheres:
            return self
        return self._push(Nested(nested._query.wheres, boolean), nested._bindings)

    def where(
        self,
        column: Any,
        operator: Any = _MISSING,
        value: Any = _MISSING,
        boolean: str = "AND",
    ) -> QueryBuilder:
        """Add a where condition.

        Accepted forms:
            where("age", ">", 18)                   basic comparison
            where("id", 1)                          equality
            where("id", [1, 2, 3])                  IN
            where("status", "=", ["a", "b"])        (status = ? OR status = ?)
            where({"status": "active", "type": 1})  group of equalities
            where([("age", ">", 18), ("vip", 1)])   group of conditions
            where(lambda q: q.where(...).or_where(...))  nested group
        """
        boolean = normalize_boolean(boolean)

        if isinstance(column, Mapping):
            return self._where_equals(column.items(), boolean)

        if isinstance(column, (list, tuple)):
            return self._where_conditions(column, boolean)

        if callable(column):
            return self.where_group(column, boolean)

        if operator is _MISSING:
            raise ConfigurationError(f"where('{column}') needs an operator and/or a value")

        if isinstance(operator, (list, tuple, set, frozenset)):
            return self.where_in(column, operator, boolean)

        if isinstance(operator, Mapping):
            return self._where_equals(operator.items(), boolean)

        if value is _MISSING:
            operator, value = "=", operator

        operator = normalize_operator(operator)

        if isinstance(value, (list, tuple)):
            return self._where_any(column, operator, value, boolean)

        return self._push(Basic(column, operator, boolean), (value,))

    def or_where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        """Same as where() but joined with OR."""
        return self.where(column, operator, value, "OR")

    def _where_equals(self, items: Iterable[tuple[str, Any]], boolean: str) -> QueryBuilder:
        nested = self._fresh()
        for key, val in items:
            nested = nested.where(key, "=", val)
        return self._fold(nested, boolean)

    def _where_conditions(self, conditions: Sequence[Any], boolean: str) -> QueryBuilder:
        nested = self._fresh()
        for condition in conditions:
            if not isinstance(condition, (list, tuple)) or len(condition) not in (2, 3):
                raise ConfigurationError(
                    f"where() condition {condition!r} must be (column, operator, value) or (column, value)"
                )
            nested = nested.where(*condition)
        return self._fold(nested, boolean)

    def _where_any(self, column: str, operator: str, values: Sequence[Any], boolean: str) -> QueryBuilder:
        """``(col op ? OR col op ? ...)``: match any of the values."""
        if not values:
            raise ConfigurationError(f"where('{column}', '{operator}', [...]) needs at least one value")
        children = tuple(
            Basic(column, operator, "AND" if index == 0 else "OR") for index in range(len(values))
        )
        return self._push(Nested(children, boolean), values)

    def where_group(self, callback: Callable[[QueryBuilder], QueryBuilder], boolean: str = "AND") -> QueryBuilder:
        """Add a parenthesised group built by ``callback``.

        The callback receives an empty builder and must return the builder it
        built. Empty groups are ignored.

        Example:
            >>> q.where_group(lambda g: g.where("role", "admin").or_where("role", "mod"))
        """
        boolean = normalize_boolean(boolean)
        nested = callback(self._fresh())
        if not isinstance(nested, QueryBuilder):
            raise ConfigurationError(
                "where_group() callback must return the builder it was given "
                f"(got {type(nested).__name__})"
            )
        return self._fold(nested, boolean)

    def or_where_group(self, callback: Callable[[QueryBuilder], QueryBuilder]) -> QueryBuilder:
        return self.where_group(callback, "OR")

    def where_in(self, column: str, values: Iterable[Any], boolean: str = "AND") -> QueryBuilder:
        """``column IN (?, ...)``; an empty list matches nothing."""
        values = list(values)
        return self._push(In(column, len(values), normalize_boolean(boolean)), values)

    def or_where_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self.where_in(column, values, "OR")

    def where_not_in(self, column: str, values: Iterable[Any], boolean: str = "AND") -> QueryBuilder:
        """``column NOT IN (?, ...)``; an empty list matches everything."""
        values = list(values)
        return self._push(NotIn(column, len(values), normalize_boolean(boolean)), values)

    def or_where_not_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self.where_not_in(column, values, "OR")

    def where_between(self, column: str, start: Any, end: Any, boolean: str = "AND") -> QueryBuilder:
        """``column BETWEEN ? AND ?`` binding ``[start, end]``."""
        return self._push(Between(column, normalize_boolean(boolean)), (start, end))

    def or_where_between(self, column: str, start: Any, end: Any) -> QueryBuilder:
        return self.where_between(column, start, end, "OR")

    def where_not_between(self, column: str, start: Any, end: Any, boolean: str = "AND") -> QueryBuilder:
        return self._push(NotBetween(column, normalize_boolean(boolean)), (start, end))

    def or_where_not_between(self, column: str, start: Any, end: Any) -> QueryBuilder:
        return self.where_not_between(column, start, end, "OR")

    def where_null(self, column: str, boolean: str = "AND") -> QueryBuilder:
        return self._push(Null(column, normalize_boolean(boolean)))

    def or_where_null(self, column: str) -> QueryBuilder:
        return self.where_null(column, "OR")

    def where_not_null(self, column: str, boolean: str = "AND") -> QueryBuilder:
        return self._push(NotNull(column, normalize_boolean(boolean)))

    def or_where_not_null(self, column: str) -> QueryBuilder:
        return self.where_not_null(column, "OR")

    # ========== LIKE helpers ==========

    def _where_like(self, column: str, values: str | Sequence[str], pattern: str, boolean: str) -> QueryBuilder:
        if isinstance(values, str):
            return self.where(column, "LIKE", pattern.format(values), boolean)

        def group(q: QueryBuilder) -> QueryBuilder:
            for value in values:
                q = q.or_where(column, "LIKE", pattern.format(value))
            return q

        return self.where_group(group, boolean)

    def where_starts(self, column: str, values: str | Sequence[str], boolean: str = "AND") -> QueryBuilder:
        """``column LIKE 'value%'``; a list of values matches any of them."""
        return self._where_like(column, values, "{}%", boolean)

    def or_where_starts(self, column: str, values: str | Sequence[str]) -> QueryBuilder:
        return self.where_starts(column, values, "OR")

    def where_contains(self, column: str, values: str | Sequence[str], boolean: str = "AND") -> QueryBuilder:
        """``column LIKE '%value%'``; a list of values matches any of them."""
        return self._where_like(column, values, "%{}%", boolean)

    def or_where_contains(self, column: str, values: str | Sequence[str]) -> QueryBuilder:
        return self.where_contains(column, values, "OR")

    def where_ends(self, column: str, values: str | Sequence[str], boolean: str = "AND") -> QueryBuilder:
        """``column LIKE '%value'``; a list of values matches any of them."""
        return self._where_like(column, values, "%{}", boolean)

    def or_where_ends(self, column: str, values: str | Sequence[str]) -> QueryBuilder:
        return self.where_ends(column, values, "OR")

    # ========== Grouping / ordering / paging ==========

    def group_by(self, *columns: str) -> QueryBuilder:
        """Add GROUP BY columns."""
        return self._derive(groups=self._query.groups + tuple(columns))

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        """Add an ORDER BY column."""
        order = (column, normalize_direction(direction))
        return self._derive(orders=self._query.orders + (order,))

    def limit(self, n: int | None) -> QueryBuilder:
        """Limit the number of rows (None removes the limit)."""
        return self._derive(limit=_non_negative(n, "limit"))

    def offset(self, n: int | None) -> QueryBuilder:
        """Skip the first n rows; only rendered together with a limit."""
        return self._derive(offset=_non_negative(n, "offset"))

    # ========== Compilation ==========

    def to_sql(self) -> str:
        """Compile the statement with this builder's grammar."""
        return self._grammar.compile(self._query)

    def get_bindings(self) -> list[Any]:
        """Ordered values for the placeholders of to_sql()."""
        match self._query.kind:
            case StatementKind.INSERT:
                return self._query.data_values
            case StatementKind.UPDATE:
                return self._query.data_values + list(self._bindings)
            case _:
                return list(self._bindings)

    # ========== Execution ==========

    def _executor(self) -> Executor:
        if self._connection is None:
            raise ConfigurationError("This builder has no connection; create it from a Session")
        return Executor(self._connection)

    def _check_eager(self) -> None:
        if self._with and self._record_type is None:
            raise ConfigurationError("Eager loading with with_() requires a model; call model() first")

    def get(self) -> list[Any]:
        """Run the query and return every row (hydrated if a model is bound)."""
        self._check_eager()

        executor = self._executor()
        rows = executor.fetch_all(self.to_sql(), self.get_bindings())
        records = executor.hydrate(rows, self._record_type)

        if records and self._with:
            from querykit.eager import EagerLoader

            EagerLoader(self._connection, self._grammar).load(self._record_type, records, self._with)

        return records

    def first(self) -> Any | None:
        """Run the query with LIMIT 1 and return the row, or None."""
        records = self.limit(1).get()
        return records[0] if records else None

    def exists(self) -> bool:
        """Whether the query matches at least one row."""
        probe = self._derive(
            kind=StatementKind.SELECT,
            columns=(Raw("1"),),
            aggregate=None,
            orders=(),
            limit=1,
            offset=None,
        )
        return bool(self._executor().fetch_all(probe.to_sql(), probe.get_bindings()))

    def count(self, column: str = "*") -> int:
        """Count the rows matching the query (limit/offset are ignored)."""
        counter = self._derive(
            kind=StatementKind.SELECT,
            aggregate=Aggregate("COUNT", (column,)),
            orders=(),
            limit=None,
            offset=None,
        )
        value = self._executor().scalar(counter.to_sql(), counter.get_bindings())
        return int(value or 0)

    def paginate(self, per_page: int, current_page: int = 1) -> Page:
        """Run one page of the query.

        Example:
            >>> page = session.table("users").order_by("id").paginate(3, 2)
            >>> page.paginator.total_pages, len(page.items)
            (3, 3)
        """
        self._check_eager()
        paginator = Paginator(self.count(), per_page, current_page)
        items = self.limit(paginator.per_page).offset(paginator.offset).get()
        return Page(paginator=paginator, items=items)

    def execute(self) -> int:
        """Run an INSERT, UPDATE or DELETE and return the affected row count."""
        if self._query.kind is StatementKind.SELECT:
            raise ConfigurationError("execute() runs INSERT/UPDATE/DELETE; use get() for SELECT")
        executor = self._executor()
        statement = executor.execute(self.to_sql(), self.get_bindings())
        try:
            return statement.rowcount
        finally:
            executor.close(statement)

    def insert_get_id(self) -> Any:
        """Run an INSERT and return the driver's last inserted row id."""
        if self._query.kind is not StatementKind.INSERT:
            raise ConfigurationError("insert_get_id() requires an INSERT built with insert()")
        executor = self._executor()
        statement = executor.execute(self.to_sql(), self.get_bindings())
        try:
            return statement.lastrowid
        finally:
            executor.close(statement)


def _payload(data: Mapping[str, Any] | Iterable[tuple[str, Any]], statement: str) -> tuple[tuple[str, Any], ...]:
    """Normalize an insert/update payload into ordered (column, value) pairs."""
    items = data.items() if isinstance(data, Mapping) else data
    pairs: list[tuple[str, Any]] = []
    for item in items:
        if not isinstance(item, (list, tuple)) or len(item) != 2 or not isinstance(item[0], str):
            raise ConfigurationError(f"{statement} payload entry {item!r} is not a (column, value) pair")
        pairs.append((item[0], item[1]))
    if not pairs:
        raise ConfigurationError(f"No values specified for {statement}")
    return tuple(pairs)


def _non_negative(n: int | None, name: str) -> int | None:
    if n is None:
        return None
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {n!r}")
    return n
