"""SQL grammars: compile a QueryModel into dialect-specific SQL text.

Grammars never see bound values. Every value in a statement is rendered as a
placeholder, and placeholders are emitted in exactly the order the
QueryBuilder appends its bindings: payload values first (INSERT/UPDATE), then
where values, depth-first and left to right through nested groups.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from querykit.exceptions import ConfigurationError
from querykit.query import (
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
)

_ALIAS_RE = re.compile(r"\s+AS\s+", re.IGNORECASE)


class Grammar:
    """Base grammar using ANSI double-quoted identifiers and ``?`` placeholders."""

    name = "ansi"
    opening = '"'
    closing = '"'
    placeholder = "?"

    def compile(self, model: QueryModel) -> str:
        """Compile a model according to its statement kind."""
        match model.kind:
            case StatementKind.SELECT:
                return self.compile_select(model)
            case StatementKind.INSERT:
                return self.compile_insert(model)
            case StatementKind.UPDATE:
                return self.compile_update(model)
            case StatementKind.DELETE:
                return self.compile_delete(model)
        raise ConfigurationError(f"Invalid query type [{model.kind}]")

    def compile_select(self, model: QueryModel) -> str:
        """Compile a SELECT statement (or an aggregate over it)."""
        table = self._require_table(model)

        if model.aggregate is not None:
            return self.compile_aggregate(model, model.aggregate)

        columns = model.columns or ("*",)
        sql = "SELECT " + ", ".join(self.wrap(c) for c in columns)
        sql += " FROM " + self.wrap(table)

        if model.alias:
            sql += " AS " + self.wrap(model.alias)

        if model.joins:
            sql += " " + self.compile_joins(model.joins)

        if model.wheres:
            sql += " WHERE " + self.compile_wheres(model.wheres)

        if model.groups:
            sql += " GROUP BY " + ", ".join(self.wrap(g) for g in model.groups)

        if model.orders:
            sql += " ORDER BY " + ", ".join(
                f"{self.wrap(column)} {direction.upper()}" for column, direction in model.orders
            )

        if model.limit is not None:
            sql += f" LIMIT {int(model.limit)}"
            if model.offset is not None:
                sql += f" OFFSET {int(model.offset)}"

        return sql

    def compile_aggregate(self, model: QueryModel, aggregate: Aggregate) -> str:
        """Compile ``SELECT FN(cols) AS aggregate`` over the model's rows.

        Grouped queries are counted through a subquery so that the result is
        the number of groups rather than one row per group.
        """
        column = self._aggregate_columns(aggregate.columns)

        if model.groups:
            # the subquery yields one row per group
            column = "*"
            inner = QueryModel(
                table=model.table,
                alias=model.alias,
                columns=model.columns,
                joins=model.joins,
                wheres=model.wheres,
                groups=model.groups,
            )
            return (
                f"SELECT {aggregate.function.upper()}({column}) AS aggregate"
                f" FROM ({self.compile_select(inner)}) AS sub"
            )

        sql = f"SELECT {aggregate.function.upper()}({column}) AS aggregate"
        sql += " FROM " + self.wrap(self._require_table(model))
        if model.alias:
            sql += " AS " + self.wrap(model.alias)
        if model.joins:
            sql += " " + self.compile_joins(model.joins)
        if model.wheres:
            sql += " WHERE " + self.compile_wheres(model.wheres)
        return sql

    def compile_insert(self, model: QueryModel) -> str:
        """Compile ``INSERT INTO t (cols) VALUES (?, ...)``."""
        table = self._require_table(model)
        if not model.data:
            raise ConfigurationError("No values specified for INSERT")

        columns = ", ".join(self.wrap(c) for c in model.data_columns)
        return (
            f"INSERT INTO {self.wrap(table)} ({columns})"
            f" VALUES ({self.parameterize(model.data)})"
        )

    def compile_update(self, model: QueryModel) -> str:
        """Compile ``UPDATE t SET col = ?, ... [WHERE ...]``."""
        table = self._require_table(model)
        if not model.data:
            raise ConfigurationError("No values specified for UPDATE")

        sets = ", ".join(f"{self.wrap(c)} = {self.placeholder}" for c in model.data_columns)
        sql = f"UPDATE {self.wrap(table)} SET {sets}"
        if model.wheres:
            sql += " WHERE " + self.compile_wheres(model.wheres)
        return sql

    def compile_delete(self, model: QueryModel) -> str:
        """Compile ``DELETE FROM t [WHERE ...]``."""
        sql = "DELETE FROM " + self.wrap(self._require_table(model))
        if model.wheres:
            sql += " WHERE " + self.compile_wheres(model.wheres)
        return sql

    def compile_joins(self, joins: Iterable[Join]) -> str:
        """Compile JOIN clauses, space separated."""
        return " ".join(
            f"{join.kind.upper()} JOIN {self.wrap(join.table)}"
            f" ON {self.wrap(join.first)} {join.operator} {self.wrap(join.second)}"
            for join in joins
        )

    def compile_wheres(self, wheres: Sequence[WhereNode]) -> str:
        """Compile one level of the where tree, recursing into nested groups.

        Each node is prefixed by its boolean connector, except the first node
        of its level.
        """
        clauses = []
        for index, node in enumerate(wheres):
            prefix = "" if index == 0 else f" {node.boolean} "
            clauses.append(prefix + self.compile_where(node))
        return "".join(clauses)

    def compile_where(self, node: WhereNode) -> str:
        """Compile a single where node without its connector."""
        match node:
            case Basic(column=column, operator=operator):
                return f"{self.wrap(column)} {operator} {self.placeholder}"
            case In(count=0):
                return "0 = 1"
            case NotIn(count=0):
                return "1 = 1"
            case In(column=column, count=count):
                return f"{self.wrap(column)} IN ({self.parameterize(range(count))})"
            case NotIn(column=column, count=count):
                return f"{self.wrap(column)} NOT IN ({self.parameterize(range(count))})"
            case Between(column=column):
                return f"{self.wrap(column)} BETWEEN {self.placeholder} AND {self.placeholder}"
            case NotBetween(column=column):
                return f"{self.wrap(column)} NOT BETWEEN {self.placeholder} AND {self.placeholder}"
            case Null(column=column):
                return f"{self.wrap(column)} IS NULL"
            case NotNull(column=column):
                return f"{self.wrap(column)} IS NOT NULL"
            case Nested(children=children):
                return "(" + self.compile_wheres(children) + ")"
        raise ConfigurationError(f"Unknown where type [{type(node).__name__}]")

    def parameterize(self, values: Iterable[object]) -> str:
        """One placeholder per value, comma separated."""
        return ", ".join(self.placeholder for _ in values)

    def wrap(self, identifier: str | Raw) -> str:
        """Quote a table or column identifier.

        Existing quote characters are stripped. Function calls and wildcards
        pass through untouched, an ``AS alias`` suffix is kept as-is, and each
        dot-separated segment is quoted on its own (``a.b`` -> ``"a"."b"``).
        """
        if isinstance(identifier, Raw):
            return identifier.sql

        clean = identifier.replace(self.opening, "").replace(self.closing, "")

        if "(" in clean or "*" in clean:
            return identifier

        alias = ""
        match = _ALIAS_RE.search(clean)
        if match:
            alias = clean[match.start():]
            clean = clean[: match.start()]

        segments = clean.strip().split(".")
        wrapped = (self.closing + "." + self.opening).join(segments)
        return f"{self.opening}{wrapped}{self.closing}{alias}"

    def _aggregate_columns(self, columns: tuple[str, ...]) -> str:
        if not columns or columns == ("*",):
            return "*"
        return ", ".join(self.wrap(c) for c in columns)

    def _require_table(self, model: QueryModel) -> str:
        if not model.table:
            raise ConfigurationError(f"No table specified for {model.kind.value.upper()}")
        return model.table


class MySqlGrammar(Grammar):
    """MySQL: backtick-quoted identifiers."""

    name = "mysql"
    opening = "`"
    closing = "`"


class SQLiteGrammar(Grammar):
    """SQLite: standard double-quoted identifiers."""

    name = "sqlite"


class PostgresGrammar(Grammar):
    """PostgreSQL via psycopg2: double-quoted identifiers, ``%s`` placeholders."""

    name = "postgresql"
    placeholder = "%s"


_GRAMMARS: dict[str, type[Grammar]] = {
    "mysql": MySqlGrammar,
    "sqlite": SQLiteGrammar,
    "postgresql": PostgresGrammar,
    "postgres": PostgresGrammar,
}


def grammar_for(dialect: str | None) -> Grammar:
    """Return a grammar instance for a dialect name (MySQL when None)."""
    if dialect is None:
        return MySqlGrammar()
    try:
        return _GRAMMARS[dialect.lower()]()
    except KeyError:
        raise ConfigurationError(f"Unsupported grammar [{dialect}]") from None
