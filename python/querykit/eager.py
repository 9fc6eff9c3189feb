"""Batch loading of model relations (one query per relation)."""

from __future__ import annotations

import logging
from collections.abc import Iterable, MutableSequence
from typing import TYPE_CHECKING, Any

from querykit.base import Base
from querykit.builder import QueryBuilder
from querykit.grammar import Grammar, grammar_for

if TYPE_CHECKING:
    from querykit.connection import Connection
    from querykit.relationships import Relation

logger = logging.getLogger(__name__)


class EagerLoader:
    """Attach related records to a list of parents.

    For each relation name, the key values of all parents are collected and
    the related table is queried once with ``WHERE <match column> IN (...)``.
    The rows are grouped by their match column and attached to each parent:
    a list for has-many, the first row (or None) for has-one and belongs-to.

    Parents may be ``Base`` instances or plain dicts. Instances receive related
    rows hydrated into the related model; dicts receive dict rows.

    Example:
        >>> users = session.table("users").get()
        >>> EagerLoader(conn).load(User, users, ["posts"])
        >>> len(users[0]["posts"])
        2
    """

    def __init__(self, connection: Connection, grammar: Grammar | None = None) -> None:
        self.connection = connection
        self.grammar = grammar or grammar_for(getattr(connection, "dialect", None))

    def load(self, owner_type: type[Base], parents: MutableSequence[Any], names: Iterable[str]) -> None:
        if not parents:
            return

        for name in names:
            head, _, rest = name.partition(".")
            relation = owner_type.get_relation(head)
            if relation is None:
                logger.debug("No relation %r on %s; skipping", head, owner_type.__name__)
                continue

            self._load_relation(relation, parents)

            if rest:
                children = _attached(parents, head)
                self.load(relation.related_model, children, [rest])

    def _load_relation(self, relation: Relation, parents: MutableSequence[Any]) -> None:
        name = relation.name
        parent_key = relation.parent_key
        match_column = relation.match_column

        keys = list(dict.fromkeys(
            key for key in (_read(parent, parent_key) for parent in parents) if key is not None
        ))

        if not keys:
            for parent in parents:
                _attach(parent, name, relation.empty_value())
            return

        query = (
            QueryBuilder(self.connection, self.grammar)
            .from_(relation.related_table)
            .where_in(match_column, keys)
        )
        if isinstance(parents[0], Base):
            query = query.model(relation.related_model)

        groups: dict[Any, list[Any]] = {}
        for record in query.get():
            groups.setdefault(_match_key(_read(record, match_column)), []).append(record)

        for parent in parents:
            group = groups.get(_match_key(_read(parent, parent_key)))
            if relation.uselist:
                _attach(parent, name, list(group or []))
            else:
                _attach(parent, name, group[0] if group else None)


def load(
    connection: Connection,
    owner_type: type[Base],
    parents: MutableSequence[Any],
    names: Iterable[str],
    grammar: Grammar | None = None,
) -> None:
    """Eager-load ``names`` onto ``parents`` in place."""
    EagerLoader(connection, grammar).load(owner_type, parents, names)


def _read(record: Any, key: str) -> Any:
    if isinstance(record, Base):
        return getattr(record, key, None)
    return record.get(key)


def _match_key(value: Any) -> Any:
    """Grouping form of a key value, so that ``1`` and ``"1"`` match."""
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return str(value)
    return value


def _attach(record: Any, name: str, value: Any) -> None:
    if isinstance(record, Base):
        record._set_relationship(name, value)
    else:
        record[name] = value


def _attached(parents: Iterable[Any], name: str) -> list[Any]:
    """Flatten the records attached under ``name`` across all parents."""
    children: list[Any] = []
    for parent in parents:
        value = parent._loaded_relationships.get(name) if isinstance(parent, Base) else parent.get(name)
        if isinstance(value, list):
            children.extend(value)
        elif value is not None:
            children.append(value)
    return children
