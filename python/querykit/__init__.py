"""QueryKit - a fluent SQL query builder with batched relation loading."""

from __future__ import annotations

from querykit.base import Base
from querykit.builder import QueryBuilder
from querykit.config import DatabaseConfig
from querykit.connection import Connection, DBAPIConnection, Statement
from querykit.eager import EagerLoader, load
from querykit.exceptions import ConfigurationError, QueryError, QueryKitError
from querykit.grammar import Grammar, MySqlGrammar, PostgresGrammar, SQLiteGrammar, grammar_for
from querykit.pagination import Page, Paginator
from querykit.query import QueryModel, Raw, StatementKind
from querykit.relationships import Relation, RelationKind, belongs_to, has_many, has_one
from querykit.session import Session, connect, create_session

__version__ = "0.1.0"

__all__ = [
    # Core
    "connect",
    "create_session",
    "Session",
    "DatabaseConfig",
    "Connection",
    "Statement",
    "DBAPIConnection",
    # Query building
    "QueryBuilder",
    "QueryModel",
    "StatementKind",
    "Raw",
    "Paginator",
    "Page",
    # Grammars
    "Grammar",
    "MySqlGrammar",
    "SQLiteGrammar",
    "PostgresGrammar",
    "grammar_for",
    # Model definition
    "Base",
    "Relation",
    "RelationKind",
    "has_many",
    "has_one",
    "belongs_to",
    # Eager loading
    "EagerLoader",
    "load",
    # Errors
    "QueryKitError",
    "ConfigurationError",
    "QueryError",
]
