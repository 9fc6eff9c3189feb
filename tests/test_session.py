"""Tests for sessions, connections and statement execution."""

import sqlite3
from dataclasses import dataclass

import pytest

from querykit import (
    ConfigurationError,
    DatabaseConfig,
    DBAPIConnection,
    MySqlGrammar,
    QueryError,
    Session,
    SQLiteGrammar,
    connect,
    create_session,
)
from querykit.connection import Connection, Statement
from querykit.executor import Executor


@dataclass
class UserRecord:
    id: int
    name: str
    role: str
    credits: int
    email: str | None


class TestSession:
    """Tests for the Session API."""

    def test_grammar_follows_connection_dialect(self, session):
        assert isinstance(session.grammar, SQLiteGrammar)

    def test_explicit_grammar(self, connection):
        session = create_session(connection, grammar=MySqlGrammar())
        assert session.table("users").to_sql() == "SELECT * FROM `users`"

    def test_table_alias(self, session):
        assert session.table("users", "u").to_sql() == 'SELECT * FROM "users" AS "u"'

    def test_plain_record_type(self, session):
        records = session.table("users").model(UserRecord).order_by("id").get()
        assert records[0] == UserRecord(1, "Alice", "admin", 50, "alice@example.com")

    def test_raw(self, session):
        rows = session.raw("SELECT name FROM users WHERE credits > ? ORDER BY id", [20])
        assert rows == [{"name": "Alice"}, {"name": "Bob"}]

    def test_raw_statement_without_rows(self, session):
        assert session.raw("UPDATE users SET credits = 0") == []

    def test_rollback_on_error(self, connection):
        with pytest.raises(RuntimeError):
            with Session(connection) as session:
                session.builder().insert("users", {"name": "Dan", "role": "member"}).execute()
                raise RuntimeError("boom")

        assert Session(connection).table("users").count() == 3

    def test_commit_on_success(self, connection, raw_sqlite):
        with Session(connection) as session:
            session.builder().insert("users", {"name": "Dan", "role": "member"}).execute()

        assert raw_sqlite.in_transaction is False
        assert Session(connection).table("users").count() == 4

    def test_borrowed_connection_stays_open(self, connection, raw_sqlite):
        with Session(connection):
            pass
        assert raw_sqlite.execute("SELECT 1").fetchone() == (1,)


class TestConnect:
    """Tests for connect()."""

    def test_memory(self):
        session = connect("sqlite::memory:")
        assert session.grammar.name == "sqlite"
        assert session.raw("SELECT 1 AS one") == [{"one": 1}]
        session.close()
        session.close()

    def test_file(self, tmp_path):
        path = tmp_path / "app.db"
        with connect(f"sqlite:///{path}") as session:
            session.raw("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
            session.builder().insert("t", {"v": "x"}).execute()

        assert path.exists()
        with connect(DatabaseConfig.from_url(f"sqlite:///{path}")) as session:
            assert session.table("t").count() == 1

    def test_context_manager_closes_owned_connection(self):
        with connect("sqlite::memory:") as session:
            raw = session.connection.raw
        with pytest.raises(sqlite3.ProgrammingError):
            raw.execute("SELECT 1")

    def test_grammar_override(self):
        session = connect(DatabaseConfig(url="sqlite::memory:", grammar="mysql"))
        assert isinstance(session.grammar, MySqlGrammar)
        session.close()

    def test_unsupported_scheme(self):
        with pytest.raises(ConfigurationError, match="Unsupported database URL scheme"):
            connect("oracle://localhost/db")

    def test_missing_url(self):
        with pytest.raises(ValueError, match="No database URL configured"):
            connect(DatabaseConfig())


class TestConnection:
    """Tests for the DB-API adapter."""

    def test_satisfies_protocols(self, connection):
        assert isinstance(connection, Connection)
        assert isinstance(connection.prepare("SELECT 1"), Statement)

    def test_rows_as_dicts(self, connection):
        statement = connection.prepare("SELECT id, name FROM users WHERE id = ?")
        statement.execute([2])
        assert statement.fetch_all() == [{"id": 2, "name": "Bob"}]

    def test_rowcount_and_lastrowid(self, connection):
        statement = connection.prepare("INSERT INTO posts (user_id, title) VALUES (?, ?)")
        statement.execute([3, "New"])
        assert statement.rowcount == 1
        assert statement.lastrowid == 4

    def test_repr(self, raw_sqlite):
        assert repr(DBAPIConnection(raw_sqlite, dialect="sqlite")) == "<DBAPIConnection dialect='sqlite'>"


class TestExecutor:
    """Tests for the executor."""

    def test_scalar(self, connection):
        executor = Executor(connection)
        assert executor.scalar("SELECT COUNT(*) AS aggregate FROM users") == 3
        assert executor.scalar("SELECT id AS aggregate FROM users WHERE id = ?", [99]) is None

    def test_hydrate_passthrough(self):
        rows = [{"id": 1}]
        assert Executor.hydrate(rows, None) is rows

    def test_statements_are_closed(self, session, connection):
        connection.reset()
        session.table("users").get()
        session.table("users").count()
        session.builder().insert("posts", {"user_id": 1, "title": "x"}).insert_get_id()
        session.builder().delete("posts").where("title", "x").execute()

        assert len(connection.prepared) == 4
        assert all(statement.closed for statement in connection.prepared)

    def test_failed_statement_is_closed(self, session, connection):
        connection.reset()
        with pytest.raises(QueryError):
            session.table("missing").get()
        assert connection.prepared[0].closed

    def test_error_wrapping(self, connection):
        with pytest.raises(QueryError) as exc_info:
            Executor(connection).execute("INSERT INTO users (name) VALUES (?)", ["NoRole"])

        err = exc_info.value
        assert isinstance(err.__cause__, sqlite3.IntegrityError)
        assert err.sql == "INSERT INTO users (name) VALUES (?)"
        assert err.bindings == ["NoRole"]
        assert err.code is not None
        assert "[code " in str(err)
