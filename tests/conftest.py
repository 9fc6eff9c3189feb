"""Pytest configuration and fixtures."""

import sqlite3

import pytest

from querykit import DBAPIConnection, Session

SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    role TEXT NOT NULL,
    credits INTEGER NOT NULL DEFAULT 0,
    email TEXT
);
CREATE TABLE posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    title TEXT NOT NULL
);
CREATE TABLE profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    bio TEXT
);
CREATE TABLE comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id INTEGER NOT NULL,
    body TEXT NOT NULL
);
"""

USERS = [
    ("Alice", "admin", 50, "alice@example.com"),
    ("Bob", "member", 150, "bob@example.com"),
    ("Charlie", "member", 10, None),
]

POSTS = [
    (1, "Hello"),
    (1, "Again"),
    (2, "Bob writes"),
]


class CountingConnection(DBAPIConnection):
    """DB-API connection that records every SQL statement it prepares."""

    def __init__(self, raw, **kwargs):
        super().__init__(raw, **kwargs)
        self.statements = []
        self.prepared = []

    def prepare(self, sql):
        self.statements.append(sql)
        statement = super().prepare(sql)
        self.prepared.append(statement)
        return statement

    def reset(self):
        self.statements.clear()
        self.prepared.clear()


@pytest.fixture
def raw_sqlite():
    """Create an in-memory SQLite database with users, posts, profiles and comments."""
    conn = sqlite3.connect(":memory:")
    conn.executescript(SCHEMA)
    conn.executemany("INSERT INTO users (name, role, credits, email) VALUES (?, ?, ?, ?)", USERS)
    conn.executemany("INSERT INTO posts (user_id, title) VALUES (?, ?)", POSTS)
    conn.execute("INSERT INTO profiles (user_id, bio) VALUES (1, 'Alice bio')")
    conn.executemany(
        "INSERT INTO comments (post_id, body) VALUES (?, ?)",
        [(1, "first!"), (1, "nice"), (3, "hi bob")],
    )
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def connection(raw_sqlite):
    """A counting connection over the seeded database."""
    return CountingConnection(raw_sqlite, dialect="sqlite")


@pytest.fixture
def session(connection):
    """A session using the SQLite grammar."""
    return Session(connection)
