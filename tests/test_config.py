"""Tests for database configuration."""

import pytest

from querykit import DatabaseConfig


def test_from_url():
    config = DatabaseConfig.from_url("postgresql://localhost/app", connect_timeout=5)
    assert config.url == "postgresql://localhost/app"
    assert config.connect_args == {"connect_timeout": 5}
    assert config.dialect == "postgresql"


@pytest.mark.parametrize(
    ("url", "dialect"),
    [
        ("sqlite::memory:", "sqlite"),
        ("sqlite:///app.db", "sqlite"),
        ("postgres://db/app", "postgresql"),
        ("postgresql+psycopg2://db/app", "postgresql"),
        ("mysql://db/app", "mysql"),
        ("oracle://db/app", None),
    ],
)
def test_dialect_from_url(url, dialect):
    assert DatabaseConfig(url=url).dialect == dialect


def test_grammar_overrides_dialect():
    assert DatabaseConfig(url="sqlite::memory:", grammar="MySQL").dialect == "mysql"


def test_from_env():
    config = DatabaseConfig.from_env({"DATABASE_URL": "sqlite::memory:", "QUERYKIT_GRAMMAR": "sqlite"})
    assert config.url == "sqlite::memory:"
    assert config.grammar == "sqlite"


def test_from_env_empty():
    config = DatabaseConfig.from_env({})
    assert config.url is None
    assert config.dialect is None


def test_from_env_uses_os_environ(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///env.db")
    monkeypatch.delenv("QUERYKIT_GRAMMAR", raising=False)
    assert DatabaseConfig.from_env().url == "sqlite:///env.db"


def test_from_ini(tmp_path):
    """Test loading settings and driver arguments from an ini file."""
    path = tmp_path / "querykit.ini"
    path.write_text(
        "[database]\n"
        "url = sqlite:///app.db\n"
        "grammar = sqlite\n"
        "timeout = 5\n"
        "check_same_thread = false\n"
        "ratio = 0.5\n"
        "isolation_level = DEFERRED\n"
    )
    config = DatabaseConfig.from_ini(path)

    assert config.url == "sqlite:///app.db"
    assert config.grammar == "sqlite"
    assert config.connect_args == {
        "timeout": 5,
        "check_same_thread": False,
        "ratio": 0.5,
        "isolation_level": "DEFERRED",
    }


def test_from_ini_custom_section(tmp_path):
    path = tmp_path / "app.ini"
    path.write_text("[db]\nurl = mysql://localhost/app\n")
    assert DatabaseConfig.from_ini(path, section="db").dialect == "mysql"


def test_from_ini_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        DatabaseConfig.from_ini(tmp_path / "missing.ini")


def test_from_ini_missing_section(tmp_path):
    path = tmp_path / "querykit.ini"
    path.write_text("[other]\nurl = sqlite::memory:\n")
    with pytest.raises(ValueError, match=r"No \[database\] section"):
        DatabaseConfig.from_ini(path)


def test_get_url():
    assert DatabaseConfig(url="sqlite::memory:").get_url() == "sqlite::memory:"
    assert DatabaseConfig().get_url("sqlite:///x.db") == "sqlite:///x.db"
    with pytest.raises(ValueError, match="No database URL configured"):
        DatabaseConfig().get_url()
