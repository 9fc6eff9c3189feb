"""Database configuration parsing."""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_DIALECTS = {
    "sqlite": "sqlite",
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "mysql": "mysql",
}


@dataclass
class DatabaseConfig:
    """Connection settings for a querykit session.

    Example querykit.ini:
        [database]
        url = sqlite:///app.db
        grammar = sqlite
        timeout = 5
    """

    url: str | None = None
    """Database connection URL."""

    grammar: str | None = None
    """Grammar name override ("mysql", "sqlite", "postgresql")."""

    connect_args: dict[str, Any] = field(default_factory=dict)
    """Extra keyword arguments passed to the driver's connect()."""

    @classmethod
    def from_url(cls, url: str, **connect_args: Any) -> DatabaseConfig:
        """Build a config from a URL and optional driver arguments."""
        return cls(url=url, connect_args=dict(connect_args))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DatabaseConfig:
        """Load configuration from DATABASE_URL and QUERYKIT_GRAMMAR."""
        env = os.environ if environ is None else environ
        return cls(url=env.get("DATABASE_URL"), grammar=env.get("QUERYKIT_GRAMMAR"))

    @classmethod
    def from_ini(cls, path: Path | str, section: str = "database") -> DatabaseConfig:
        """Load configuration from an ini file.

        Args:
            path: Path to the ini file
            section: Section holding the settings

        Returns:
            Parsed DatabaseConfig

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the section is missing
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        parser = configparser.ConfigParser()
        parser.read(path)

        if section not in parser:
            raise ValueError(f"No [{section}] section in {path}")

        options = parser[section]
        known_keys = {"url", "grammar"}
        connect_args: dict[str, Any] = {}
        for key, value in options.items():
            if key in known_keys:
                continue
            connect_args[key] = _coerce(value)

        return cls(
            url=options.get("url"),
            grammar=options.get("grammar"),
            connect_args=connect_args,
        )

    @property
    def dialect(self) -> str | None:
        """Dialect name derived from the URL scheme, or the grammar override."""
        if self.grammar:
            return self.grammar.lower()
        if not self.url:
            return None
        scheme = self.url.split(":", 1)[0].split("+", 1)[0].lower()
        return _DIALECTS.get(scheme)

    def get_url(self, override: str | None = None) -> str:
        """Get database URL with optional override.

        Raises:
            ValueError: If no URL available
        """
        url = override or self.url
        if not url:
            raise ValueError("No database URL configured")
        return url


def _coerce(value: str) -> Any:
    """Turn ini strings into ints/floats/bools where they clearly are one."""
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value
