"""Connection descriptors: a classified connection string plus derived fields.

A descriptor is built once per operation from the raw string and is never
mutated. Rewriting it for the administrative database produces a new
descriptor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import parse_qsl, unquote, urlsplit

from dbadmin.core.dialects import Dialect, classify, parse_pairs, redact, scheme_dialect

ADMIN_DATABASES: Mapping[Dialect, str] = {
    Dialect.SQLSERVER: "master",
    Dialect.POSTGRES: "postgres",
}

_DATABASE_KEYS: Mapping[Dialect, tuple[str, ...]] = {
    Dialect.SQLSERVER: ("database", "initial catalog", "databasename"),
    Dialect.POSTGRES: ("database", "dbname", "db"),
    Dialect.SQLITE: (),
}
_PATH_KEYS = ("data source", "filename", "datasource")
_HOST_KEYS = ("server", "host", "data source", "address", "addr", "network address")
_USER_KEYS = ("user id", "username", "uid", "user")
_PASSWORD_KEYS = ("password", "pwd")

_VALUE = r"""("(?:[^"]|"")*"|'(?:[^']|'')*'|\{[^}]*\}|[^;]*)"""


def _first(settings: Mapping[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = settings.get(key)
        if value:
            return value
    return None


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    A connection string with its dialect and parsed settings.

    Attributes:
        raw: The connection string exactly as supplied (or as rewritten
             by `admin()`).
        dialect: Dialect returned by the classifier.
        settings: Lower-cased key/value view of the string. URL strings
                  are normalized to the same keys (`host`, `port`,
                  `username`, `password`, `database` / `data source`).
        is_url: True when the string used a URL scheme.
    """

    raw: str
    dialect: Dialect
    settings: Mapping[str, str] = field(default_factory=dict)
    is_url: bool = False

    @property
    def database(self) -> str | None:
        """Database name token (SQL Server / PostgreSQL), or None."""
        return _first(self.settings, _DATABASE_KEYS[self.dialect])

    @property
    def path(self) -> str | None:
        """SQLite file path token, or None."""
        if self.dialect != Dialect.SQLITE:
            return None
        return _first(self.settings, _PATH_KEYS)

    @property
    def host(self) -> str | None:
        return _first(self.settings, _HOST_KEYS)

    @property
    def port(self) -> int | None:
        raw_port = self.settings.get("port")
        if not raw_port:
            return None
        try:
            return int(raw_port)
        except ValueError:
            return None

    @property
    def user(self) -> str | None:
        return _first(self.settings, _USER_KEYS)

    @property
    def password(self) -> str | None:
        return _first(self.settings, _PASSWORD_KEYS)

    @property
    def redacted(self) -> str:
        """The raw string with password values masked."""
        return redact(self.raw)

    def admin(self) -> "ConnectionDescriptor":
        """
        Return a descriptor targeting the dialect's administrative database.

        SQL Server targets `master`, PostgreSQL targets `postgres`. The
        database token is substituted in place; when the string carries
        none, one is appended.

        Raises:
            ValueError: for SQLite, which has no administrative database.
        """
        admin_db = ADMIN_DATABASES.get(self.dialect)
        if admin_db is None:
            raise ValueError(f"{self.dialect.value} has no administrative database")

        settings = dict(self.settings)
        keys = [k for k in _DATABASE_KEYS[self.dialect] if k in settings] or ["database"]
        for key in keys:
            settings[key] = admin_db

        if self.is_url:
            raw = _rewrite_url_database(self.raw, admin_db)
        else:
            raw = _rewrite_pair_database(self.raw, keys, admin_db)
        return ConnectionDescriptor(
            raw=raw, dialect=self.dialect, settings=settings, is_url=self.is_url
        )


def _rewrite_pair_database(raw: str, keys: list[str], value: str) -> str:
    pattern = re.compile(
        r"((?:^|;)\s*(?:" + "|".join(re.escape(k) for k in keys) + r")\s*=\s*)" + _VALUE,
        re.IGNORECASE,
    )
    rewritten, count = pattern.subn(lambda m: m.group(1) + value, raw)
    if count:
        return rewritten
    sep = "" if not raw.strip() or raw.rstrip().endswith(";") else ";"
    return f"{raw.rstrip()}{sep}Database={value}"


def _rewrite_url_database(raw: str, value: str) -> str:
    parts = urlsplit(raw)
    netloc, _, tail = parts.netloc.partition(";")
    if tail:
        pairs = [p for p in tail.split(";") if p]
        pairs = [
            f"databaseName={value}" if p.lower().startswith("databasename=") else p
            for p in pairs
        ]
        if not any(p.lower().startswith("databasename=") for p in pairs):
            pairs.append(f"databaseName={value}")
        netloc = f"{netloc};{';'.join(pairs)}"
        return parts._replace(netloc=netloc, path="").geturl()
    return parts._replace(path=f"/{value}").geturl()


def _parse_sqlite_url(raw: str) -> dict[str, str]:
    # sqlite://file.db and sqlite:///file.db are relative, sqlite:////abs/file.db is absolute
    remainder = raw.strip()[len("sqlite://"):]
    remainder, _, query = remainder.partition("?")
    if remainder.startswith("/"):
        remainder = remainder[1:]
    settings = {k.lower(): v for k, v in parse_qsl(query)}
    if remainder:
        settings["data source"] = unquote(remainder)
    return settings


def _parse_server_url(raw: str) -> dict[str, str]:
    parts = urlsplit(raw.strip())
    netloc, _, tail = parts.netloc.partition(";")
    settings: dict[str, str] = {}

    userinfo, _, hostport = netloc.rpartition("@")
    if userinfo:
        user, _, password = userinfo.partition(":")
        settings["username"] = unquote(user)
        if password:
            settings["password"] = unquote(password)
    host, _, port = hostport.partition(":")
    if host:
        settings["host"] = unquote(host)
    if port:
        settings["port"] = port

    database = parts.path.lstrip("/")
    if database:
        settings["database"] = unquote(database)
    for key, value in parse_qsl(parts.query):
        settings[key.lower()] = value
    settings.update(parse_pairs(tail))
    return settings


def parse(connection_string: str) -> ConnectionDescriptor:
    """
    Classify and parse a connection string into a descriptor.

    Raises:
        ClassificationError: when the string matches no dialect.
    """
    dialect = classify(connection_string)
    if scheme_dialect(connection_string) is not None:
        if dialect == Dialect.SQLITE:
            settings = _parse_sqlite_url(connection_string)
        else:
            settings = _parse_server_url(connection_string)
        return ConnectionDescriptor(
            raw=connection_string, dialect=dialect, settings=settings, is_url=True
        )
    return ConnectionDescriptor(
        raw=connection_string,
        dialect=dialect,
        settings=parse_pairs(connection_string),
    )
