"""Connection-string dialect classification.

Classification is a pure function of the input string: no I/O, no driver
imports. Rules are evaluated in a fixed priority order and the first match
wins, so an ambiguous string always resolves SQL Server before PostgreSQL
before SQLite.
"""

from __future__ import annotations

import re
from enum import Enum

from dbadmin.core.errors import ClassificationError


class Dialect(str, Enum):
    """Supported database kinds."""

    SQLSERVER = "sqlserver"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


_SCHEMES: tuple[tuple[str, Dialect], ...] = (
    ("sqlserver://", Dialect.SQLSERVER),
    ("postgresql://", Dialect.POSTGRES),
    ("postgres://", Dialect.POSTGRES),
    ("sqlite://", Dialect.SQLITE),
)

_PAIR_RE = re.compile(
    r"""\s*(?P<key>[^=;]+?)\s*=\s*
        (?P<value>"(?:[^"]|"")*"|'(?:[^']|'')*'|\{[^}]*\}|[^;]*)
        \s*(?:;|$)""",
    re.VERBOSE,
)

# A `Data Source` naming a file is SQLite's, not a SQL Server instance.
_SQLITE_FILE_RE = re.compile(r"(\.(db|db3|sqlite|sqlite3)$)|(^:memory:$)", re.IGNORECASE)

_PASSWORD_PAIR_RE = re.compile(
    r"""((?:^|;)\s*(?:password|pwd)\s*=\s*)("(?:[^"]|"")*"|'(?:[^']|'')*'|\{[^}]*\}|[^;]*)""",
    re.IGNORECASE,
)
_URL_PASSWORD_RE = re.compile(r"(://[^:/@]*:)([^@/]*)(@)")

_SQLSERVER_EXCLUDED = ("host", "filename")
_POSTGRES_KEYS = ("host", "username", "user id", "password", "port")
_SQLITE_KEYS = ("data source", "filename", "mode")


def _unquote(value: str) -> str:
    """Strip one level of ADO.NET style quoting from a value."""
    if len(value) >= 2:
        if value[0] == value[-1] == '"':
            return value[1:-1].replace('""', '"')
        if value[0] == value[-1] == "'":
            return value[1:-1].replace("''", "'")
        if value[0] == "{" and value[-1] == "}":
            return value[1:-1]
    return value


def parse_pairs(connection_string: str) -> dict[str, str]:
    """
    Split a `key=value;key=value` connection string into an ordered mapping.

    Keys are lower-cased with inner whitespace collapsed (`User  ID` becomes
    `user id`); values keep their case and lose one level of quoting. Later
    duplicates override earlier ones, as ADO.NET does.
    """
    pairs: dict[str, str] = {}
    for match in _PAIR_RE.finditer(connection_string):
        key = " ".join(match.group("key").split()).lower()
        if not key:
            continue
        pairs[key] = _unquote(match.group("value").strip())
    return pairs


def redact(connection_string: str) -> str:
    """Mask password values in both key=value and URL connection strings."""
    masked = _PASSWORD_PAIR_RE.sub(r"\1***", connection_string)
    return _URL_PASSWORD_RE.sub(r"\1***\3", masked)


def scheme_dialect(connection_string: str) -> Dialect | None:
    """Return the dialect implied by a URL scheme prefix, if any."""
    lowered = connection_string.strip().lower()
    for prefix, dialect in _SCHEMES:
        if lowered.startswith(prefix):
            return dialect
    return None


def _is_sqlserver(pairs: dict[str, str]) -> bool:
    if any(key in pairs for key in _SQLSERVER_EXCLUDED):
        return False
    if "server" in pairs:
        return True
    source = pairs.get("data source")
    return source is not None and not _SQLITE_FILE_RE.search(source.strip())


def classify(connection_string: str) -> Dialect:
    """
    Map a raw connection string to its dialect.

    Rules, first match wins:
      1. URL scheme (`sqlserver://`, `postgres://`, `postgresql://`,
         `sqlite://`), case-insensitive.
      2. `Server=` / `Data Source=` without `Host=` / `Filename=` -> SQL Server.
         A `Data Source` that names a SQLite file does not count.
      3. `Host=`, `Username=`, `User Id=`, `Password=` or `Port=` -> PostgreSQL.
      4. `Data Source=`, `Filename=` or `Mode=` -> SQLite.

    Raises:
        ClassificationError: when no rule matches.
    """
    if not connection_string or not connection_string.strip():
        raise ClassificationError(connection_string, "Empty connection string")

    dialect = scheme_dialect(connection_string)
    if dialect is not None:
        return dialect

    pairs = parse_pairs(connection_string)
    if _is_sqlserver(pairs):
        return Dialect.SQLSERVER
    if any(key in pairs for key in _POSTGRES_KEYS):
        return Dialect.POSTGRES
    if any(key in pairs for key in _SQLITE_KEYS):
        return Dialect.SQLITE

    raise ClassificationError(redact(connection_string))
