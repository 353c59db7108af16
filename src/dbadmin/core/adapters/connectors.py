"""Dialect connectors - open DB-API connections and hold catalog SQL.

Each connector knows how to:
1. Translate a ConnectionDescriptor into its driver's `connect()` arguments
2. Provide the fixed catalog queries used by table listing and server info
3. Quote identifiers for the administrative statements it builds
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from types import ModuleType
from typing import Any, Mapping
from urllib.parse import quote

from dbadmin.core.connection import ConnectionDescriptor
from dbadmin.core.dialects import Dialect

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "yes", "1", "sspi", "mandatory", "strict"}
_TIMEOUT_KEYS = ("connect timeout", "connection timeout", "timeout")


def _timeout(settings: Mapping[str, str]) -> int | None:
    for key in _TIMEOUT_KEYS:
        raw = settings.get(key)
        if raw:
            try:
                return int(raw)
            except ValueError:
                logger.warning("Ignoring non-numeric %s=%r", key, raw)
    return None


class Connector(ABC):
    """Base class for dialect connectors."""

    dialect: Dialect

    @abstractmethod
    def connect_args(self, descriptor: ConnectionDescriptor) -> tuple[tuple, dict[str, Any]]:
        """Return positional and keyword arguments for `module.connect()`."""

    def connect(self, module: ModuleType, descriptor: ConnectionDescriptor) -> Any:
        """Open an autocommit connection through the loaded driver module."""
        args, kwargs = self.connect_args(descriptor)
        return module.connect(*args, **kwargs)

    @property
    @abstractmethod
    def tables_sql(self) -> str:
        """Query listing user tables."""

    @property
    @abstractmethod
    def info_sql(self) -> str:
        """Query returning server and database version information."""

    def quote_identifier(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'


class SqlServerConnector(Connector):
    """SQL Server through python-tds (`pytds`)."""

    dialect = Dialect.SQLSERVER

    @staticmethod
    def split_server(server: str) -> tuple[str, int | None]:
        """Split `tcp:host,1433` / `host,1433` into host and port."""
        host = server.strip()
        if host.lower().startswith("tcp:"):
            host = host[4:]
        if "," in host:
            host, _, raw_port = host.partition(",")
            try:
                return host.strip(), int(raw_port)
            except ValueError:
                return host.strip(), None
        return host, None

    def connect_args(self, descriptor: ConnectionDescriptor) -> tuple[tuple, dict[str, Any]]:
        host, port = self.split_server(descriptor.host or "localhost")
        kwargs: dict[str, Any] = {"server": host, "autocommit": True}
        port = descriptor.port or port
        if port:
            kwargs["port"] = port
        if descriptor.database:
            kwargs["database"] = descriptor.database
        if descriptor.user:
            kwargs["user"] = descriptor.user
        if descriptor.password is not None:
            kwargs["password"] = descriptor.password
        timeout = _timeout(descriptor.settings)
        if timeout:
            kwargs["login_timeout"] = timeout
        app_name = descriptor.settings.get("application name") or descriptor.settings.get("app")
        if app_name:
            kwargs["appname"] = app_name
        return (), kwargs

    def quote_identifier(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    @property
    def tables_sql(self) -> str:
        return """
            SELECT s.name AS schema_name, t.name AS table_name
            FROM sys.tables t
            INNER JOIN sys.schemas s ON t.schema_id = s.schema_id
            ORDER BY s.name, t.name
        """

    @property
    def info_sql(self) -> str:
        return """
            SELECT
                @@VERSION AS version,
                CAST(SERVERPROPERTY('ProductVersion') AS nvarchar(128)) AS product_version,
                CAST(SERVERPROPERTY('Edition') AS nvarchar(128)) AS edition,
                @@SERVERNAME AS server_name,
                DB_NAME() AS database_name
        """


class PostgresConnector(Connector):
    """PostgreSQL through psycopg 3."""

    dialect = Dialect.POSTGRES

    _PASSTHROUGH = {
        "ssl mode": "sslmode",
        "sslmode": "sslmode",
        "application name": "application_name",
        "application_name": "application_name",
        "search path": "options",
    }

    def connect_args(self, descriptor: ConnectionDescriptor) -> tuple[tuple, dict[str, Any]]:
        kwargs: dict[str, Any] = {"autocommit": True}
        if descriptor.host:
            kwargs["host"] = descriptor.host
        if descriptor.port:
            kwargs["port"] = descriptor.port
        if descriptor.database:
            kwargs["dbname"] = descriptor.database
        if descriptor.user:
            kwargs["user"] = descriptor.user
        if descriptor.password is not None:
            kwargs["password"] = descriptor.password
        timeout = _timeout(descriptor.settings)
        if timeout:
            kwargs["connect_timeout"] = timeout
        for key, target in self._PASSTHROUGH.items():
            value = descriptor.settings.get(key)
            if not value:
                continue
            if target == "sslmode":
                value = value.lower()
            elif target == "options":
                value = f"-c search_path={value}"
            kwargs[target] = value
        encrypt = (descriptor.settings.get("encrypt") or "").lower()
        if "sslmode" not in kwargs and encrypt in _TRUE_VALUES:
            kwargs["sslmode"] = "require"
        return ("",), kwargs

    @property
    def tables_sql(self) -> str:
        return """
            SELECT table_schema AS schema_name, table_name
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
              AND table_schema NOT IN ('pg_catalog', 'information_schema')
            ORDER BY table_schema, table_name
        """

    @property
    def info_sql(self) -> str:
        return """
            SELECT
                version() AS version,
                current_setting('server_version') AS product_version,
                current_database() AS database_name,
                current_user AS user_name
        """


class SqliteConnector(Connector):
    """SQLite through the bundled `sqlite3` module."""

    dialect = Dialect.SQLITE

    _MODES = {
        "readwritecreate": "rwc",
        "readwrite": "rw",
        "readonly": "ro",
        "memory": "memory",
    }

    def connect_args(self, descriptor: ConnectionDescriptor) -> tuple[tuple, dict[str, Any]]:
        path = descriptor.path or ":memory:"
        kwargs: dict[str, Any] = {"isolation_level": None}
        timeout = _timeout(descriptor.settings)
        if timeout:
            kwargs["timeout"] = timeout

        raw_mode = (descriptor.settings.get("mode") or "").replace(" ", "").lower()
        mode = self._MODES.get(raw_mode)
        if mode is None or path == ":memory:":
            return (path,), kwargs

        uri = f"file:{quote(Path(path).as_posix())}?mode={mode}"
        kwargs["uri"] = True
        return (uri,), kwargs

    @property
    def tables_sql(self) -> str:
        return """
            SELECT name AS table_name
            FROM sqlite_master
            WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """

    @property
    def info_sql(self) -> str:
        return """
            SELECT
                sqlite_version() AS version,
                (SELECT COUNT(*) FROM sqlite_master
                 WHERE type = 'table' AND name NOT LIKE 'sqlite_%') AS table_count
        """


def default_connectors() -> dict[Dialect, Connector]:
    """Return a connector for each supported dialect."""
    return {
        Dialect.SQLSERVER: SqlServerConnector(),
        Dialect.POSTGRES: PostgresConnector(),
        Dialect.SQLITE: SqliteConnector(),
    }
