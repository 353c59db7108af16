import pytest

from dbadmin.core.adapters.connectors import (
    PostgresConnector,
    SqliteConnector,
    SqlServerConnector,
)
from dbadmin.core.connection import parse


@pytest.mark.parametrize(
    "server, expected",
    [
        ("db", ("db", None)),
        ("db,1444", ("db", 1444)),
        ("tcp:db.example,1433", ("db.example", 1433)),
        ("db,notaport", ("db", None)),
    ],
)
def test_split_server(server: str, expected: tuple):
    assert SqlServerConnector.split_server(server) == expected


def test_sqlserver_connect_args():
    descriptor = parse(
        "Server=tcp:db,1444;Initial Catalog=Foo;User Id=sa;Pwd=pw;Connect Timeout=5"
    )

    args, kwargs = SqlServerConnector().connect_args(descriptor)

    assert args == ()
    assert kwargs == {
        "server": "db",
        "autocommit": True,
        "port": 1444,
        "database": "Foo",
        "user": "sa",
        "password": "pw",
        "login_timeout": 5,
    }


def test_sqlserver_quotes_with_brackets():
    assert SqlServerConnector().quote_identifier("a]b") == "[a]]b]"


def test_postgres_connect_args_from_pairs():
    descriptor = parse("Host=db;Port=5433;Database=app;Username=u;Password=p;Encrypt=true")

    args, kwargs = PostgresConnector().connect_args(descriptor)

    assert args == ("",)
    assert kwargs == {
        "autocommit": True,
        "host": "db",
        "port": 5433,
        "dbname": "app",
        "user": "u",
        "password": "p",
        "sslmode": "require",
    }


def test_postgres_explicit_ssl_mode_wins_over_encrypt():
    descriptor = parse("Host=db;Database=app;SSL Mode=Disable;Encrypt=true")

    _, kwargs = PostgresConnector().connect_args(descriptor)

    assert kwargs["sslmode"] == "disable"


def test_postgres_connect_args_from_url():
    descriptor = parse("postgresql://u:s%40cret@db:5432/app?application_name=dbadmin")

    _, kwargs = PostgresConnector().connect_args(descriptor)

    assert kwargs["password"] == "s@cret"
    assert kwargs["dbname"] == "app"
    assert kwargs["port"] == 5432


def test_postgres_quotes_with_double_quotes():
    assert PostgresConnector().quote_identifier('we"ird') == '"we""ird"'


def test_sqlite_connect_args_plain_path():
    args, kwargs = SqliteConnector().connect_args(parse("Data Source=app.db"))

    assert args == ("app.db",)
    assert kwargs == {"isolation_level": None}


def test_sqlite_mode_becomes_uri(tmp_path):
    db = tmp_path / "app.db"

    args, kwargs = SqliteConnector().connect_args(parse(f"Data Source={db};Mode=ReadOnly"))

    assert args[0].startswith("file:")
    assert args[0].endswith("?mode=ro")
    assert kwargs["uri"] is True


def test_sqlite_memory_ignores_mode():
    args, kwargs = SqliteConnector().connect_args(parse("Data Source=:memory:;Mode=Memory"))

    assert args == (":memory:",)
    assert "uri" not in kwargs


def test_sqlite_read_only_mode_rejects_writes(tmp_path):
    import sqlite3

    db = tmp_path / "ro.db"
    sqlite3.connect(db).close()
    connector = SqliteConnector()
    conn = connector.connect(sqlite3, parse(f"Data Source={db};Mode=ReadOnly"))
    try:
        with pytest.raises(sqlite3.OperationalError):
            conn.execute("CREATE TABLE t (id INTEGER)")
    finally:
        conn.close()
