import pytest

from dbadmin.core.adapters.connectors import default_connectors
from dbadmin.core.connection import parse
from dbadmin.core.dialects import Dialect
from dbadmin.core.drop import drop_database
from dbadmin.core.errors import AcquisitionError, DropError, ErrorKind, ExecutionError
from dbadmin.core.query import QueryResult

_CONNECTORS = default_connectors()


class _Runner:
    def __init__(self, fail_on: str | None = None, exc: Exception | None = None):
        self.fail_on = fail_on
        self.exc = exc
        self.calls: list[tuple] = []

    def execute(self, descriptor, query, parameters=None):
        self.calls.append((descriptor, query, dict(parameters or {})))
        if self.exc is not None:
            raise self.exc
        if self.fail_on and self.fail_on in query:
            raise ExecutionError("permission denied")
        return QueryResult()


def test_sqlserver_drop_runs_single_batch_from_master():
    runner = _Runner()
    descriptor = parse("Server=x;Database=Foo;User Id=sa;Password=pw")

    result = drop_database(runner, _CONNECTORS, descriptor)

    [(admin, sql, params)] = runner.calls
    assert admin.database == "master"
    assert "Database=master" in admin.raw
    assert "IF DB_ID(@name) IS NOT NULL" in sql
    assert "ALTER DATABASE [Foo] SET SINGLE_USER WITH ROLLBACK IMMEDIATE" in sql
    assert "DROP DATABASE [Foo]" in sql
    assert params == {"name": "Foo"}
    assert result.performed is True
    assert result.target == "Foo"


def test_sqlserver_identifier_is_bracket_escaped():
    runner = _Runner()

    drop_database(runner, _CONNECTORS, parse("Server=x;Database=we]ird"))

    assert "DROP DATABASE [we]]ird]" in runner.calls[0][1]


def test_postgres_drop_terminates_backends_then_drops_if_exists():
    runner = _Runner()
    descriptor = parse("Host=db;Database=app;Username=u;Password=p")

    drop_database(runner, _CONNECTORS, descriptor)

    (admin1, terminate, params), (admin2, drop, drop_params) = runner.calls
    assert admin1.database == admin2.database == "postgres"
    assert "pg_terminate_backend" in terminate
    assert "datname = @name" in terminate
    assert params == {"name": "app"}
    assert drop == 'DROP DATABASE IF EXISTS "app"'
    assert drop_params == {}


def test_postgres_drop_is_idempotent():
    runner = _Runner()
    descriptor = parse("postgres://u:p@db/app")

    first = drop_database(runner, _CONNECTORS, descriptor)
    second = drop_database(runner, _CONNECTORS, descriptor)

    assert first.performed and second.performed
    assert len(runner.calls) == 4


@pytest.mark.parametrize(
    "value", ["Server=x;Database=Foo", "Host=db;Database=app"]
)
def test_dry_run_executes_nothing(value: str):
    runner = _Runner()

    result = drop_database(runner, _CONNECTORS, parse(value), dry_run=True)

    assert runner.calls == []
    assert result.dry_run is True
    assert result.performed is False
    assert result.steps
    assert result.describe().startswith("Would drop")


def test_missing_database_name_is_name_not_found():
    with pytest.raises(DropError) as info:
        drop_database(_Runner(), _CONNECTORS, parse("Server=x;User Id=sa;Password=pw"))

    assert info.value.kind is ErrorKind.NAME_NOT_FOUND
    assert "pw" not in str(info.value)


def test_query_failure_is_operation_failed():
    runner = _Runner(fail_on="DROP DATABASE")

    with pytest.raises(DropError) as info:
        drop_database(runner, _CONNECTORS, parse("Host=db;Database=app"))

    assert info.value.kind is ErrorKind.OPERATION_FAILED
    assert "app" in str(info.value)
    assert "permission denied" in str(info.value)
    assert isinstance(info.value.__cause__, ExecutionError)


def test_acquisition_failure_propagates_unchanged():
    exc = AcquisitionError(
        ErrorKind.DOWNLOAD_FAILED, "offline", package_id="psycopg", version="3.2.3"
    )

    with pytest.raises(AcquisitionError) as info:
        drop_database(_Runner(exc=exc), _CONNECTORS, parse("Host=db;Database=app"))

    assert info.value is exc


def test_sqlite_drop_deletes_file_and_sidecars(tmp_path):
    db = tmp_path / "app.db"
    db.write_bytes(b"")
    (tmp_path / "app.db-wal").write_bytes(b"")
    runner = _Runner()

    result = drop_database(runner, _CONNECTORS, parse(f"Data Source={db}"))

    assert not db.exists()
    assert not (tmp_path / "app.db-wal").exists()
    assert result.performed is True
    assert set(result.removed_files) == {str(db), str(tmp_path / "app.db-wal")}
    assert runner.calls == []


def test_sqlite_drop_of_missing_file_is_noop(tmp_path):
    result = drop_database(_Runner(), _CONNECTORS, parse(f"Data Source={tmp_path / 'gone.db'}"))

    assert result.performed is False
    assert "Nothing to drop" in result.describe()


def test_sqlite_dry_run_of_missing_file_reports_nothing_to_drop(tmp_path):
    gone = tmp_path / "gone.db"

    result = drop_database(_Runner(), _CONNECTORS, parse(f"Data Source={gone}"), dry_run=True)

    assert result.dry_run is True
    assert result.target_exists is False
    assert result.describe() == f"Nothing to drop: {gone} does not exist"


def test_sqlite_dry_run_keeps_file(tmp_path):
    db = tmp_path / "app.db"
    db.write_bytes(b"")

    result = drop_database(_Runner(), _CONNECTORS, parse(f"Data Source={db}"), dry_run=True)

    assert db.exists()
    assert result.dialect is Dialect.SQLITE
    assert result.describe() == f"Would drop SQLite file {db}"


def test_sqlite_without_path_is_path_not_found():
    with pytest.raises(DropError) as info:
        drop_database(_Runner(), _CONNECTORS, parse("Mode=ReadOnly"))

    assert info.value.kind is ErrorKind.PATH_NOT_FOUND
