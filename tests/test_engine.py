import pytest

from dbadmin.core.adapters.package_cache import DriverCache
from dbadmin.core.dialects import Dialect
from dbadmin.core.drivers import DriverAsset
from dbadmin.core.engine import DbAdmin
from dbadmin.core.errors import AcquisitionError, DropError, ErrorKind
from dbadmin.core.registry import DriverRegistry


class _OfflineCache:
    root = None

    def __init__(self):
        self.calls = 0

    def ensure(self, asset):
        self.calls += 1
        raise AcquisitionError(
            ErrorKind.DOWNLOAD_FAILED,
            "network unreachable",
            package_id=asset.package_id,
            version=asset.version,
        )


def test_sqlite_lifecycle_end_to_end(tmp_path):
    engine = DbAdmin(DriverCache(tmp_path / "cache"))
    db = tmp_path / "test.db"
    connection = f"Data Source={db}"

    assert engine.classify("Data Source=test.db") == Dialect.SQLITE

    assert len(engine.list_tables(connection)) == 0
    assert db.exists()

    engine.execute(connection, "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
    engine.execute(connection, "INSERT INTO users (name) VALUES (@name)", {"name": "ada"})

    tables = engine.list_tables(connection)
    assert tables.as_dicts() == [{"table_name": "users"}]

    rows = engine.execute(connection, "SELECT name FROM users WHERE id = @id", {"id": 1})
    assert rows.rows == (("ada",),)

    info = engine.get_info(connection).as_dicts()[0]
    assert info["table_count"] == 1

    first = engine.drop_database(connection)
    assert first.performed is True
    assert not db.exists()

    second = engine.drop_database(connection)
    assert second.performed is False


def test_sqlite_driver_is_loaded_once(tmp_path):
    imports: list[str] = []

    def importer(name, path):
        imports.append(name)
        import sqlite3

        return sqlite3

    engine = DbAdmin(DriverCache(tmp_path), DriverRegistry(importer=importer))

    first = engine.load_driver(Dialect.SQLITE)
    second = engine.load_driver(Dialect.SQLITE)

    assert first is second
    assert len(imports) == 1


def test_acquisition_error_propagates_from_execute():
    cache = _OfflineCache()
    engine = DbAdmin(cache)

    with pytest.raises(AcquisitionError) as info:
        engine.execute("Host=db;Database=app", "SELECT 1")

    assert info.value.kind is ErrorKind.DOWNLOAD_FAILED
    assert info.value.package_id == "psycopg"
    assert cache.calls == 1


def test_acquisition_error_propagates_from_drop():
    engine = DbAdmin(_OfflineCache())

    with pytest.raises(AcquisitionError):
        engine.drop_database("Server=x;Database=Foo")


def test_dry_run_drop_needs_no_driver():
    cache = _OfflineCache()
    engine = DbAdmin(cache)

    result = engine.drop_database("Server=x;Database=Foo", dry_run=True)

    assert result.dry_run is True
    assert cache.calls == 0


def test_drop_without_database_name_raises():
    engine = DbAdmin(_OfflineCache())

    with pytest.raises(DropError) as info:
        engine.drop_database("Host=db;Username=u")

    assert info.value.kind is ErrorKind.NAME_NOT_FOUND


def test_custom_assets_override_defaults(tmp_path):
    asset = DriverAsset("sqlite3", "0", "sqlite3", bundled=True)
    engine = DbAdmin(DriverCache(tmp_path), assets={Dialect.SQLITE: asset})

    assert engine.ensure_driver(Dialect.SQLITE).name.startswith("sqlite3")
