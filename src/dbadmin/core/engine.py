"""Engine service object tying classification, drivers and execution together.

A `DbAdmin` owns one driver cache and one driver registry. Its lifetime is
the process (the CLI builds one per invocation); tests build a fresh one per
test.
"""

from __future__ import annotations

from pathlib import Path
from types import ModuleType
from typing import Any, Mapping

from dbadmin.core.adapters.connectors import Connector, default_connectors
from dbadmin.core.adapters.package_cache import DriverCache
from dbadmin.core.connection import ConnectionDescriptor, parse
from dbadmin.core.dialects import Dialect, classify
from dbadmin.core.drivers import DriverAsset, default_assets
from dbadmin.core.drop import DropResult, drop_database
from dbadmin.core.query import QueryResult, execute
from dbadmin.core.registry import DriverRegistry
from dbadmin.core.schema import get_info, list_tables


class DbAdmin:
    """Provider-agnostic database administration engine."""

    def __init__(
        self,
        cache: DriverCache | None = None,
        registry: DriverRegistry | None = None,
        *,
        assets: Mapping[Dialect, DriverAsset] | None = None,
        connectors: Mapping[Dialect, Connector] | None = None,
    ) -> None:
        self.cache = cache or DriverCache()
        self.registry = registry or DriverRegistry()
        self.assets = dict(assets or default_assets())
        self.connectors = dict(connectors or default_connectors())

    @staticmethod
    def classify(connection_string: str) -> Dialect:
        return classify(connection_string)

    @staticmethod
    def describe(connection: str | ConnectionDescriptor) -> ConnectionDescriptor:
        """Return `connection` as a descriptor, parsing raw strings."""
        if isinstance(connection, ConnectionDescriptor):
            return connection
        return parse(connection)

    def ensure_driver(self, dialect: Dialect) -> Path:
        """Make sure the driver for `dialect` is cached and return its path."""
        return self.cache.ensure(self.assets[dialect])

    def load_driver(self, dialect: Dialect) -> ModuleType:
        """Ensure and load the driver for `dialect`, at most once per engine."""
        asset = self.assets[dialect]
        module = self.registry.get(asset)
        if module is not None:
            return module
        return self.registry.load_if_absent(asset, self.ensure_driver(dialect))

    def execute(
        self,
        connection: str | ConnectionDescriptor,
        query: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> QueryResult:
        descriptor = self.describe(connection)
        module = self.load_driver(descriptor.dialect)
        return execute(
            module,
            self.connectors[descriptor.dialect],
            descriptor,
            query,
            parameters,
        )

    def list_tables(self, connection: str | ConnectionDescriptor) -> QueryResult:
        return list_tables(self, self.connectors, self.describe(connection))

    def get_info(self, connection: str | ConnectionDescriptor) -> QueryResult:
        return get_info(self, self.connectors, self.describe(connection))

    def drop_database(
        self, connection: str | ConnectionDescriptor, *, dry_run: bool = False
    ) -> DropResult:
        return drop_database(
            self, self.connectors, self.describe(connection), dry_run=dry_run
        )
