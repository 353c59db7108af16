"""Dialect-agnostic schema introspection.

Both operations pick the connector's fixed catalog query and delegate to the
query runner; neither takes parameters.
"""

from __future__ import annotations

from typing import Mapping

from dbadmin.core.adapters.connectors import Connector
from dbadmin.core.connection import ConnectionDescriptor
from dbadmin.core.dialects import Dialect
from dbadmin.core.query import QueryResult, QueryRunner


def list_tables(
    runner: QueryRunner,
    connectors: Mapping[Dialect, Connector],
    descriptor: ConnectionDescriptor,
) -> QueryResult:
    """Return the user tables of the described database."""
    connector = connectors[descriptor.dialect]
    return runner.execute(descriptor, connector.tables_sql)


def get_info(
    runner: QueryRunner,
    connectors: Mapping[Dialect, Connector],
    descriptor: ConnectionDescriptor,
) -> QueryResult:
    """Return server/database version information as a single-row result."""
    connector = connectors[descriptor.dialect]
    return runner.execute(descriptor, connector.info_sql)
