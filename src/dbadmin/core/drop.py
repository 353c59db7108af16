"""Drop-database orchestration per dialect.

Sequences are linear and never retried:
  - SQL Server: from `master`, switch the database to single-user mode
    (rolling back open transactions) and drop it, as one batch.
  - PostgreSQL: from `postgres`, terminate the database's backends, then
    `DROP DATABASE IF EXISTS`.
  - SQLite: delete the database file.

A failed `DROP DATABASE` after the single-user switch on SQL Server leaves
the database in single-user mode; no compensating statement is issued.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from dbadmin.core.adapters.connectors import Connector
from dbadmin.core.connection import ConnectionDescriptor
from dbadmin.core.dialects import Dialect
from dbadmin.core.errors import DropError, ErrorKind, ExecutionError
from dbadmin.core.query import QueryRunner

logger = logging.getLogger(__name__)

_SQLITE_SIDECARS = ("-wal", "-shm", "-journal")


@dataclass(frozen=True)
class DropStep:
    """One statement of a drop sequence, with its bound parameters."""

    sql: str
    parameters: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DropResult:
    """
    Outcome of a drop request.

    Attributes:
        dialect: Dialect of the target.
        target: Database name, or file path for SQLite.
        steps: Statements executed (or that would run when dry-running).
        dry_run: True when nothing was executed or deleted.
        performed: True when statements ran or a file was deleted.
        removed_files: Files deleted (SQLite only).
        target_exists: False when the SQLite file was absent (always True
                       for server databases, whose existence is checked
                       by the statements themselves).
    """

    dialect: Dialect
    target: str
    steps: tuple[DropStep, ...] = ()
    dry_run: bool = False
    performed: bool = False
    removed_files: tuple[str, ...] = ()
    target_exists: bool = True

    def describe(self) -> str:
        """Human readable summary of the (would-be) action."""
        verb = "Would drop" if self.dry_run else "Dropped"
        if self.dialect == Dialect.SQLITE:
            if not self.target_exists or (not self.dry_run and not self.performed):
                return f"Nothing to drop: {self.target} does not exist"
            return f"{verb} SQLite file {self.target}"
        return f"{verb} {self.dialect.value} database {self.target}"


def sqlserver_steps(connector: Connector, name: str) -> tuple[DropStep, ...]:
    quoted = connector.quote_identifier(name)
    batch = (
        "IF DB_ID(@name) IS NOT NULL\n"
        "BEGIN\n"
        f"    ALTER DATABASE {quoted} SET SINGLE_USER WITH ROLLBACK IMMEDIATE;\n"
        f"    DROP DATABASE {quoted};\n"
        "END"
    )
    return (DropStep(batch, {"name": name}),)


def postgres_steps(connector: Connector, name: str) -> tuple[DropStep, ...]:
    terminate = (
        "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
        "WHERE datname = @name AND pid <> pg_backend_pid()"
    )
    drop = f"DROP DATABASE IF EXISTS {connector.quote_identifier(name)}"
    return (DropStep(terminate, {"name": name}), DropStep(drop))


_STEP_BUILDERS = {
    Dialect.SQLSERVER: sqlserver_steps,
    Dialect.POSTGRES: postgres_steps,
}


def _drop_server_database(
    runner: QueryRunner,
    connector: Connector,
    descriptor: ConnectionDescriptor,
    *,
    dry_run: bool,
) -> DropResult:
    name = descriptor.database
    if not name:
        raise DropError(
            ErrorKind.NAME_NOT_FOUND,
            f"No database name in connection string: {descriptor.redacted}",
        )

    steps = _STEP_BUILDERS[descriptor.dialect](connector, name)
    if dry_run:
        return DropResult(dialect=descriptor.dialect, target=name, steps=steps, dry_run=True)

    admin = descriptor.admin()
    logger.info("Dropping %s database %s via %s", descriptor.dialect.value, name, admin.database)
    for step in steps:
        try:
            runner.execute(admin, step.sql, step.parameters)
        except ExecutionError as exc:
            raise DropError(
                ErrorKind.OPERATION_FAILED,
                f"Dropping database {name} failed: {exc.message}",
            ) from exc
    return DropResult(dialect=descriptor.dialect, target=name, steps=steps, performed=True)


def _drop_sqlite_file(descriptor: ConnectionDescriptor, *, dry_run: bool) -> DropResult:
    raw_path = descriptor.path
    if not raw_path:
        raise DropError(
            ErrorKind.PATH_NOT_FOUND,
            f"No database file path in connection string: {descriptor.redacted}",
        )
    if raw_path == ":memory:":
        return DropResult(
            dialect=Dialect.SQLITE, target=raw_path, dry_run=dry_run, target_exists=False
        )

    path = Path(raw_path)
    if not path.exists():
        logger.info("SQLite file %s does not exist; nothing to drop", path)
        return DropResult(
            dialect=Dialect.SQLITE, target=str(path), dry_run=dry_run, target_exists=False
        )
    if dry_run:
        return DropResult(dialect=Dialect.SQLITE, target=str(path), dry_run=True)

    removed: list[str] = []
    candidates = [path, *(path.with_name(path.name + s) for s in _SQLITE_SIDECARS)]
    try:
        for candidate in candidates:
            if candidate.exists():
                candidate.unlink()
                removed.append(str(candidate))
    except OSError as exc:
        raise DropError(
            ErrorKind.OPERATION_FAILED,
            f"Deleting SQLite file {path} failed: {exc}",
        ) from exc

    logger.info("Deleted SQLite file %s", path)
    return DropResult(
        dialect=Dialect.SQLITE,
        target=str(path),
        performed=True,
        removed_files=tuple(removed),
    )


def drop_database(
    runner: QueryRunner,
    connectors: Mapping[Dialect, Connector],
    descriptor: ConnectionDescriptor,
    *,
    dry_run: bool = False,
) -> DropResult:
    """
    Drop the database described by `descriptor`.

    With `dry_run`, nothing is executed or deleted; the returned result
    lists the statements (or the file) that would be affected.

    Raises:
        DropError: NameNotFound / PathNotFound when the connection string
            lacks the target, OperationFailed when a step fails.
        AcquisitionError, LoadError: driver problems, unchanged.
    """
    if descriptor.dialect == Dialect.SQLITE:
        return _drop_sqlite_file(descriptor, dry_run=dry_run)
    return _drop_server_database(
        runner, connectors[descriptor.dialect], descriptor, dry_run=dry_run
    )
