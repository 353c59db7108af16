"""Unified query execution.

Callers always write named parameters as `@name`; they are rewritten to the
loaded driver's DB-API `paramstyle` just before execution. Results are fully
materialized and the connection is closed before returning, on success and
on failure alike.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Mapping, Protocol

from dbadmin.core.adapters.connectors import Connector
from dbadmin.core.connection import ConnectionDescriptor
from dbadmin.core.errors import ExecutionError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""(?P<literal>'(?:[^']|'')*'|"(?:[^"]|"")*")
      |(?P<comment>--[^\n]*|/\*.*?\*/)
      |(?<![@\w])@(?P<name>[A-Za-z_][A-Za-z0-9_]*)
      |(?P<percent>%)""",
    re.VERBOSE | re.DOTALL,
)


@dataclass(frozen=True)
class QueryResult:
    """
    Tabular query result.

    Attributes:
        columns: Column names in result order (empty for statements that
                 return no result set).
        rows: Rows in result order; each row is a tuple aligned to `columns`.
    """

    columns: tuple[str, ...] = ()
    rows: tuple[tuple[Any, ...], ...] = ()

    def __len__(self) -> int:
        return len(self.rows)

    def as_dicts(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


class QueryRunner(Protocol):
    """Interface for executing SQL against a described connection."""

    def execute(
        self,
        descriptor: ConnectionDescriptor,
        query: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> QueryResult:
        """Execute `query` and return the materialized result."""
        ...


def bind(
    query: str, parameters: Mapping[str, Any], paramstyle: str
) -> tuple[str, Any]:
    """
    Rewrite `@name` placeholders for `paramstyle`.

    Only names present in `parameters` are rewritten (a leading `@` on a
    mapping key is ignored), so `@@VERSION` and unrelated `@` text survive.
    Quoted literals and SQL comments are left untouched. For percent-based
    styles, literal `%` is doubled when parameters are bound.

    Returns:
        The rewritten query and the argument object to pass to `execute()`
        (a dict for named styles, a list for positional ones, or None when
        no parameters are bound).
    """
    values = {str(k).lstrip("@"): v for k, v in parameters.items()}
    if not values:
        return query, None

    percent_style = paramstyle in ("pyformat", "format")
    named_style = paramstyle in ("named", "pyformat")
    positional: list[Any] = []
    used: dict[str, Any] = {}

    def _replace(match: re.Match) -> str:
        verbatim = match.group("literal") or match.group("comment")
        if verbatim is not None:
            return verbatim.replace("%", "%%") if percent_style else verbatim
        if match.group("percent") is not None:
            return "%%" if percent_style else "%"

        name = match.group("name")
        if name not in values:
            return match.group(0)
        if named_style:
            used[name] = values[name]
            return f"%({name})s" if paramstyle == "pyformat" else f":{name}"
        positional.append(values[name])
        if paramstyle == "qmark":
            return "?"
        if paramstyle == "numeric":
            return f":{len(positional)}"
        return "%s"

    rewritten = _TOKEN_RE.sub(_replace, query)
    return rewritten, (used if named_style else positional)


def _materialize(cursor: Any) -> QueryResult:
    """Read the first result set of `cursor` into memory."""
    while True:
        if cursor.description:
            columns = tuple(str(col[0]) for col in cursor.description)
            rows = tuple(tuple(row) for row in cursor.fetchall())
            return QueryResult(columns=columns, rows=rows)
        nextset = getattr(cursor, "nextset", None)
        if nextset is None or not nextset():
            return QueryResult()


def execute(
    module: ModuleType,
    connector: Connector,
    descriptor: ConnectionDescriptor,
    query: str,
    parameters: Mapping[str, Any] | None = None,
) -> QueryResult:
    """
    Execute `query` through the loaded driver `module`.

    Raises:
        ExecutionError: on any connection, binding or execution failure.
    """
    statement, args = bind(query, parameters or {}, getattr(module, "paramstyle", "qmark"))
    target = descriptor.database or descriptor.path or descriptor.dialect.value

    try:
        conn = connector.connect(module, descriptor)
    except Exception as exc:  # noqa: BLE001
        raise ExecutionError(
            f"Could not connect to {target} ({descriptor.redacted}): {exc}"
        ) from exc

    try:
        cursor = conn.cursor()
        if args is None:
            cursor.execute(statement)
        else:
            cursor.execute(statement, args)
        result = _materialize(cursor)
        logger.debug("Query on %s returned %d row(s)", target, len(result))
        return result
    except Exception as exc:  # noqa: BLE001
        raise ExecutionError(f"Query failed on {target}: {exc}") from exc
    finally:
        conn.close()
