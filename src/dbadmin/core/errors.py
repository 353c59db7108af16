"""Error taxonomy for the database administration engine.

Every public engine operation either returns its value or raises one of the
exceptions below. Driver, network and filesystem errors never escape raw:
they are wrapped (``raise ... from exc``) so callers only ever need to catch
``DbAdminError`` and can branch on ``kind``.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """
    Closed set of failure kinds.

    Values:
        UNRECOGNIZED: Connection string matches no dialect heuristic.
        DOWNLOAD_FAILED: Driver archive could not be fetched or is corrupt.
        EXTRACT_FAILED: Driver archive could not be unpacked.
        ASSET_NOT_FOUND: No moniker/binary combination exists in the package.
        INCOMPATIBLE_BINARY: Driver module could not be imported.
        QUERY_FAILED: Connection or statement was rejected by the database.
        NAME_NOT_FOUND: Connection string carries no database name.
        PATH_NOT_FOUND: SQLite connection string carries no file path.
        OPERATION_FAILED: A drop step failed at the connection/query layer.
    """

    UNRECOGNIZED = "Unrecognized"
    DOWNLOAD_FAILED = "DownloadFailed"
    EXTRACT_FAILED = "ExtractFailed"
    ASSET_NOT_FOUND = "AssetNotFound"
    INCOMPATIBLE_BINARY = "IncompatibleBinary"
    QUERY_FAILED = "QueryFailed"
    NAME_NOT_FOUND = "NameNotFound"
    PATH_NOT_FOUND = "PathNotFound"
    OPERATION_FAILED = "OperationFailed"


class DbAdminError(RuntimeError):
    """Base class for all engine failures."""

    stage = "engine"

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"[{self.stage}:{self.kind.value}] {self.message}"


class ClassificationError(DbAdminError):
    """Raised when a connection string cannot be mapped to a dialect."""

    stage = "classify"

    def __init__(self, connection_string: str, message: str | None = None) -> None:
        self.connection_string = connection_string
        super().__init__(
            ErrorKind.UNRECOGNIZED,
            message or f"Unrecognized connection string: {connection_string!r}",
        )


class AcquisitionError(DbAdminError):
    """Raised when a driver package cannot be downloaded, extracted or located."""

    stage = "acquire"

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        package_id: str,
        version: str,
        monikers: tuple[str, ...] = (),
    ) -> None:
        self.package_id = package_id
        self.version = version
        self.monikers = monikers
        super().__init__(kind, message)


class LoadError(DbAdminError):
    """Raised when a resolved driver cannot be imported into the process."""

    stage = "load"

    def __init__(self, package_id: str, path: str, message: str) -> None:
        self.package_id = package_id
        self.path = path
        super().__init__(ErrorKind.INCOMPATIBLE_BINARY, message)


class ExecutionError(DbAdminError):
    """Raised when the database rejects a connection or statement."""

    stage = "execute"

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.QUERY_FAILED, message)


class DropError(DbAdminError):
    """Raised when a drop precondition is unmet or a drop step fails."""

    stage = "drop"
