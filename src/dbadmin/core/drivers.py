"""Static driver descriptors and the runtime moniker fallback chain.

Drivers are DB-API modules shipped as wheels. A moniker is a wheel python
tag (`cp312`, `abi3`, `py3`, ...); extracted packages keep their files under
`lib/{moniker}/` so several tags can coexist in one cache entry.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Mapping

from dbadmin.core.dialects import Dialect

# Descending list walked after the interpreter's own tag.
KNOWN_MONIKERS: tuple[str, ...] = (
    "cp314",
    "cp313",
    "cp312",
    "cp311",
    "cp310",
    "cp39",
    "abi3",
    "py3",
    "py2.py3",
)


@dataclass(frozen=True)
class DriverAsset:
    """
    Identifies a downloadable driver package.

    Attributes:
        package_id: Distribution name on the package index.
        version: Pinned version.
        binary: Preferred importable module name.
        fallback_binaries: Module names tried in order when `binary` is absent.
        monikers: Acceptable monikers, in preference order.
        bundled: True when the driver ships with the interpreter and is
                 located through the import system instead of downloaded.
    """

    package_id: str
    version: str
    binary: str
    fallback_binaries: tuple[str, ...] = ()
    monikers: tuple[str, ...] = ()
    bundled: bool = False

    @property
    def key(self) -> str:
        """Registry key: package identity including version."""
        return f"{self.package_id}/{self.version}"

    @property
    def binaries(self) -> tuple[str, ...]:
        return (self.binary, *self.fallback_binaries)

    @property
    def archive_name(self) -> str:
        return f"{self.package_id}.{self.version}.whl"


def preferred_moniker() -> str:
    """Return the wheel python tag of the running interpreter (e.g. `cp312`)."""
    return f"cp{sys.version_info.major}{sys.version_info.minor}"


def moniker_chain(preferred: str | None = None) -> tuple[str, ...]:
    """Return the preferred moniker followed by the known list, without duplicates."""
    chain: list[str] = []
    for moniker in (preferred or preferred_moniker(), *KNOWN_MONIKERS):
        if moniker not in chain:
            chain.append(moniker)
    return tuple(chain)


_SQLSERVER_VERSION_ENV = "DBADMIN_SQLSERVER_VERSION"
_POSTGRES_VERSION_ENV = "DBADMIN_POSTGRES_VERSION"
_DEFAULT_SQLSERVER_VERSION = "1.15.0"
_DEFAULT_POSTGRES_VERSION = "3.2.3"


def default_assets() -> Mapping[Dialect, DriverAsset]:
    """Return the driver descriptor for each dialect, honoring version overrides."""
    chain = moniker_chain()
    return {
        Dialect.SQLSERVER: DriverAsset(
            package_id="python-tds",
            version=os.getenv(_SQLSERVER_VERSION_ENV) or _DEFAULT_SQLSERVER_VERSION,
            binary="pytds",
            monikers=chain,
        ),
        Dialect.POSTGRES: DriverAsset(
            package_id="psycopg",
            version=os.getenv(_POSTGRES_VERSION_ENV) or _DEFAULT_POSTGRES_VERSION,
            binary="psycopg",
            monikers=chain,
        ),
        Dialect.SQLITE: DriverAsset(
            package_id="sqlite3",
            version=".".join(str(v) for v in sys.version_info[:3]),
            binary="sqlite3",
            fallback_binaries=("pysqlite3",),
            bundled=True,
        ),
    }
