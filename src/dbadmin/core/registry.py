"""Process-wide registry of loaded driver modules.

A driver is imported at most once per registry. Failed imports are not
remembered, so the next call retries.
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from types import ModuleType

from dbadmin.core.drivers import DriverAsset
from dbadmin.core.errors import LoadError
from dbadmin.core.locks import KeyedLocks

logger = logging.getLogger(__name__)


def import_driver(name: str, path: Path) -> ModuleType:
    """
    Import module `name` from the directory that contains `path`.

    The containing directory is put at the front of `sys.path` so the
    cached copy wins over any installed distribution of the same name.
    """
    search_root = str(path.parent)
    if search_root not in sys.path:
        sys.path.insert(0, search_root)
    return importlib.import_module(name)


class DriverRegistry:
    """Thread-safe, load-if-absent set of driver modules keyed by package identity."""

    def __init__(self, importer=import_driver) -> None:
        self._importer = importer
        self._locks = KeyedLocks()
        self._loaded: dict[str, ModuleType] = {}

    def is_loaded(self, asset: DriverAsset) -> bool:
        return asset.key in self._loaded

    def get(self, asset: DriverAsset) -> ModuleType | None:
        return self._loaded.get(asset.key)

    def loaded(self) -> list[str]:
        """Return the keys of all loaded drivers."""
        return sorted(self._loaded)

    def load_if_absent(self, asset: DriverAsset, path: Path) -> ModuleType:
        """
        Load the driver at `path` unless it was already loaded.

        Raises:
            LoadError: the module could not be imported (incompatible
                binary, missing native library, missing dependency).
        """
        module = self._loaded.get(asset.key)
        if module is not None:
            return module

        with self._locks.hold(asset.key):
            module = self._loaded.get(asset.key)
            if module is not None:
                return module

            name = path.stem if path.suffix == ".py" else path.name
            logger.info("Loading driver %s from %s", asset.key, path)
            try:
                module = self._importer(name, path)
            except (ImportError, OSError, SyntaxError) as exc:
                raise LoadError(
                    asset.package_id,
                    str(path),
                    f"Could not load {asset.package_id} {asset.version} from {path}: {exc}",
                ) from exc

            self._loaded[asset.key] = module
            return module
