from __future__ import annotations

import hashlib
import importlib.util
import logging
import os
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import requests

from dbadmin.core.drivers import DriverAsset
from dbadmin.core.errors import AcquisitionError, ErrorKind
from dbadmin.core.locks import KeyedLocks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """One `{package_id}/{version}` directory in the driver cache."""

    package_id: str
    version: str
    path: Path
    downloaded: bool
    extracted: bool


class DriverCache:
    """Downloads, extracts and locates driver wheels in an on-disk cache.

    Layout:
        {root}/{package_id}/{version}/{package_id}.{version}.whl
        {root}/{package_id}/{version}/extracted/lib/{moniker}/{binary}

    Download and extraction are skip-if-present; entries are never evicted
    automatically.
    """

    _CACHE_DIR_ENV = "DBADMIN_CACHE_DIR"
    _INDEX_ENV = "DBADMIN_PACKAGE_INDEX"
    _TIMEOUT_ENV = "DBADMIN_DOWNLOAD_TIMEOUT"
    _DEFAULT_INDEX = "https://pypi.org/pypi"
    _DEFAULT_TIMEOUT_SECONDS = 60
    _EXTRACTED = "extracted"

    def __init__(
        self,
        root: Path | None = None,
        *,
        session: Any | None = None,
        index_url: str | None = None,
        timeout: int | None = None,
    ) -> None:
        """Create a driver cache rooted at `root` (or the configured location)."""
        self.root = root or self._build_cache_root()
        self.index_url = (index_url or os.getenv(self._INDEX_ENV) or self._DEFAULT_INDEX).rstrip("/")
        self.timeout = timeout or self._timeout_seconds()
        self._session = session
        self._locks = KeyedLocks()

    def _build_cache_root(self) -> Path:
        """Return the cache root, honoring env overrides."""
        cache_root = os.getenv(self._CACHE_DIR_ENV)
        if cache_root:
            return Path(cache_root)
        xdg = os.getenv("XDG_CACHE_HOME")
        base = Path(xdg) if xdg else Path.home() / ".cache"
        return base / "dbadmin" / "drivers"

    def _timeout_seconds(self) -> int:
        raw = os.getenv(self._TIMEOUT_ENV)
        if raw is None:
            return self._DEFAULT_TIMEOUT_SECONDS
        try:
            value = int(raw)
        except ValueError:
            return self._DEFAULT_TIMEOUT_SECONDS
        return value if value > 0 else self._DEFAULT_TIMEOUT_SECONDS

    @property
    def session(self):
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def entry_dir(self, asset: DriverAsset) -> Path:
        return self.root / asset.package_id / asset.version

    def ensure(self, asset: DriverAsset) -> Path:
        """
        Make sure the driver for `asset` is on disk and return its path.

        Raises:
            AcquisitionError: DownloadFailed, ExtractFailed or AssetNotFound.
        """
        if asset.bundled:
            return self._locate_bundled(asset)

        with self._locks.hold(asset.key):
            entry = self.entry_dir(asset)
            archive = entry / asset.archive_name
            extracted = entry / self._EXTRACTED

            if archive.exists():
                logger.debug("Archive cached: %s", archive)
            else:
                self._download(asset, archive)

            if extracted.is_dir():
                logger.debug("Archive already extracted: %s", extracted)
            else:
                self._extract(asset, archive, extracted)

            return self._resolve(asset, extracted)

    # ---- download -------------------------------------------------------

    def _download_failed(self, asset: DriverAsset, reason: str) -> AcquisitionError:
        return AcquisitionError(
            ErrorKind.DOWNLOAD_FAILED,
            f"Download of {asset.package_id} {asset.version} from {self.index_url} failed: {reason}",
            package_id=asset.package_id,
            version=asset.version,
        )

    def _select_wheel(self, asset: DriverAsset, files: list[dict]) -> dict | None:
        """Pick the published wheel whose python tag ranks best in the moniker chain."""
        wheels = [f for f in files if f.get("packagetype") == "bdist_wheel"]
        for moniker in asset.monikers:
            for wheel in wheels:
                parts = str(wheel.get("filename", ""))[: -len(".whl")].split("-")
                if len(parts) >= 5 and moniker in (parts[-3], *parts[-3].split(".")):
                    return wheel
        return wheels[0] if wheels else None

    def _download(self, asset: DriverAsset, archive: Path) -> None:
        """Fetch the wheel for `asset` from the package index into `archive`."""
        meta_url = f"{self.index_url}/{asset.package_id}/{asset.version}/json"
        logger.info("Resolving %s %s from %s", asset.package_id, asset.version, meta_url)
        try:
            response = self.session.get(meta_url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise self._download_failed(asset, str(exc)) from exc
        except ValueError as exc:
            raise self._download_failed(asset, f"invalid index metadata ({exc})") from exc
        if not isinstance(payload, dict):
            raise self._download_failed(
                asset, f"invalid index metadata (expected an object, got {type(payload).__name__})"
            )

        wheel = self._select_wheel(asset, list(payload.get("urls") or []))
        if wheel is None or not wheel.get("url"):
            raise self._download_failed(asset, "no wheel distribution published")

        logger.info("Downloading %s", wheel.get("filename") or wheel["url"])
        try:
            response = self.session.get(wheel["url"], timeout=self.timeout)
            response.raise_for_status()
            content = response.content
        except requests.RequestException as exc:
            raise self._download_failed(asset, str(exc)) from exc

        expected = (wheel.get("digests") or {}).get("sha256")
        if expected and hashlib.sha256(content).hexdigest() != expected:
            raise self._download_failed(asset, "sha256 digest mismatch")

        archive.parent.mkdir(parents=True, exist_ok=True)
        partial = archive.with_name(archive.name + ".part")
        try:
            partial.write_bytes(content)
            if not zipfile.is_zipfile(partial):
                raise self._download_failed(asset, "corrupted archive")
            partial.replace(archive)
        except OSError as exc:
            raise self._download_failed(asset, str(exc)) from exc
        finally:
            partial.unlink(missing_ok=True)

    # ---- extract --------------------------------------------------------

    def _extract_failed(self, asset: DriverAsset, archive: Path, reason: str) -> AcquisitionError:
        return AcquisitionError(
            ErrorKind.EXTRACT_FAILED,
            f"Extraction of {archive} ({asset.package_id} {asset.version}) failed: {reason}",
            package_id=asset.package_id,
            version=asset.version,
        )

    @staticmethod
    def _wheel_moniker(zf: zipfile.ZipFile) -> str | None:
        """Read the python tag(s) from `*.dist-info/WHEEL`, e.g. `py3` or `py2.py3`."""
        for name in zf.namelist():
            path = PurePosixPath(name)
            if path.name == "WHEEL" and path.parent.name.endswith(".dist-info"):
                tags: list[str] = []
                for line in zf.read(name).decode("utf-8").splitlines():
                    key, _, value = line.partition(":")
                    if key.strip() == "Tag" and value.strip():
                        python_tag = value.strip().split("-")[0]
                        for tag in python_tag.split("."):
                            if tag not in tags:
                                tags.append(tag)
                return ".".join(tags) or None
        return None

    def _extract(self, asset: DriverAsset, archive: Path, extracted: Path) -> None:
        """Unpack the wheel under `extracted/lib/{moniker}/`, all or nothing."""
        staging = extracted.with_name(f"{extracted.name}.tmp-{os.getpid()}")
        shutil.rmtree(staging, ignore_errors=True)
        logger.info("Extracting %s", archive)
        try:
            with zipfile.ZipFile(archive) as zf:
                moniker = self._wheel_moniker(zf)
                if moniker is None:
                    raise self._extract_failed(asset, archive, "missing WHEEL metadata")
                target = staging / "lib" / moniker
                target.mkdir(parents=True)
                resolved_target = target.resolve()
                for member in zf.infolist():
                    dest = (target / member.filename).resolve()
                    if not dest.is_relative_to(resolved_target):
                        raise self._extract_failed(
                            asset, archive, f"member escapes target: {member.filename}"
                        )
                zf.extractall(target)
            staging.replace(extracted)
        except (zipfile.BadZipFile, OSError, UnicodeDecodeError) as exc:
            raise self._extract_failed(asset, archive, str(exc)) from exc
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    # ---- resolve --------------------------------------------------------

    def _resolve(self, asset: DriverAsset, extracted: Path) -> Path:
        """Walk the moniker chain and return the first binary that exists."""
        for moniker in asset.monikers:
            lib = extracted / "lib" / moniker
            if not lib.is_dir():
                continue
            for name in asset.binaries:
                for candidate in (lib / name, lib / f"{name}.py"):
                    if candidate.exists():
                        logger.debug("Resolved %s -> %s", asset.key, candidate)
                        return candidate
        raise AcquisitionError(
            ErrorKind.ASSET_NOT_FOUND,
            f"No binary {list(asset.binaries)} for {asset.package_id} {asset.version} "
            f"under any of the monikers: {', '.join(asset.monikers)}",
            package_id=asset.package_id,
            version=asset.version,
            monikers=asset.monikers,
        )

    def _locate_bundled(self, asset: DriverAsset) -> Path:
        """Locate a driver that ships with the interpreter."""
        for name in asset.binaries:
            try:
                spec = importlib.util.find_spec(name)
            except (ImportError, ValueError):
                spec = None
            if spec is None or not spec.origin:
                continue
            origin = Path(spec.origin)
            return origin.parent if spec.submodule_search_locations else origin
        raise AcquisitionError(
            ErrorKind.ASSET_NOT_FOUND,
            f"Bundled driver {list(asset.binaries)} is not available in this interpreter",
            package_id=asset.package_id,
            version=asset.version,
        )

    # ---- inspection -----------------------------------------------------

    def entries(self) -> list[CacheEntry]:
        """List cached package/version directories."""
        out: list[CacheEntry] = []
        if not self.root.is_dir():
            return out
        for package_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            for version_dir in sorted(p for p in package_dir.iterdir() if p.is_dir()):
                archive = version_dir / f"{package_dir.name}.{version_dir.name}.whl"
                out.append(
                    CacheEntry(
                        package_id=package_dir.name,
                        version=version_dir.name,
                        path=version_dir,
                        downloaded=archive.exists(),
                        extracted=(version_dir / self._EXTRACTED).is_dir(),
                    )
                )
        return out

    def clear(self, asset: DriverAsset) -> bool:
        """Remove the cache entry for `asset`. Returns False if nothing was cached."""
        entry = self.entry_dir(asset)
        with self._locks.hold(asset.key):
            if not entry.exists():
                return False
            shutil.rmtree(entry)
        logger.info("Removed cache entry %s", entry)
        return True
