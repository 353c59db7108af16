from __future__ import annotations

import hashlib
import io
import sys
import zipfile
from pathlib import Path

import pytest
import requests

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


def build_wheel(
    module: str = "fakedrv",
    *,
    tag: str = "py3-none-any",
    source: str = "paramstyle = 'qmark'\n",
) -> bytes:
    """Return the bytes of a minimal wheel containing one package module."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(f"{module}/__init__.py", source)
        zf.writestr(
            f"{module}-1.0.dist-info/WHEEL",
            f"Wheel-Version: 1.0\nRoot-Is-Purelib: true\nTag: {tag}\n",
        )
        zf.writestr(f"{module}-1.0.dist-info/METADATA", f"Name: {module}\nVersion: 1.0\n")
    return buf.getvalue()


class StubResponse:
    def __init__(self, *, json_data=None, content: bytes = b"", status_code: int = 200):
        self._json = json_data
        self.content = content
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


class StubIndex:
    """Stands in for requests.Session against a JSON package index."""

    def __init__(
        self,
        wheel: bytes,
        *,
        filename: str = "fakedrv-1.0-py3-none-any.whl",
        sha256: str | None = None,
        metadata_status: int = 200,
    ):
        self.wheel = wheel
        self.filename = filename
        self.sha256 = sha256 if sha256 is not None else hashlib.sha256(wheel).hexdigest()
        self.metadata_status = metadata_status
        self.calls: list[str] = []

    def get(self, url: str, timeout=None) -> StubResponse:
        self.calls.append(url)
        if url.endswith("/json"):
            if self.metadata_status != 200:
                return StubResponse(status_code=self.metadata_status)
            return StubResponse(
                json_data={
                    "urls": [
                        {
                            "packagetype": "sdist",
                            "filename": "fakedrv-1.0.tar.gz",
                            "url": "https://files.example/fakedrv-1.0.tar.gz",
                        },
                        {
                            "packagetype": "bdist_wheel",
                            "filename": self.filename,
                            "url": f"https://files.example/{self.filename}",
                            "digests": {"sha256": self.sha256},
                        },
                    ]
                }
            )
        return StubResponse(content=self.wheel)


@pytest.fixture
def isolated_imports(monkeypatch):
    """Restore sys.path and drop test driver modules after the test."""
    monkeypatch.setattr(sys, "path", list(sys.path))
    yield
    for name in [m for m in sys.modules if m.startswith("fakedrv")]:
        sys.modules.pop(name, None)
