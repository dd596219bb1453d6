from __future__ import annotations

import io
import zipfile
import zlib
from typing import Protocol

from .errors import ArchiveError, EntryNotFound


class ArchiveReader(Protocol):
    """Read-only view over the named entries of a packaged document."""

    def has_entry(self, path: str) -> bool: ...

    def read_text(self, path: str) -> str: ...

    def read_bytes(self, path: str) -> bytes: ...

    def names(self) -> list[str]: ...


class Archive:
    """In-memory zip archive with exact, case-sensitive entry lookups."""

    def __init__(self, zf: zipfile.ZipFile) -> None:
        self._zf = zf
        self._names = tuple(zf.namelist())
        self._lookup = frozenset(self._names)

    @classmethod
    def load(cls, data: bytes, *, max_bytes: int | None = None) -> "Archive":
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ArchiveError(f"Expected a bytes buffer, got {type(data).__name__}")
        if max_bytes is not None and len(data) > max_bytes:
            raise ArchiveError(
                f"Archive is {len(data)} bytes, larger than the {max_bytes} byte limit"
            )
        try:
            zf = zipfile.ZipFile(io.BytesIO(bytes(data)), "r")
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, OSError, ValueError) as exc:
            raise ArchiveError(f"Not a readable zip archive: {exc}") from exc
        return cls(zf)

    def names(self) -> list[str]:
        return list(self._names)

    def has_entry(self, path: str) -> bool:
        return path in self._lookup

    def read_bytes(self, path: str) -> bytes:
        if path not in self._lookup:
            raise EntryNotFound(path)
        try:
            with self._zf.open(path, "r") as handle:
                return handle.read()
        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as exc:
            raise ArchiveError(f"Failed to read {path}: {exc}") from exc

    def read_text(self, path: str) -> str:
        raw = self.read_bytes(path)
        # utf-8-sig drops a leading BOM; damaged sequences become U+FFFD.
        return raw.decode("utf-8-sig", errors="replace")

    def close(self) -> None:
        self._zf.close()

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
