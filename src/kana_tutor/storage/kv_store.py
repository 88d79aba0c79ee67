"""Key-value persistence adapters (in-memory and JSON-file backed)."""

import fcntl
import os
import tempfile
from pathlib import Path
from typing import Protocol


class QuotaExceededError(Exception):
    """A write would exceed the storage capacity."""

    def __init__(self, key: str, size: int, capacity: int):
        super().__init__(f"Writing {size} bytes to {key!r} exceeds capacity of {capacity} bytes")
        self.key = key
        self.size = size
        self.capacity = capacity


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def estimate_size(self, key: str) -> int: ...


def _byte_size(value: str) -> int:
    return len(value.encode("utf-8"))


class InMemoryKeyValueStore:
    """Dict-backed store with an optional total capacity.

    Args:
        capacity_bytes: Total bytes across all keys; None means unlimited.
    """

    def __init__(self, capacity_bytes: int | None = None):
        self.capacity_bytes = capacity_bytes
        self._data: dict[str, str] = {}
        self.write_count = 0

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        size = _byte_size(value)
        if self.capacity_bytes is not None:
            others = sum(_byte_size(v) for k, v in self._data.items() if k != key)
            if others + size > self.capacity_bytes:
                raise QuotaExceededError(key, size, self.capacity_bytes)
        self._data[key] = value
        self.write_count += 1

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def estimate_size(self, key: str) -> int:
        value = self._data.get(key)
        return _byte_size(value) if value is not None else 0


class FileKeyValueStore:
    """One JSON document per key under a directory (fcntl.flock + atomic write).

    Args:
        directory: Directory holding ``<key>.json`` files.
        capacity_bytes: Optional per-key size limit.
    """

    def __init__(self, directory: Path, capacity_bytes: int | None = None):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self.capacity_bytes = capacity_bytes

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = f.read()
            fcntl.flock(f, fcntl.LOCK_UN)
        return data

    def set(self, key: str, value: str) -> None:
        size = _byte_size(value)
        if self.capacity_bytes is not None and size > self.capacity_bytes:
            raise QuotaExceededError(key, size, self.capacity_bytes)
        path = self._path(key)
        lock_path = self.directory / (path.name + ".lock")
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
            with tempfile.NamedTemporaryFile(
                "w", dir=self.directory, delete=False, suffix=".json", encoding="utf-8"
            ) as tmp:
                tmp.write(value)
            os.replace(tmp.name, path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def estimate_size(self, key: str) -> int:
        path = self._path(key)
        return path.stat().st_size if path.exists() else 0
