"""Key-value storage backends for conversation persistence.

A backend is a synchronous get/set/remove/keys primitive with finite
capacity. Writes that exceed capacity raise ``StorageCapacityError``; a
backend that cannot be used at all raises ``StorageUnavailableError``.
"""

import errno
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from agent_chat.errors import StorageCapacityError, StorageUnavailableError

logger = logging.getLogger(__name__)

_CAPACITY_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class KeyValueStorage(Protocol):
    """Host-provided durable key-value storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStorage:
    """In-process storage with an optional capacity limit.

    Args:
        capacity: Maximum total characters across all values, or None
            for unbounded.
    """

    def __init__(self, capacity: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._capacity = capacity

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._capacity is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(value) > self._capacity:
                raise StorageCapacityError(
                    f"Storing {key} needs {len(value)} chars, "
                    f"{self._capacity - used} available"
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileStorage:
    """Storage backed by one JSON file per key in a directory.

    Args:
        directory: Directory holding the files. Created on first use.
    """

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        return self._dir / f"{quote(key, safe='')}.json"

    def _ensure_dir(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create {self._dir}: {e}") from e

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError:
            logger.warning(f"Undecodable storage file: {path}")
            return ""
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        self._ensure_dir()
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            if e.errno in _CAPACITY_ERRNOS:
                raise StorageCapacityError(f"No space left writing {path}") from e
            raise StorageUnavailableError(f"Cannot write {path}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot remove {key}: {e}") from e

    def keys(self) -> list[str]:
        if not self._dir.exists():
            return []
        try:
            return [unquote(p.stem) for p in self._dir.glob("*.json")]
        except OSError as e:
            raise StorageUnavailableError(f"Cannot list {self._dir}: {e}") from e
