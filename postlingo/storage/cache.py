"""
Key-value storage for the runtime translation cache.

The runtime cache is advisory: every backend may lose or corrupt its data
at any time, and readers treat that as an empty cache.

- InMemoryCacheStorage: per-process, for tests and the API server
- JsonFileCacheStorage: one JSON file on disk, the client-side analogue of
  browser localStorage
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from postlingo.errors import PersistenceFailure

logger = logging.getLogger(__name__)


# =============================================================================
# Interface
# =============================================================================


class CacheStorage(ABC):
    """String key -> string value store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get a value, or None when absent or unreadable."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Set a value.

        Raises:
            PersistenceFailure: If the value could not be stored
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key."""
        pass


# =============================================================================
# In-Memory
# =============================================================================


class InMemoryCacheStorage(CacheStorage):
    """In-memory cache."""

    def __init__(self):
        self._cache: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._cache.get(key)

    async def set(self, key: str, value: str) -> None:
        self._cache[key] = value

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None


# =============================================================================
# JSON file
# =============================================================================


class JsonFileCacheStorage(CacheStorage):
    """
    All keys in a single JSON object on disk.

    File I/O is synchronous, like TranslationMapStore; the file is small and
    only read or written once per lookup.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed cache file {self.path}")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise PersistenceFailure(f"Cannot write cache file {self.path}: {e}") from e

    async def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    async def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    async def delete(self, key: str) -> bool:
        data = self._read_all()
        if key not in data:
            return False
        del data[key]
        self._write_all(data)
        return True
