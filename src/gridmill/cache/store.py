"""Content-addressable cache store for extracted cell values."""

from __future__ import annotations

import json
import logging
import os
import shutil
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

from gridmill.exceptions import CacheReadError

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel type for a cache miss (``None`` is a valid cached value)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class CellCache(Protocol):
    """Key -> value store backing the extraction matrix.

    ``get`` never raises: any read failure is reported as ``MISSING``.
    ``set`` is best-effort and never raises either.
    """

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def clear(self) -> None: ...


class MemoryCache:
    """Process-local cache, mainly for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._entries.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class ResultCache:
    """File-based cache for extracted cell values.

    Cache structure:
        ~/.cache/gridmill/results/
        ├── 3f/
        │   └── 3fa1...e9.json   # {"value": <cell value>}
        └── a0/
            └── a07c...41.json

    Entries for removed columns or documents are never looked up again and
    simply stay on disk until ``clear()``.
    """

    RESULTS_DIR = "results"

    def __init__(self, cache_dir: Path | None = None):
        """Initialize the cache store.

        Args:
            cache_dir: Cache directory path. Defaults to ~/.cache/gridmill/
        """
        if cache_dir is None:
            cache_dir = Path.home() / ".cache" / "gridmill"
        self.cache_dir = Path(cache_dir)
        self.results_dir = self.cache_dir / self.RESULTS_DIR

    def _entry_path(self, key: str) -> Path:
        """Get path for a cache entry, sharded by key prefix."""
        return self.results_dir / key[:2] / f"{key}.json"

    def _atomic_json_write(self, path: Path, data: dict[str, Any]) -> None:
        """Write JSON data atomically using temp file + rename.

        Args:
            path: Target file path.
            data: JSON-serializable data.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(f".{os.getpid()}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            tmp_path.replace(path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def read(self, key: str) -> Any:
        """Read an entry, raising on unreadable data.

        Returns:
            Cached value or MISSING if no entry exists.

        Raises:
            CacheReadError: If the entry exists but cannot be read or parsed.
        """
        path = self._entry_path(key)
        try:
            with open(path, encoding="utf-8") as f:
                envelope = json.load(f)
        except FileNotFoundError:
            return MISSING
        except (OSError, ValueError) as e:
            raise CacheReadError(f"Unreadable cache entry {key}", str(e)) from e

        if not isinstance(envelope, dict) or "value" not in envelope:
            raise CacheReadError(f"Malformed cache entry {key}", f"Path: {path}")
        return envelope["value"]

    def get(self, key: str) -> Any:
        """Get a cached value.

        Args:
            key: Cell fingerprint.

        Returns:
            Cached value, or MISSING on a miss or any read failure.
        """
        try:
            value = self.read(key)
        except CacheReadError as e:
            logger.debug(f"Cache read failed, treating as miss: {e.message} ({e.details})")
            return MISSING

        if value is not MISSING:
            logger.debug(f"Cache hit: {key}")
        return value

    def set(self, key: str, value: Any) -> None:
        """Cache a value. Failures are logged and ignored.

        Args:
            key: Cell fingerprint.
            value: JSON-serializable cell value.
        """
        try:
            self._atomic_json_write(self._entry_path(key), {"value": value})
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to write cache entry {key}: {e}")

    def clear(self) -> None:
        """Remove every cached entry."""
        if self.results_dir.exists():
            shutil.rmtree(self.results_dir, ignore_errors=True)

    def info(self) -> dict[str, Any]:
        """Get cache info.

        Returns:
            Dict with the cache directory, entry count and size on disk.
        """
        entries = 0
        size = 0
        if self.results_dir.exists():
            for shard in self.results_dir.iterdir():
                if not shard.is_dir():
                    continue
                for entry in shard.iterdir():
                    if entry.suffix == ".json":
                        entries += 1
                        size += entry.stat().st_size

        return {
            "cache_dir": str(self.cache_dir),
            "entries": entries,
            "size_bytes": size,
        }


@lru_cache(maxsize=1)
def get_cache(cache_dir: str | None = None) -> ResultCache:
    """Get the global cache store instance.

    Args:
        cache_dir: Optional cache directory path.

    Returns:
        ResultCache instance.
    """
    return ResultCache(Path(cache_dir) if cache_dir else None)
