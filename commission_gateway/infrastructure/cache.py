"""Reference-data cache with per-entry expiry.

Both resolvers share one cache instance injected at construction time. The
store only promises get / set-with-TTL / force-expire; it never validates
what it holds, so corruption handling stays with the resolvers.
"""

import json
import logging
import os
import re
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

from commission_gateway.infrastructure.observability.metrics import cache_write_failure_counter

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.]")


def safe_cache_key(prefix: str, raw: str) -> str:
    """Build a storage-safe key; anything outside [A-Za-z0-9_.] becomes '_'"""
    return f"{prefix}_{_UNSAFE_KEY_CHARS.sub('_', raw)}"


class ReferenceDataCache(ABC):
    @abstractmethod
    def get(self, key: str) -> Tuple[Any, bool]:
        """Return (value, hit). Expired or absent entries report (None, False)."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store value for ttl seconds."""
        raise NotImplementedError

    @abstractmethod
    def force_expire(self, key: str) -> None:
        """Expire an entry immediately; a no-op for unknown keys."""
        raise NotImplementedError


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


class InMemoryCache(ReferenceDataCache):
    """Process-local cache; the clock is injectable for TTL tests"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Tuple[Any, bool]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None, False
            return entry.value, True

    def set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            self._entries[key] = _CacheEntry(value=value, expires_at=self._clock() + ttl)

    def force_expire(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class FileSystemCache(ReferenceDataCache):
    """
    One JSON document per key under a directory, surviving process restarts.

    Each file stores {"value": ..., "expires_at": <epoch seconds>}. Writes go
    to a temp file first and are moved into place, so readers never observe a
    half-written entry. Unreadable files count as misses and failed writes are
    logged and skipped, so a broken store degrades to no caching.
    """

    def __init__(self, directory: str | Path, clock: Callable[[], float] = time.time):
        self.directory = Path(directory)
        self._clock = clock
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create cache directory", extra={"cache_dir": str(self.directory), "error": str(e)})
        if self.directory.is_dir() and not os.access(self.directory, os.W_OK):
            logger.warning("Cache directory not writable", extra={"cache_dir": str(self.directory)})

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Tuple[Any, bool]:
        path = self._path(key)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
            value = document["value"]
            expires_at = float(document["expires_at"])
        except FileNotFoundError:
            return None, False
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Unreadable cache file", extra={"cache_key": key, "error": str(e)})
            return None, False

        if expires_at <= self._clock():
            self.force_expire(key)
            return None, False
        return value, True

    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store value for ttl seconds; a failing store is logged and the write skipped."""
        document = {"value": value, "expires_at": self._clock() + ttl}
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        except OSError as e:
            self._skip("set", key, e)
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle)
            os.replace(tmp_name, self._path(key))
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            self._skip("set", key, e)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def force_expire(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            self._skip("force_expire", key, e)

    def _skip(self, operation: str, key: str, error: OSError) -> None:
        cache_write_failure_counter.labels(operation=operation).inc()
        logger.warning(
            "Cache store failed, continuing without it",
            extra={"cache_key": key, "operation": operation, "error": str(error)},
        )
