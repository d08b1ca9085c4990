"""
Cache - Article memoization with pluggable backends.

Provides:
- MemoryCache: Thread-safe in-memory cache with TTL, LRU eviction and an
  optional background sweep of expired entries
- DiskCache: Persistent JSON-file cache for articles
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
import weakref
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Generic, TypeVar

from .models import Article

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_TTL = 24 * 60 * 60  # seconds
DEFAULT_CLEANUP_INTERVAL = 7 * 24 * 60 * 60  # seconds


@dataclass
class CacheEntry(Generic[V]):
    key: str
    value: V
    created_at: datetime
    expires_at: datetime | None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at is not None and self.expires_at <= (now or datetime.now())


def _expiry(ttl: float | None, default_ttl: float | None) -> datetime | None:
    """None uses the default TTL; zero or negative never expires."""
    if ttl is None:
        ttl = default_ttl
    if not ttl or ttl <= 0:
        return None
    return datetime.now() + timedelta(seconds=ttl)


def _run_janitor(cache_ref: "weakref.ref[MemoryCache]", stop: threading.Event, interval: float) -> None:
    """Sweep expired entries until stopped or the cache is garbage-collected."""
    while not stop.wait(interval):
        cache = cache_ref()
        if cache is None:
            return
        removed = cache.cleanup_expired()
        del cache
        if removed:
            logger.debug(f"Cache janitor removed {removed} expired entries")


class CacheBackend(ABC, Generic[V]):
    """Abstract base class for cache backends."""

    default_ttl: float | None = DEFAULT_TTL

    @abstractmethod
    def get(self, key: str) -> V | None:
        """Get a value from cache, or None if missing or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        """Set a value with a TTL in seconds (None for the default TTL)."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def cleanup_expired(self) -> int:
        """Remove expired entries. Returns count of removed entries."""
        pass

    def set_default(self, key: str, value: V) -> None:
        """Set a value using the backend's default TTL."""
        self.set(key, value, None)

    def close(self) -> None:
        """Release background resources, if any."""
        pass


class MemoryCache(CacheBackend[V]):
    """In-memory cache with TTL, LRU eviction and a periodic janitor."""

    def __init__(
        self,
        default_ttl: float | None = DEFAULT_TTL,
        cleanup_interval: float | None = DEFAULT_CLEANUP_INTERVAL,
        max_size: int = 1024,
    ):
        """
        Args:
            default_ttl: Entry lifetime in seconds when set() gets no TTL
            cleanup_interval: Seconds between background sweeps, None to disable
            max_size: Maximum number of entries before LRU eviction
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self.max_size = max_size
        self._entries: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._janitor: threading.Thread | None = None

        if cleanup_interval and cleanup_interval > 0:
            # The thread holds only a weak reference so a dropped cache is collected
            self._janitor = threading.Thread(
                target=_run_janitor,
                args=(weakref.ref(self), self._stop, cleanup_interval),
                name="cleanweb-cache-janitor",
                daemon=True,
            )
            self._janitor.start()
            weakref.finalize(self, self._stop.set)

    def get(self, key: str) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        now = datetime.now()
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=_expiry(ttl, self.default_ttl),
        )
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted least recently used cache entry {evicted}")

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self) -> int:
        now = datetime.now()
        with self._lock:
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def close(self) -> None:
        """Stop the background janitor."""
        self._stop.set()
        if self._janitor and self._janitor is not threading.current_thread():
            self._janitor.join(timeout=1)
        self._janitor = None

    @property
    def size(self) -> int:
        return len(self._entries)


class DiskCache(CacheBackend[Article]):
    """Persistent disk cache for articles."""

    def __init__(self, cache_dir: str | Path, default_ttl: float | None = DEFAULT_TTL):
        self.cache_dir = Path(cache_dir)
        self.default_ttl = default_ttl
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _key_to_path(self, key: str) -> Path:
        hashed = hashlib.sha256(key.encode()).hexdigest()[:32]
        return self.cache_dir / f"{hashed}.json"

    def _read(self, path: Path) -> dict | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Removing corrupted cache file {path.name}")
            path.unlink(missing_ok=True)
            return None

    @staticmethod
    def _expired(data: dict) -> bool:
        expires_at = data.get("expires_at")
        return bool(expires_at) and datetime.fromisoformat(expires_at) <= datetime.now()

    def get(self, key: str) -> Article | None:
        path = self._key_to_path(key)
        data = self._read(path)
        if data is None:
            return None

        try:
            # Verify key matches (handle hash collisions)
            if data.get("key") != key:
                return None
            if self._expired(data):
                path.unlink(missing_ok=True)
                return None
            return Article.from_dict(data["value"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Removing malformed cache file {path.name}")
            path.unlink(missing_ok=True)
            return None

    def set(self, key: str, value: Article, ttl: float | None = None) -> None:
        path = self._key_to_path(key)
        now = datetime.now()
        expires_at = _expiry(ttl, self.default_ttl)
        data = {
            "key": key,
            "value": value.to_dict(),
            "created_at": now.isoformat(),
            "expires_at": expires_at.isoformat() if expires_at else None,
        }

        # Write to a temp file and rename so readers never see partial JSON
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._key_to_path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        for file in self.cache_dir.glob("*.json"):
            file.unlink(missing_ok=True)

    def cleanup_expired(self) -> int:
        removed = 0
        for file in self.cache_dir.glob("*.json"):
            data = self._read(file)
            if data is None:
                removed += 1
                continue
            try:
                expired = self._expired(data)
            except (TypeError, ValueError):
                expired = True
            if expired:
                file.unlink(missing_ok=True)
                removed += 1
        return removed


def create_cache(
    cache_dir: str | Path | None = None,
    default_ttl: float | None = DEFAULT_TTL,
) -> CacheBackend[Article]:
    """Factory: a DiskCache when a directory is given, otherwise a MemoryCache."""
    if cache_dir:
        return DiskCache(cache_dir, default_ttl=default_ttl)
    return MemoryCache(default_ttl=default_ttl)
