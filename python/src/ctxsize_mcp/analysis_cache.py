"""
Analysis Cache for complexity results

Caches one AnalysisResult per target path so repeated analyses of an
unchanged target skip the filesystem walk.

Validity policy (checked at lookup, cheapest first):
1. Age: entries older than the TTL are stale.
2. Freshness: every file counted in the scan must still exist with the same
   modification time.

Staleness is discovered lazily; stale entries are not evicted, they are
simply replaced by the next write for the same key.

Concurrency:
- Lookups take a shared lock, writes an exclusive lock.
- Locks cover only the dict access. File stat calls for validation run
  outside the lock so callers never serialize on each other's disk I/O.
- Two racing misses on one key both rescan and the last write wins.

Persistence is optional and caller-driven (serialize/deserialize, save/load).
"""

import json
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from .complexity import AnalysisResult
from .config import DEFAULT_CACHE_TTL_SECONDS
from .errors import CacheFormatError


logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1

# Rough per-entry footprint reported by get_stats()
ENTRY_SIZE_ESTIMATE_BYTES = 1024


class ReadWriteLock:
    """
    Shared/exclusive lock.

    Any number of readers may hold the lock together; a writer holds it
    alone. Waiting writers block new readers so writes are not starved.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


@dataclass(frozen=True)
class CacheEntry:
    """Cached analysis result with the metadata needed to validate it."""

    result: AnalysisResult
    timestamp: float  # wall clock at creation
    path_key: str
    file_mod_times: dict[str, int] = field(default_factory=dict)  # path -> st_mtime_ns

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "timestamp": self.timestamp,
            "path_key": self.path_key,
            "file_mod_times": dict(self.file_mod_times),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        return cls(
            result=AnalysisResult.from_dict(data["result"]),
            timestamp=float(data["timestamp"]),
            path_key=str(data["path_key"]),
            file_mod_times={
                str(path): int(mtime)
                for path, mtime in (data.get("file_mod_times") or {}).items()
            },
        )


@dataclass
class AnalysisCacheStats:
    """Lookup statistics for the analysis cache."""

    hits: int = 0
    misses: int = 0  # no entry for the key
    expired: int = 0  # rejected by the age check
    invalidated: int = 0  # rejected by the file freshness check
    writes: int = 0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses + self.expired + self.invalidated

    @property
    def hit_rate(self) -> float:
        return self.hits / self.lookups if self.lookups > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "invalidated": self.invalidated,
            "writes": self.writes,
            "hit_rate": self.hit_rate,
        }


class AnalysisCache:
    """
    Thread-safe store of complexity results keyed by target path.

    Each ContextAnalyzer owns one by default; pass the same instance to
    several analyzers to share results between them.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Freshness window; entries this old or older are stale
            clock: Wall-clock source, replaceable in tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()

        # Counters have their own lock so readers can update them
        self._stats = AnalysisCacheStats()
        self._stats_lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)

    def get_entry(self, path_key: str) -> CacheEntry | None:
        """Return the raw entry for a key, valid or not."""
        with self._lock.read_locked():
            return self._entries.get(path_key)

    def lookup(self, path_key: str) -> AnalysisResult | None:
        """
        Get the cached result for a key if it is still valid.

        Returns:
            A copy of the cached result flagged as a cache hit, or None if
            there is no entry or the entry is stale. The store is never
            modified here.
        """
        entry = self.get_entry(path_key)

        if entry is None:
            self._record("misses")
            return None

        if self._is_expired(entry):
            logger.debug(f"Cache entry for {path_key} expired")
            self._record("expired")
            return None

        if not self._files_unchanged(entry):
            logger.debug(f"Cache entry for {path_key} invalidated by file changes")
            self._record("invalidated")
            return None

        self._record("hits")
        return entry.result.with_timing(entry.result.analysis_time, cache_hit=True)

    def is_entry_valid(self, entry: CacheEntry) -> bool:
        """Check TTL first, then per-file modification times."""
        return not self._is_expired(entry) and self._files_unchanged(entry)

    def _is_expired(self, entry: CacheEntry) -> bool:
        age = self._clock() - entry.timestamp
        # Entries stamped in the future (clock stepped back, restored cache) are stale
        return age < 0 or age >= self.ttl_seconds

    def _files_unchanged(self, entry: CacheEntry) -> bool:
        for file_path, cached_mtime in entry.file_mod_times.items():
            try:
                current = os.stat(file_path).st_mtime_ns
            except OSError:
                # Deleted or inaccessible
                return False
            if current != cached_mtime:
                return False
        return True

    def store(
        self,
        path_key: str,
        result: AnalysisResult,
        file_mod_times: dict[str, int] | None = None,
    ) -> CacheEntry:
        """
        Store a freshly computed result, replacing any previous entry.

        The result is stored with its cache flag cleared and the mtime map
        is copied, so later changes by the caller cannot leak in.
        """
        entry = CacheEntry(
            result=result.with_timing(result.analysis_time, cache_hit=False),
            timestamp=self._clock(),
            path_key=path_key,
            file_mod_times=dict(file_mod_times or {}),
        )

        with self._lock.write_locked():
            self._entries[path_key] = entry

        self._record("writes")
        return entry

    def clear(self) -> int:
        """
        Remove all entries.

        Returns:
            Number of entries removed
        """
        with self._lock.write_locked():
            count = len(self._entries)
            self._entries = {}
        return count

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        entries = len(self)
        with self._stats_lock:
            stats = self._stats.to_dict()
        return {
            "entries": entries,
            "memory_estimate_bytes": entries * ENTRY_SIZE_ESTIMATE_BYTES,
            "ttl_seconds": self.ttl_seconds,
            **stats,
        }

    def reset_stats(self) -> None:
        """Reset statistics."""
        with self._stats_lock:
            self._stats = AnalysisCacheStats()

    def _record(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self._stats, counter, getattr(self._stats, counter) + 1)

    # -------------------------------------------------------------------------
    # Persistence hooks
    # -------------------------------------------------------------------------

    def serialize(self) -> str:
        """Export all entries as JSON text."""
        with self._lock.read_locked():
            entries = {key: entry.to_dict() for key, entry in self._entries.items()}

        return json.dumps({"version": CACHE_FORMAT_VERSION, "entries": entries})

    def deserialize(self, data: str | bytes) -> int:
        """
        Replace the store with entries decoded from JSON text.

        Returns:
            Number of entries loaded

        Raises:
            CacheFormatError: if the payload cannot be decoded. The current
                entries are kept in that case.
        """
        try:
            payload = json.loads(data)
            if not isinstance(payload, dict):
                raise ValueError("top-level value is not an object")
            if payload.get("version") != CACHE_FORMAT_VERSION:
                raise ValueError(f"unsupported cache version {payload.get('version')!r}")
            entries = {
                str(key): CacheEntry.from_dict(value)
                for key, value in payload.get("entries", {}).items()
            }
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise CacheFormatError(f"invalid cache data: {e}") from e

        with self._lock.write_locked():
            self._entries = entries

        return len(entries)

    def save(self, cache_file: str) -> None:
        """
        Persist the cache to disk, writing atomically.

        Data goes to a uniquely named temp file in the same directory, which
        then replaces ``cache_file``. The temp file is removed on failure.
        """
        data = self.serialize()
        directory, name = os.path.split(os.path.abspath(cache_file))

        tmp = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=directory,
            prefix=f".{name}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with tmp:
                tmp.write(data)
            os.replace(tmp.name, cache_file)
        except Exception:
            with suppress(FileNotFoundError):
                os.unlink(tmp.name)
            raise

    def load(self, cache_file: str) -> int:
        """
        Load the cache from disk.

        Returns:
            Number of entries loaded

        Raises:
            OSError: if the file cannot be read
            CacheFormatError: if its contents cannot be decoded
        """
        with open(cache_file, "r", encoding="utf-8") as f:
            return self.deserialize(f.read())
