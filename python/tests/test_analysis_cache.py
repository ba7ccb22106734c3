"""
Unit tests for the analysis cache.

Tests cover:
- Store and lookup
- TTL expiration
- File modification / deletion invalidation
- Lookup never mutating the store
- Hit/miss statistics
- Read/write lock behaviour
- Persistence hooks (serialize/deserialize, save/load)
"""

import json
import os
import threading
import time
from pathlib import Path

import pytest

from ctxsize_mcp.analysis_cache import (
    AnalysisCache,
    CacheEntry,
    ReadWriteLock,
    ENTRY_SIZE_ESTIMATE_BYTES,
)
from ctxsize_mcp.complexity import AnalysisResult, ComplexityBand, FileStats, aggregate
from ctxsize_mcp.errors import CacheFormatError

from conftest import FakeClock, bump_mtime


def make_result(chars: int = 400) -> AnalysisResult:
    return aggregate([FileStats(path="/x", lines=1, chars=chars, mtime_ns=0)])


def tracked_file(directory: Path, name: str = "tracked.py") -> tuple[Path, dict[str, int]]:
    path = directory / name
    path.write_bytes(b"print('hi')\n")
    return path, {str(path): os.stat(path).st_mtime_ns}


class TestStoreAndLookup:
    """Tests for basic cache operations."""

    def test_miss_returns_none(self, analysis_cache: AnalysisCache):
        assert analysis_cache.lookup("/nope") is None

    def test_store_and_hit(self, analysis_cache: AnalysisCache, temp_dir: Path):
        _, mod_times = tracked_file(temp_dir)
        result = make_result()

        analysis_cache.store("/target", result, mod_times)
        cached = analysis_cache.lookup("/target")

        assert cached is not None
        assert cached.cache_hit is True
        assert cached.estimated_tokens == result.estimated_tokens
        assert cached.total_chars == result.total_chars

    def test_hit_is_a_copy(self, analysis_cache: AnalysisCache):
        analysis_cache.store("/target", make_result())

        first = analysis_cache.lookup("/target")
        stored = analysis_cache.get_entry("/target").result

        assert first is not stored
        assert stored.cache_hit is False

    def test_store_clears_cache_flag(self, analysis_cache: AnalysisCache):
        flagged = make_result().with_timing(0.1, cache_hit=True)

        entry = analysis_cache.store("/target", flagged)

        assert entry.result.cache_hit is False

    def test_store_copies_mod_times(self, analysis_cache: AnalysisCache, temp_dir: Path):
        _, mod_times = tracked_file(temp_dir)

        entry = analysis_cache.store("/target", make_result(), mod_times)
        mod_times.clear()

        assert len(entry.file_mod_times) == 1

    def test_store_replaces_entry(self, analysis_cache: AnalysisCache):
        analysis_cache.store("/target", make_result(400))
        analysis_cache.store("/target", make_result(800))

        assert len(analysis_cache) == 1
        assert analysis_cache.lookup("/target").total_chars == 800

    def test_distinct_keys(self, analysis_cache: AnalysisCache):
        analysis_cache.store("/a", make_result(400))
        analysis_cache.store("/b", make_result(4))

        assert analysis_cache.lookup("/a").total_chars == 400
        assert analysis_cache.lookup("/b").total_chars == 4

    def test_clear(self, analysis_cache: AnalysisCache):
        analysis_cache.store("/a", make_result())
        analysis_cache.store("/b", make_result())

        assert analysis_cache.clear() == 2
        assert len(analysis_cache) == 0
        assert analysis_cache.lookup("/a") is None


class TestValidation:
    """Tests for TTL and per-file freshness checks."""

    def test_valid_within_ttl(self, analysis_cache: AnalysisCache, clock: FakeClock):
        analysis_cache.store("/target", make_result())
        clock.advance(29.9)

        assert analysis_cache.lookup("/target") is not None

    def test_expired_at_ttl(self, analysis_cache: AnalysisCache, clock: FakeClock):
        analysis_cache.store("/target", make_result())
        clock.advance(30.0)

        assert analysis_cache.lookup("/target") is None

    def test_modified_file_invalidates(self, analysis_cache: AnalysisCache, temp_dir: Path):
        path, mod_times = tracked_file(temp_dir)
        analysis_cache.store("/target", make_result(), mod_times)

        bump_mtime(path)

        assert analysis_cache.lookup("/target") is None

    def test_deleted_file_invalidates(self, analysis_cache: AnalysisCache, temp_dir: Path):
        path, mod_times = tracked_file(temp_dir)
        analysis_cache.store("/target", make_result(), mod_times)

        path.unlink()

        assert analysis_cache.lookup("/target") is None

    def test_future_timestamp_is_stale(self, analysis_cache: AnalysisCache, clock: FakeClock):
        entry = CacheEntry(
            result=make_result(),
            timestamp=clock.now + 3600,
            path_key="/target",
        )
        payload = json.dumps({"version": 1, "entries": {"/target": entry.to_dict()}})
        analysis_cache.deserialize(payload)

        assert analysis_cache.lookup("/target") is None
        assert not analysis_cache.is_entry_valid(entry)
        assert analysis_cache.get_stats()["expired"] == 1

    def test_clock_stepped_back(self, analysis_cache: AnalysisCache, clock: FakeClock):
        analysis_cache.store("/target", make_result())
        clock.advance(-1)

        assert analysis_cache.lookup("/target") is None

    def test_expiry_checked_before_files(
        self,
        analysis_cache: AnalysisCache,
        clock: FakeClock,
        monkeypatch: pytest.MonkeyPatch,
    ):
        analysis_cache.store("/target", make_result(), {"/some/file": 1})
        clock.advance(31)

        def fail_check(entry):
            raise AssertionError("files must not be checked for an expired entry")

        monkeypatch.setattr(analysis_cache, "_files_unchanged", fail_check)

        assert analysis_cache.lookup("/target") is None

    def test_stale_entry_not_evicted(self, analysis_cache: AnalysisCache, clock: FakeClock):
        analysis_cache.store("/target", make_result())
        clock.advance(60)

        assert analysis_cache.lookup("/target") is None
        assert analysis_cache.get_entry("/target") is not None
        assert len(analysis_cache) == 1

    def test_is_entry_valid(self, analysis_cache: AnalysisCache, clock: FakeClock, temp_dir: Path):
        _, mod_times = tracked_file(temp_dir)
        entry = analysis_cache.store("/target", make_result(), mod_times)

        assert analysis_cache.is_entry_valid(entry)
        clock.advance(30)
        assert not analysis_cache.is_entry_valid(entry)


class TestCacheStats:
    """Tests for cache statistics."""

    def test_stats_counters(self, analysis_cache: AnalysisCache, clock: FakeClock, temp_dir: Path):
        path, mod_times = tracked_file(temp_dir)

        analysis_cache.lookup("/target")  # miss
        analysis_cache.store("/target", make_result(), mod_times)
        analysis_cache.lookup("/target")  # hit
        analysis_cache.lookup("/target")  # hit
        bump_mtime(path)
        analysis_cache.lookup("/target")  # invalidated
        clock.advance(100)
        analysis_cache.lookup("/target")  # expired

        stats = analysis_cache.get_stats()

        assert stats["entries"] == 1
        assert stats["memory_estimate_bytes"] == ENTRY_SIZE_ESTIMATE_BYTES
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["invalidated"] == 1
        assert stats["expired"] == 1
        assert stats["writes"] == 1
        assert stats["hit_rate"] == 2 / 5

    def test_reset_stats(self, analysis_cache: AnalysisCache):
        analysis_cache.lookup("/a")
        analysis_cache.reset_stats()

        assert analysis_cache.get_stats()["misses"] == 0


class TestReadWriteLock:
    """Tests for the shared/exclusive lock."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        both_inside = threading.Barrier(2, timeout=5)
        errors: list[Exception] = []

        def reader():
            try:
                with lock.read_locked():
                    both_inside.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events: list[str] = []

        lock.acquire_write()

        def reader():
            with lock.read_locked():
                events.append("read")

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(0.05)
        events.append("write-done")
        lock.release_write()
        t.join(timeout=5)

        assert events == ["write-done", "read"]

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        events: list[str] = []

        lock.acquire_read()

        def writer():
            with lock.write_locked():
                events.append("write")

        t = threading.Thread(target=writer)
        t.start()
        time.sleep(0.05)
        events.append("read-done")
        lock.release_read()
        t.join(timeout=5)

        assert events == ["read-done", "write"]

    def test_concurrent_store_and_lookup(self, analysis_cache: AnalysisCache):
        errors: list[Exception] = []

        def worker(n: int):
            try:
                for i in range(200):
                    key = f"/target/{(n + i) % 5}"
                    analysis_cache.store(key, make_result(i * 4))
                    analysis_cache.lookup(key)
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert len(analysis_cache) == 5


class TestPersistence:
    """Tests for the serialize/deserialize hooks."""

    def test_serialize_round_trip(self, analysis_cache: AnalysisCache, clock: FakeClock, temp_dir: Path):
        _, mod_times = tracked_file(temp_dir)
        analysis_cache.store("/target", make_result(40_000), mod_times)

        restored = AnalysisCache(ttl_seconds=30.0, clock=clock)
        count = restored.deserialize(analysis_cache.serialize())

        assert count == 1
        assert restored.get_entry("/target") == analysis_cache.get_entry("/target")
        hit = restored.lookup("/target")
        assert hit is not None
        assert hit.complexity == ComplexityBand.MEDIUM

    def test_serialized_shape(self, analysis_cache: AnalysisCache):
        analysis_cache.store("/target", make_result(), {"/target/a.py": 123})

        data = json.loads(analysis_cache.serialize())

        assert data["version"] == 1
        entry = data["entries"]["/target"]
        assert entry["path_key"] == "/target"
        assert entry["file_mod_times"] == {"/target/a.py": 123}
        assert entry["result"]["estimated_tokens"] == 100

    def test_deserialize_replaces_store(self, analysis_cache: AnalysisCache):
        analysis_cache.store("/old", make_result())
        empty = AnalysisCache().serialize()

        assert analysis_cache.deserialize(empty) == 0
        assert len(analysis_cache) == 0

    @pytest.mark.parametrize("payload", [
        "not json",
        "[]",
        '{"version": 99, "entries": {}}',
        '{"version": 1, "entries": {"/a": {"result": {}}}}',
        '{"version": 1, "entries": {"/a": "oops"}}',
    ])
    def test_corrupt_payload(self, analysis_cache: AnalysisCache, payload: str):
        analysis_cache.store("/keep", make_result())

        with pytest.raises(CacheFormatError):
            analysis_cache.deserialize(payload)

        assert analysis_cache.get_entry("/keep") is not None

    def test_save_and_load(self, analysis_cache: AnalysisCache, clock: FakeClock, temp_dir: Path):
        cache_file = temp_dir / "cache.json"
        analysis_cache.store("/target", make_result())

        analysis_cache.save(str(cache_file))
        restored = AnalysisCache(clock=clock)

        assert restored.load(str(cache_file)) == 1
        assert [p.name for p in temp_dir.iterdir()] == ["cache.json"]
        assert restored.lookup("/target") is not None

    def test_save_overwrites_existing_file(self, analysis_cache: AnalysisCache, temp_dir: Path):
        cache_file = temp_dir / "cache.json"
        cache_file.write_text("stale")
        analysis_cache.store("/target", make_result())

        analysis_cache.save(str(cache_file))

        assert json.loads(cache_file.read_text())["version"] == 1

    def test_failed_save_leaves_no_temp_file(
        self,
        analysis_cache: AnalysisCache,
        temp_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ):
        cache_file = temp_dir / "cache.json"
        analysis_cache.store("/target", make_result())

        def failing_replace(src, dst):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "replace", failing_replace)

        with pytest.raises(OSError):
            analysis_cache.save(str(cache_file))

        assert list(temp_dir.iterdir()) == []

    def test_concurrent_saves(self, analysis_cache: AnalysisCache, temp_dir: Path):
        cache_file = temp_dir / "cache.json"
        analysis_cache.store("/target", make_result())
        errors: list[Exception] = []

        def saver():
            try:
                for _ in range(20):
                    analysis_cache.save(str(cache_file))
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = [threading.Thread(target=saver) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert [p.name for p in temp_dir.iterdir()] == ["cache.json"]
        assert AnalysisCache().load(str(cache_file)) == 1

    def test_cache_entry_dict(self):
        entry = CacheEntry(
            result=make_result(),
            timestamp=12.5,
            path_key="/p",
            file_mod_times={"/p/a": 7},
        )

        assert CacheEntry.from_dict(entry.to_dict()) == entry
