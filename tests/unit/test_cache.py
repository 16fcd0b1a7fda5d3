"""Tests for the result cache."""

import pytest

import gridmill.cache.store as cache_store
from gridmill.cache.store import MISSING, MemoryCache, ResultCache, get_cache
from gridmill.exceptions import CacheReadError

KEY = "3fa1c0de" * 4


class TestResultCache:
    """Test the file-based cache."""

    def test_miss_returns_sentinel(self, tmp_path):
        cache = ResultCache(tmp_path)
        assert cache.get(KEY) is MISSING
        assert not MISSING

    def test_roundtrip_keeps_none(self, tmp_path):
        """Test that None is a cached value, distinct from a miss."""
        cache = ResultCache(tmp_path)
        cache.set(KEY, None)
        assert cache.get(KEY) is None

    def test_structured_values(self, tmp_path):
        cache = ResultCache(tmp_path)
        value = [{"full_name": "Alice", "email": None}]
        cache.set(KEY, value)
        assert cache.get(KEY) == value

    def test_entries_are_sharded(self, tmp_path):
        cache = ResultCache(tmp_path)
        cache.set(KEY, "x")
        assert (tmp_path / "results" / KEY[:2] / f"{KEY}.json").exists()

    def test_corrupt_entry_degrades_to_miss(self, tmp_path):
        """Test that unreadable data is a miss for get() and an error for read()."""
        cache = ResultCache(tmp_path)
        cache.set(KEY, "x")
        (tmp_path / "results" / KEY[:2] / f"{KEY}.json").write_text("{not json")

        assert cache.get(KEY) is MISSING
        with pytest.raises(CacheReadError) as exc_info:
            cache.read(KEY)
        assert KEY in exc_info.value.message

    def test_permission_error_degrades_to_miss(self, tmp_path, monkeypatch):
        """Test that an unreadable shard directory never raises from get()."""
        def denied(*args, **kwargs):
            raise PermissionError(13, "Permission denied")

        cache = ResultCache(tmp_path)
        cache.set(KEY, "x")
        monkeypatch.setattr(cache_store, "open", denied, raising=False)

        assert cache.get(KEY) is MISSING
        with pytest.raises(CacheReadError):
            cache.read(KEY)

    def test_entry_without_envelope_is_a_miss(self, tmp_path):
        cache = ResultCache(tmp_path)
        path = tmp_path / "results" / KEY[:2] / f"{KEY}.json"
        path.parent.mkdir(parents=True)
        path.write_text('"bare value"')
        assert cache.get(KEY) is MISSING

    def test_unserializable_value_is_not_written(self, tmp_path):
        """Test that a failing write is swallowed."""
        cache = ResultCache(tmp_path)
        cache.set(KEY, object())
        assert cache.get(KEY) is MISSING

    def test_clear_and_info(self, tmp_path):
        cache = ResultCache(tmp_path)
        cache.set(KEY, "x")
        cache.set("ab" * 16, "y")

        info = cache.info()
        assert info["entries"] == 2
        assert info["size_bytes"] > 0
        assert info["cache_dir"] == str(tmp_path)

        cache.clear()
        assert cache.get(KEY) is MISSING
        assert cache.info()["entries"] == 0

    def test_get_cache_uses_directory(self, tmp_path):
        cache = get_cache(str(tmp_path / "elsewhere"))
        assert cache.cache_dir == tmp_path / "elsewhere"


class TestMemoryCache:
    def test_get_set_clear(self):
        cache = MemoryCache()
        assert cache.get(KEY) is MISSING

        cache.set(KEY, [])
        assert cache.get(KEY) == []
        assert KEY in cache
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0
