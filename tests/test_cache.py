"""Tests for the LRU result cache and cache keys."""

import pytest

from locgraph_cli.cache import (
    ResultCache,
    create_graph_cache_key,
    document_key_prefix,
    parse_graph_cache_key,
)
from locgraph_cli.errors import CacheKeyParseError
from locgraph_cli.models import CacheKeyParts


class TestResultCache:
    """Tests for ResultCache."""

    def test_eviction_at_capacity(self):
        """Inserting four keys into a capacity-3 cache evicts the first."""
        cache: ResultCache[str] = ResultCache(3)
        for key in ("k1", "k2", "k3", "k4"):
            cache.set(key, key.upper())

        assert cache.size() == 3
        assert cache.get("k1") is None
        assert cache.get("k4") == "K4"
        assert cache.get("k2") == "K2"

        stats = cache.get_stats()
        assert stats.entries == 3
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(2 / 3)
        assert stats.hit_rate_percent == "66.7"
        assert stats.max_size == 3

    def test_get_refreshes_recency(self):
        cache: ResultCache[int] = ResultCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.keys() == ["a", "c"]

    def test_overwrite_refreshes_recency(self):
        cache: ResultCache[int] = ResultCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)

        assert "b" not in cache
        assert cache.get("a") == 10

    def test_has_does_not_touch_stats_or_order(self):
        cache: ResultCache[int] = ResultCache(2)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.has("a")
        assert not cache.has("z")
        assert cache.keys() == ["a", "b"]
        assert cache.get_stats().hits == 0
        assert cache.get_stats().misses == 0

    def test_clear_single_key(self):
        cache: ResultCache[int] = ResultCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")

        cache.clear("a")

        assert not cache.has("a")
        assert cache.has("b")
        assert cache.get_stats().hits == 1

    def test_clear_all_resets_stats(self):
        cache: ResultCache[int] = ResultCache()
        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")

        cache.clear()

        stats = cache.get_stats()
        assert (stats.entries, stats.hits, stats.misses, stats.hit_rate) == (0, 0, 0, 0.0)

    def test_set_max_size_evicts_oldest(self):
        cache: ResultCache[int] = ResultCache(5)
        for index in range(5):
            cache.set(f"k{index}", index)

        cache.set_max_size(2)

        assert cache.get_max_size() == 2
        assert cache.keys() == ["k3", "k4"]

    def test_metadata_and_timestamp(self):
        cache: ResultCache[list] = ResultCache()
        cache.set("a", [1, 2], {"version": 3, "count": 2})

        assert cache.get_metadata("a") == {"version": 3, "count": 2}
        assert cache.get_timestamp("a") > 0
        assert cache.get_metadata("missing") is None
        assert cache.get_timestamp("missing") is None

    def test_empty_hit_rate(self):
        assert ResultCache().get_stats().hit_rate == 0.0

    def test_reset_stats_keeps_entries(self):
        cache: ResultCache[int] = ResultCache()
        cache.set("a", 1)
        cache.get("a")

        cache.reset_stats()

        assert len(cache) == 1
        assert cache.get_stats().hits == 0


class TestCacheKeys:
    """Tests for graph cache key creation and parsing."""

    def test_create(self):
        assert create_graph_cache_key("file:///a.rs", 3, "function") == "file:///a.rs::v3::function"
        assert (
            create_graph_cache_key("file:///a.rs", 3, "file", "/src/a.rs")
            == "file:///a.rs::v3::file::/src/a.rs"
        )

    @pytest.mark.parametrize(
        "parts",
        [
            ("file:///src/main.rs", 1, "function", None),
            ("file:///src/main.rs", 42, "workspace", "/src/lib.rs"),
            ("untitled:Untitled-1", 0, "file", "C:\\work\\a.rs"),
        ],
    )
    def test_round_trip(self, parts):
        key = create_graph_cache_key(*parts)

        assert parse_graph_cache_key(key) == CacheKeyParts(*parts)

    def test_active_path_containing_separator(self):
        parsed = parse_graph_cache_key("doc::v2::file::a::b")

        assert parsed.active_file_path == "a::b"

    @pytest.mark.parametrize("key", ["doc::v1", "doc", "doc::1::function", "doc::vx::function", "doc::v::function"])
    def test_invalid_keys(self, key):
        assert parse_graph_cache_key(key) is None

    def test_strict_mode_raises(self):
        with pytest.raises(CacheKeyParseError) as excinfo:
            parse_graph_cache_key("doc::version1::function", strict=True)

        assert excinfo.value.key == "doc::version1::function"

    def test_document_prefix(self):
        key = create_graph_cache_key("file:///a.rs", 7, "function")

        assert key.startswith(document_key_prefix("file:///a.rs"))
        assert not key.startswith(document_key_prefix("file:///a.rs.bak"))
