import json
import time

import pytest

from app.services.cache import CacheAside, CacheConfig, CacheKeys, InvalidationPolicy, NullCacheBackend

from tests.conftest import BrokenCacheBackend, MemoryCacheBackend


class Counter:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


# ============================================================
# Keys
# ============================================================


def test_keys_are_deterministic_and_escaped():
    keys = CacheKeys()
    assert keys.presets_list("likes", 1) == "presets:list:likes:1"
    assert keys.presets_list("new", 2, "github:42") == "presets:list:new:2:viewer:github%3A42"
    assert keys.preset("a-vs-b-1") == "preset:a-vs-b-1"
    assert keys.package("@types/node") == "package:%40types%2Fnode"
    assert keys.package_presets("react") == "package:react:presets"
    assert keys.tags_list() == "tags:list"
    assert keys.user_stats("u1") == "user:u1:stats"


def test_viewer_id_cannot_collide_with_another_key():
    keys = CacheKeys()
    assert keys.presets_list("likes", 1, "x:viewer:y") != keys.presets_list("likes", 1, "x")


def test_by_tags_key_ignores_tag_order_and_duplicates():
    keys = CacheKeys()
    assert keys.packages_by_tags(["b", "a", "a"], None, 20) == keys.packages_by_tags(["a", "b"], None, 20)
    assert keys.packages_by_tags(["a"], None, 20) != keys.packages_by_tags(["a"], "react", 20)
    assert keys.packages_by_tags(["a"], None, 20) != keys.packages_by_tags(["a"], None, 10)


def test_key_prefix():
    assert CacheKeys("staging:").tag("cli") == "staging:tag:cli"


# ============================================================
# Cache-aside reads
# ============================================================


@pytest.mark.asyncio
async def test_miss_computes_and_stores_then_hit_skips_compute():
    backend = MemoryCacheBackend()
    cache = CacheAside(backend, CacheConfig())
    compute = Counter({"n": 1})

    assert await cache.read("k", compute, 60) == {"n": 1}
    assert await cache.read("k", compute, 60) == {"n": 1}
    assert compute.calls == 1

    entry = json.loads(backend.data["k"])
    assert entry["value"] == {"n": 1}
    assert entry["expiresAt"] >= int(time.time()) + 59
    assert backend.ttls["k"] == 60


@pytest.mark.asyncio
async def test_expired_entry_is_a_miss():
    backend = MemoryCacheBackend()
    backend.data["k"] = json.dumps({"value": "stale", "expiresAt": int(time.time()) - 1})
    cache = CacheAside(backend, CacheConfig())

    assert await cache.read("k", Counter("fresh"), 60) == "fresh"


@pytest.mark.asyncio
async def test_undecodable_entry_is_a_miss():
    backend = MemoryCacheBackend()
    backend.data["k"] = "{not json"
    cache = CacheAside(backend, CacheConfig())

    assert await cache.read("k", Counter("fresh"), 60) == "fresh"


@pytest.mark.asyncio
async def test_cache_failures_fall_back_to_compute():
    cache = CacheAside(BrokenCacheBackend(), CacheConfig())
    compute = Counter([1, 2, 3])

    assert await cache.read("k", compute, 60) == [1, 2, 3]
    assert await cache.read("k", compute, 60) == [1, 2, 3]
    assert compute.calls == 2
    await cache.invalidate(["k"])  # swallowed


@pytest.mark.asyncio
async def test_compute_failure_propagates_and_caches_nothing():
    backend = MemoryCacheBackend()
    cache = CacheAside(backend, CacheConfig())

    async def boom():
        raise LookupError("db down")

    with pytest.raises(LookupError):
        await cache.read("k", boom, 60)
    assert "k" not in backend.data


@pytest.mark.asyncio
async def test_disabled_cache_always_misses():
    backend = MemoryCacheBackend()
    cache = CacheAside(backend, CacheConfig(enabled=False))
    compute = Counter("v")

    await cache.read("k", compute, 60)
    await cache.read("k", compute, 60)
    assert compute.calls == 2
    assert isinstance(cache.backend, NullCacheBackend)
    assert backend.sets == 0


@pytest.mark.asyncio
async def test_invalidate_deletes_and_tolerates_absent_keys():
    backend = MemoryCacheBackend()
    cache = CacheAside(backend, CacheConfig())
    await cache.read("a", Counter(1), 60)

    await cache.invalidate(["a", "missing", "a"])
    assert "a" not in backend.data
    assert sorted(backend.deleted) == ["a", "missing"]


# ============================================================
# Invalidation policy
# ============================================================


def test_list_pages_is_bounded_by_config():
    keys = CacheKeys()
    policy = InvalidationPolicy(keys, CacheConfig(invalidate_pages=3))

    anonymous = policy.list_pages()
    assert len(anonymous) == 6
    assert keys.presets_list("likes", 3) in anonymous
    assert keys.presets_list("likes", 4) not in anonymous

    personal = policy.list_pages(viewer_id="u1")
    assert len(personal) == 12
    assert keys.presets_list("new", 1, "u1") in personal


def test_like_toggled_covers_detail_stats_and_package_lists():
    keys = CacheKeys()
    policy = InvalidationPolicy(keys, CacheConfig())

    result = policy.like_toggled("u2", "p1", owner_id="u1", packages=["a", "b"])
    assert keys.preset("p1") in result
    assert keys.preset("p1", "u2") in result
    assert keys.user_stats("u1") in result
    assert keys.package_presets("a") in result
    assert keys.presets_list("likes", 1, "u2") in result
    assert keys.user_stats("u2") not in result


def test_preset_created_covers_owner_stats_and_lists():
    keys = CacheKeys()
    policy = InvalidationPolicy(keys, CacheConfig())

    result = policy.preset_created("u1", ["a", "b"])
    assert keys.user_stats("u1") in result
    assert keys.presets_list("new", 1) in result
    assert keys.package_presets("b") in result


def test_package_tags_changed_covers_old_and_new_tags():
    keys = CacheKeys()
    policy = InvalidationPolicy(keys, CacheConfig())

    result = policy.package_tags_changed("react", ["frontend"], ["frontend", "ui"], 20)
    assert keys.package("react") in result
    assert keys.tags_list() in result
    assert keys.tag("ui") in result
    assert keys.packages_by_tags(["ui"], None, 20) in result
    assert keys.packages_by_tags(["frontend"], "react", 20) in result
    assert keys.packages_by_tags(["ui", "frontend"], "react", 20) in result
