"""Cache-aside controller.

Reads:
1. Look the key up in the cache backend (Redis in production)
2. Hit -> return the cached value verbatim (no revalidation against the DB)
3. Miss -> run `compute`, store the result with a TTL, return it

Writes never update cached values: services mutate PostgreSQL first and then
ask the InvalidationPolicy for the keys to delete.

The cache is never an authority. Backend failures are logged and treated as
misses (reads) or ignored (writes/deletes); `compute` failures propagate and
nothing is cached.

Persisted entry format:
    {"value": <JSON result>, "expiresAt": <unix seconds>}

Key format:
    <entity-or-list>:<discriminators joined by ':'>
Every discriminator is percent-encoded, so values containing ':' (viewer ids,
scoped package names) cannot collide with a different key.

Staleness bound:
A write invalidates the first `invalidate_pages` pages of each preset list
(both sort orders, plus the acting user's personalized pages). Deeper pages
and other viewers' personalized pages may serve stale data until their TTL
expires.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar
from urllib.parse import quote

from app.errors import CacheError

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")

PRESET_SORTS = ("likes", "new")


@dataclass(frozen=True)
class CacheConfig:
    """TTLs (seconds) and invalidation bound for the cache-aside layer."""

    enabled: bool = True
    key_prefix: str = ""
    presets_list_ttl: int = 300
    viewer_list_ttl: int = 60
    preset_ttl: int = 300
    package_ttl: int = 3600
    search_ttl: int = 300
    tags_ttl: int = 600
    stats_ttl: int = 60
    # Leading list pages invalidated per sort order on every write.
    invalidate_pages: int = 3


class CacheBackend(Protocol):
    """Minimal key-value interface the controller needs."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int) -> None: ...

    async def delete(self, keys: list[str]) -> None: ...


class NullCacheBackend:
    """Always-miss backend (cache disabled)."""

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str, ttl: int) -> None:
        return None

    async def delete(self, keys: list[str]) -> None:
        return None


def _part(value: object) -> str:
    return quote(str(value), safe="")


class CacheKeys:
    """Deterministic cache key builder."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def _key(self, *parts: object) -> str:
        return self.prefix + ":".join(_part(p) for p in parts)

    def presets_list(self, sort: str, page: int, viewer_id: str | None = None) -> str:
        if viewer_id:
            return self._key("presets", "list", sort, page, "viewer", viewer_id)
        return self._key("presets", "list", sort, page)

    def preset(self, preset_id: str, viewer_id: str | None = None) -> str:
        if viewer_id:
            return self._key("preset", preset_id, "viewer", viewer_id)
        return self._key("preset", preset_id)

    def package(self, name: str) -> str:
        return self._key("package", name)

    def package_presets(self, name: str) -> str:
        return self._key("package", name, "presets")

    def package_search(self, query: str, limit: int) -> str:
        return self._key("packages", "search", query, limit)

    def packages_by_tags(self, tag_ids: Iterable[str], exclude_id: str | None, limit: int) -> str:
        # Tag filter is a set: order and duplicates must not change the key.
        tags = ",".join(sorted(set(tag_ids)))
        return self._key("packages", "by-tags", tags, exclude_id or "-", limit)

    def tags_list(self) -> str:
        return self._key("tags", "list")

    def tag(self, tag_id: str) -> str:
        return self._key("tag", tag_id)

    def user_stats(self, user_id: str) -> str:
        return self._key("user", user_id, "stats")


class CacheAside:
    """Get-or-compute reads and unconditional invalidation."""

    def __init__(self, backend: CacheBackend, config: CacheConfig | None = None):
        self.config = config or CacheConfig()
        self.backend: CacheBackend = backend if self.config.enabled else NullCacheBackend()
        self.keys = CacheKeys(self.config.key_prefix)

    async def read(self, key: str, compute: Callable[[], Awaitable[T]], ttl_seconds: int) -> T:
        """Return the cached value for `key`, computing and storing it on miss.

        Args:
            key: Cache key (see CacheKeys).
            compute: Coroutine factory producing a JSON-serializable value.
            ttl_seconds: Time-to-live for a freshly computed entry.
        """
        cached = await self._get(key)
        if cached is not None:
            logger.info(f"Cache HIT key={key}")
            return cached["value"]

        logger.info(f"Cache MISS key={key}")
        value = await compute()
        await self._set(key, value, ttl_seconds)
        return value

    async def invalidate(self, keys: Iterable[str]) -> None:
        """Delete entries; absent keys are not an error."""
        unique = sorted(set(keys))
        if not unique:
            return
        try:
            await self.backend.delete(unique)
            logger.info(f"Cache invalidated {len(unique)} keys")
        except CacheError as e:
            logger.warning(f"Cache invalidation failed for {len(unique)} keys: {e}")

    async def _get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self.backend.get(key)
        except CacheError as e:
            logger.warning(f"Cache read failed for key={key}: {e}")
            return None
        if not raw:
            return None

        try:
            entry = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding undecodable cache entry key={key}")
            return None
        if not isinstance(entry, dict) or "value" not in entry:
            return None

        expires_at = entry.get("expiresAt")
        if isinstance(expires_at, (int, float)) and expires_at <= time.time():
            return None
        return entry

    async def _set(self, key: str, value: Any, ttl_seconds: int) -> None:
        entry = {"value": value, "expiresAt": int(time.time()) + ttl_seconds}
        try:
            await self.backend.set(key, json.dumps(entry, separators=(",", ":")), ttl_seconds)
        except CacheError as e:
            logger.warning(f"Cache write failed for key={key}: {e}")


class InvalidationPolicy:
    """Which keys a write can have affected."""

    def __init__(self, keys: CacheKeys, config: CacheConfig):
        self.keys = keys
        self.config = config

    def list_pages(self, viewer_id: str | None = None) -> set[str]:
        """First N pages of every sort order (anonymous + the given viewer)."""
        result: set[str] = set()
        for sort in PRESET_SORTS:
            for page in range(1, self.config.invalidate_pages + 1):
                result.add(self.keys.presets_list(sort, page))
                if viewer_id:
                    result.add(self.keys.presets_list(sort, page, viewer_id))
        return result

    def preset_created(self, owner_id: str, packages: Iterable[str]) -> set[str]:
        result = self.list_pages(viewer_id=owner_id)
        result.add(self.keys.user_stats(owner_id))
        result.update(self.keys.package_presets(name) for name in packages)
        return result

    def like_toggled(
        self,
        user_id: str,
        preset_id: str,
        owner_id: str | None = None,
        packages: Iterable[str] = (),
    ) -> set[str]:
        result = self.list_pages(viewer_id=user_id)
        result.add(self.keys.preset(preset_id))
        result.add(self.keys.preset(preset_id, user_id))
        if owner_id:
            result.add(self.keys.user_stats(owner_id))
        result.update(self.keys.package_presets(name) for name in packages)
        return result

    def package_tags_changed(
        self,
        package_id: str,
        old_tag_ids: Iterable[str],
        new_tag_ids: Iterable[str],
        default_limit: int,
    ) -> set[str]:
        """Package detail, tag pages, and the by-tags queries the UI issues.

        by-tags results are keyed by arbitrary tag sets, so only the shapes the
        UI requests are enumerated: each single affected tag, and the package's
        own "related packages" query for its old and new tag sets.
        """
        old_tags = list(old_tag_ids)
        new_tags = list(new_tag_ids)
        result = {self.keys.package(package_id), self.keys.tags_list()}
        for tag_id in set(old_tags) | set(new_tags):
            result.add(self.keys.tag(tag_id))
            result.add(self.keys.packages_by_tags([tag_id], None, default_limit))
        for tag_set in (old_tags, new_tags):
            if tag_set:
                result.add(self.keys.packages_by_tags(tag_set, package_id, default_limit))
        return result

    def tag_changed(self, tag_id: str) -> set[str]:
        return {self.keys.tags_list(), self.keys.tag(tag_id)}
