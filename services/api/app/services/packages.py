"""Package catalog service: lookup with hydration-on-miss, tag browsing.

get_package flow:
1. Cache hit -> serve cached payload
2. PostgreSQL hit -> serve and cache
3. Miss everywhere -> injected hydrator fetches registry metadata, the row
   is upserted (idempotent), then served and cached
4. Registry unavailable -> serve a name-only record (hydrated=False) that is
   neither persisted nor cached, so the next request retries hydration
5. Downloads unknown -> serve the metadata (hydrated=False), again neither
   persisted nor cached
6. Registry says the package does not exist -> NotFoundError
"""

import logging

from app.errors import NotFoundError, RegistryError, ValidationError
from app.schemas import Package, PackageList, Tag, TagList
from app.services.cache import CacheAside, InvalidationPolicy
from app.services.hydration import PackageHydrator
from app.services.identity import CallerIdentity, require_authenticated
from app.services.slugs import TAG_ID_PATTERN, is_valid_package_name, normalize_tag_ids
from app.stores.repository import PackageRecord, PresetStore, TagRecord

logger = logging.getLogger("uvicorn.error")

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100


class _HydrationUnavailable(Exception):
    """Raised inside a cache compute to skip caching a degraded record."""

    def __init__(self, partial: Package):
        self.partial = partial
        super().__init__(partial.name)


def _tag_schema(record: TagRecord) -> Tag:
    return Tag(id=record.id, name=record.name, color=record.color, package_count=record.package_count)


def _package_schema(record: PackageRecord) -> Package:
    return Package(
        name=record.id,
        description=record.description,
        weekly_downloads=record.weekly_downloads,
        repository=record.repository,
        homepage=record.homepage,
        last_update=record.last_update,
        tags=[_tag_schema(t) for t in record.tags],
        hydrated=True,
    )


def _check_limit(limit: int) -> int:
    if limit < 1 or limit > MAX_LIST_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}", {"field": "limit", "value": limit})
    return limit


class PackageService:
    """Consistency engine for packages and tags."""

    def __init__(self, store: PresetStore, cache: CacheAside, hydrator: PackageHydrator):
        self.store = store
        self.cache = cache
        self.keys = cache.keys
        self.policy = InvalidationPolicy(cache.keys, cache.config)
        self.hydrator = hydrator

    # ============================================================
    # Packages
    # ============================================================

    async def get_package(self, name: str) -> Package:
        """Cache-aside package lookup with hydration on store miss."""
        name = name.strip()
        if not is_valid_package_name(name):
            raise ValidationError("Invalid package name", {"field": "name", "value": name})

        async def compute() -> dict:
            record = await self.store.get_package(name)
            if record is None:
                record = await self._hydrate(name)
            return _package_schema(record).model_dump(mode="json", by_alias=True)

        try:
            data = await self.cache.read(self.keys.package(name), compute, self.cache.config.package_ttl)
        except _HydrationUnavailable as e:
            return e.partial
        return Package.model_validate(data)

    async def _hydrate(self, name: str) -> PackageRecord:
        try:
            fields = await self.hydrator.fetch(name)
        except RegistryError as e:
            logger.warning(f"Hydration unavailable for {name}, serving without metadata: {e}")
            raise _HydrationUnavailable(Package(name=name, hydrated=False)) from e

        if fields is None:
            raise NotFoundError(f"Package {name} not found", {"package": name})
        if "weekly_downloads" not in fields:
            raise _HydrationUnavailable(
                Package(
                    name=name,
                    description=fields.get("description"),
                    repository=fields.get("repository"),
                    homepage=fields.get("homepage"),
                    hydrated=False,
                )
            )

        record = await self.store.upsert_package(name, fields)
        logger.info(f"Package {name} hydrated and persisted")
        return record

    async def search_packages(self, query: str = "", limit: int = DEFAULT_LIST_LIMIT) -> PackageList:
        """Catalog search by name substring (autocomplete)."""
        query = query.strip().lower()
        _check_limit(limit)

        async def compute() -> dict:
            records = await self.store.search_packages(query, limit)
            return PackageList(packages=[_package_schema(r) for r in records]).model_dump(mode="json", by_alias=True)

        data = await self.cache.read(self.keys.package_search(query, limit), compute, self.cache.config.search_ttl)
        return PackageList.model_validate(data)

    async def list_packages_by_tags(
        self,
        tag_ids: list[str],
        exclude_id: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> PackageList:
        """Packages sharing any of the given tags."""
        tags = normalize_tag_ids(tag_ids)
        _check_limit(limit)
        if not tags:
            return PackageList(packages=[])

        async def compute() -> dict:
            records = await self.store.list_packages_by_tags(tags, exclude_id=exclude_id, limit=limit)
            return PackageList(packages=[_package_schema(r) for r in records]).model_dump(mode="json", by_alias=True)

        data = await self.cache.read(
            self.keys.packages_by_tags(tags, exclude_id, limit),
            compute,
            self.cache.config.tags_ttl,
        )
        return PackageList.model_validate(data)

    async def assign_package_tags(self, caller: CallerIdentity | None, package_id: str, tag_ids: list[str]) -> Package:
        """Replace the package's tag set and return the fresh package."""
        require_authenticated(caller)
        tags = normalize_tag_ids(tag_ids)

        previous, current = await self.store.assign_package_tags(package_id, tags)
        logger.info(f"Package {package_id} tags {previous} -> {current}")

        await self.cache.invalidate(
            self.policy.package_tags_changed(package_id, previous, current, DEFAULT_LIST_LIMIT)
        )
        return await self.get_package(package_id)

    # ============================================================
    # Tags
    # ============================================================

    async def list_tags(self) -> TagList:
        async def compute() -> dict:
            records = await self.store.list_tags()
            return TagList(tags=[_tag_schema(r) for r in records]).model_dump(mode="json", by_alias=True)

        data = await self.cache.read(self.keys.tags_list(), compute, self.cache.config.tags_ttl)
        return TagList.model_validate(data)

    async def get_tag(self, tag_id: str) -> Tag:
        async def compute() -> dict:
            record = await self.store.get_tag(tag_id)
            if record is None:
                raise NotFoundError(f"Tag {tag_id} not found", {"tag_id": tag_id})
            return _tag_schema(record).model_dump(mode="json", by_alias=True)

        data = await self.cache.read(self.keys.tag(tag_id), compute, self.cache.config.tags_ttl)
        return Tag.model_validate(data)

    async def create_tag(self, caller: CallerIdentity | None, tag_id: str, name: str, color: str) -> Tag:
        """Create a tag, or rename/recolor an existing one."""
        require_authenticated(caller)
        tag_id = tag_id.strip().lower()
        if not TAG_ID_PATTERN.match(tag_id):
            raise ValidationError(f"Invalid tag id: {tag_id!r}", {"field": "id", "value": tag_id})

        record = await self.store.upsert_tag(tag_id, name.strip(), color)
        await self.cache.invalidate(self.policy.tag_changed(tag_id))
        return _tag_schema(record)
