"""Preset service: creation, like toggling and cached reads.

Like state machine per (user, preset):
    NOT_LIKED --toggle--> LIKED --toggle--> NOT_LIKED
No other transitions exist; the initial state is NOT_LIKED (no like row).

Write ordering:
1. Mutate PostgreSQL in one transaction (store adapter)
2. Only after the commit, invalidate affected cache keys
So a cache miss after a write always observes the post-write state; a cache
hit may still serve the pre-write value until invalidated or expired.

Lost races (two concurrent toggles from the same user) come back from the
store as ConflictError and are answered with the current committed state.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from app.errors import ConflictError, NotFoundError, ValidationError
from app.schemas import LikeToggleResponse, MeResponse, MeUser, Preset, PresetList, PresetPage, UserStats
from app.services.cache import PRESET_SORTS, CacheAside, InvalidationPolicy
from app.services.identity import CallerIdentity, require_authenticated
from app.services.slugs import (
    build_npmtrends_url,
    compute_preset_id,
    is_valid_package_name,
    normalize_package_names,
    normalize_title,
)
from app.stores.repository import PresetRecord, PresetStore

logger = logging.getLogger("uvicorn.error")

DEFAULT_PAGE_SIZE = 20
PACKAGE_PRESETS_LIMIT = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_schema(record: PresetRecord) -> Preset:
    return Preset(
        id=record.id,
        title=record.title,
        packages=record.packages,
        npmtrends_url=record.npmtrends_url,
        owner_id=record.owner_id,
        owner_name=record.owner_name,
        owner_avatar=record.owner_avatar,
        likes_count=record.likes_count,
        created_at=record.created_at,
        liked=record.liked,
    )


class PresetService:
    """Consistency engine for presets and likes."""

    def __init__(
        self,
        store: PresetStore,
        cache: CacheAside,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.cache = cache
        self.keys = cache.keys
        self.policy = InvalidationPolicy(cache.keys, cache.config)
        self.page_size = page_size
        self.clock = clock

    # ============================================================
    # Writes
    # ============================================================

    async def create_preset(self, caller: CallerIdentity | None, title: str, packages: list[str]) -> Preset:
        """Validate, persist and announce a new preset.

        Raises:
            AuthRequiredError: Anonymous caller.
            ValidationError: Title or package list out of bounds.
        """
        caller = require_authenticated(caller)
        title = normalize_title(title)
        names = normalize_package_names(packages)

        created_at = self.clock()
        preset_id = compute_preset_id(title, created_at)

        await self.store.ensure_user(caller.id, caller.name, caller.avatar_url)
        record = await self.store.create_preset(
            preset_id=preset_id,
            title=title,
            packages=names,
            owner_id=caller.id,
            npmtrends_url=build_npmtrends_url(names),
            created_at=created_at,
        )
        logger.info(f"Preset created id={record.id} owner={caller.id} packages={len(names)}")

        await self.cache.invalidate(self.policy.preset_created(caller.id, names))
        return _to_schema(record)

    async def toggle_like(self, caller: CallerIdentity | None, preset_id: str) -> LikeToggleResponse:
        """Flip the caller's like on a preset.

        Returns:
            The new (liked, likes_count) pair as committed in the store.

        Raises:
            AuthRequiredError: Anonymous caller.
            NotFoundError: Preset does not exist.
        """
        caller = require_authenticated(caller)
        await self.store.ensure_user(caller.id, caller.name, caller.avatar_url)

        try:
            state = await self.store.toggle_like(caller.id, preset_id)
        except ConflictError:
            # A concurrent toggle by the same user committed first.
            logger.info(f"Like toggle lost a race user={caller.id} preset={preset_id}; returning current state")
            state = await self.store.get_like_state(caller.id, preset_id)

        preset = await self.store.get_preset(preset_id)
        await self.cache.invalidate(
            self.policy.like_toggled(
                user_id=caller.id,
                preset_id=preset_id,
                owner_id=preset.owner_id if preset else None,
                packages=preset.packages if preset else (),
            )
        )
        return LikeToggleResponse(liked=state.liked, likes_count=state.likes_count)

    # ============================================================
    # Reads
    # ============================================================

    async def list_presets(self, sort: str = "likes", page: int = 1, viewer_id: str | None = None) -> PresetPage:
        """One page of presets, personalized with `liked` flags when viewer_id is set."""
        if sort not in PRESET_SORTS:
            raise ValidationError(f"sort must be one of {list(PRESET_SORTS)}", {"field": "sort", "value": sort})
        if page < 1:
            raise ValidationError("page must be >= 1", {"field": "page", "value": page})

        async def compute() -> dict:
            # Fetch one row past the page to know whether another page exists.
            records = await self.store.list_presets(
                sort=sort,
                limit=self.page_size + 1,
                offset=(page - 1) * self.page_size,
                viewer_id=viewer_id,
            )
            result = PresetPage(
                presets=[_to_schema(r) for r in records[: self.page_size]],
                page=page,
                sort=sort,
                has_more=len(records) > self.page_size,
            )
            return result.model_dump(mode="json", by_alias=True)

        ttl = self.cache.config.viewer_list_ttl if viewer_id else self.cache.config.presets_list_ttl
        data = await self.cache.read(self.keys.presets_list(sort, page, viewer_id), compute, ttl)
        return PresetPage.model_validate(data)

    async def get_preset(self, preset_id: str, viewer_id: str | None = None) -> Preset:
        async def compute() -> dict:
            record = await self.store.get_preset(preset_id, viewer_id=viewer_id)
            if record is None:
                raise NotFoundError(f"Preset {preset_id} not found", {"preset_id": preset_id})
            return _to_schema(record).model_dump(mode="json", by_alias=True)

        ttl = self.cache.config.viewer_list_ttl if viewer_id else self.cache.config.preset_ttl
        data = await self.cache.read(self.keys.preset(preset_id, viewer_id), compute, ttl)
        return Preset.model_validate(data)

    async def list_presets_for_package(self, package_name: str) -> PresetList:
        """Presets that include the given package, most liked first."""
        if not is_valid_package_name(package_name):
            raise ValidationError("Invalid package name", {"field": "name", "value": package_name})

        async def compute() -> dict:
            records = await self.store.list_presets_for_package(package_name, PACKAGE_PRESETS_LIMIT)
            return PresetList(presets=[_to_schema(r) for r in records]).model_dump(mode="json", by_alias=True)

        data = await self.cache.read(
            self.keys.package_presets(package_name),
            compute,
            self.cache.config.presets_list_ttl,
        )
        return PresetList.model_validate(data)

    async def get_me(self, caller: CallerIdentity | None) -> MeResponse:
        """Caller profile plus authored-preset stats."""
        if caller is None or caller.viewer_id is None:
            return MeResponse(authenticated=False, user=None)

        async def compute() -> dict:
            stats = await self.store.get_user_stats(caller.id)
            return UserStats(
                presets_count=stats.presets_count,
                total_likes=stats.total_likes,
            ).model_dump(mode="json", by_alias=True)

        data = await self.cache.read(self.keys.user_stats(caller.id), compute, self.cache.config.stats_ttl)
        return MeResponse(
            authenticated=True,
            user=MeUser(
                id=caller.id,
                name=caller.name,
                avatar_url=caller.avatar_url,
                stats=UserStats.model_validate(data),
            ),
        )
