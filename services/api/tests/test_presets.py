"""Preset service: creation, like toggling, cached reads and invalidation."""

import asyncio

import pytest

from app.errors import AuthRequiredError, ConflictError, NotFoundError, ValidationError
from app.services.cache import CacheAside, CacheConfig, NullCacheBackend
from app.services.identity import ANONYMOUS
from app.services.presets import PresetService
from app.stores.repository import PresetStore

from tests.conftest import MemoryCacheBackend, TickingClock, make_user

U1 = make_user("u1", "User One")
U2 = make_user("u2", "User Two")


@pytest.mark.asyncio
async def test_create_preset_returns_slug_and_zero_likes(preset_service: PresetService):
    preset = await preset_service.create_preset(U1, "A vs B", ["a", "b"])

    assert preset.id.startswith("a-vs-b-")
    assert preset.likes_count == 0
    assert preset.packages == ["a", "b"]
    assert preset.npmtrends_url == "https://npmtrends.com/a-vs-b"
    assert preset.owner_id == "u1"
    assert preset.owner_name == "User One"


@pytest.mark.asyncio
async def test_create_preset_normalizes_packages(preset_service: PresetService):
    preset = await preset_service.create_preset(U1, "  Frameworks  ", ["React", "vue", "react", "!!"])
    assert preset.title == "Frameworks"
    assert preset.packages == ["react", "vue"]


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [1, 11])
async def test_create_preset_rejects_package_count(preset_service: PresetService, store: PresetStore, count: int):
    with pytest.raises(ValidationError):
        await preset_service.create_preset(U1, "Too few or many", [f"pkg-{i}" for i in range(count)])
    assert await store.list_presets(sort="new", limit=10) == []


@pytest.mark.asyncio
async def test_create_preset_requires_identity(preset_service: PresetService):
    with pytest.raises(AuthRequiredError):
        await preset_service.create_preset(ANONYMOUS, "A vs B", ["a", "b"])
    with pytest.raises(AuthRequiredError):
        await preset_service.create_preset(None, "A vs B", ["a", "b"])


@pytest.mark.asyncio
async def test_toggle_like_round_trip(preset_service: PresetService, store: PresetStore):
    preset = await preset_service.create_preset(U1, "A vs B", ["a", "b"])

    liked = await preset_service.toggle_like(U2, preset.id)
    assert (liked.liked, liked.likes_count) == (True, 1)

    unliked = await preset_service.toggle_like(U2, preset.id)
    assert (unliked.liked, unliked.likes_count) == (False, 0)
    assert await store.count_likes(preset.id) == 0


@pytest.mark.asyncio
async def test_toggle_like_requires_identity_and_existing_preset(preset_service: PresetService):
    with pytest.raises(AuthRequiredError):
        await preset_service.toggle_like(ANONYMOUS, "whatever")
    with pytest.raises(NotFoundError):
        await preset_service.toggle_like(U2, "missing-preset")


@pytest.mark.asyncio
async def test_counter_matches_like_rows_after_many_toggles(preset_service: PresetService, store: PresetStore):
    preset = await preset_service.create_preset(U1, "A vs B", ["a", "b"])
    users = [make_user(f"user-{i}") for i in range(5)]

    for round_number in range(3):
        for user in users[: round_number + 2]:
            await preset_service.toggle_like(user, preset.id)

    record = await store.get_preset(preset.id)
    assert record.likes_count == await store.count_likes(preset.id)


@pytest.mark.asyncio
async def test_concurrent_likes_from_different_users_all_count(preset_service: PresetService, store: PresetStore):
    preset = await preset_service.create_preset(U1, "A vs B", ["a", "b"])
    users = [make_user(f"user-{i}") for i in range(5)]
    for user in users:
        await store.ensure_user(user.id)

    results = await asyncio.gather(*(preset_service.toggle_like(u, preset.id) for u in users))

    assert all(r.liked for r in results)
    assert await store.count_likes(preset.id) == 5
    assert (await store.get_preset(preset.id)).likes_count == 5


@pytest.mark.asyncio
async def test_concurrent_toggles_from_same_user_keep_counter_consistent(
    preset_service: PresetService, store: PresetStore
):
    preset = await preset_service.create_preset(U1, "A vs B", ["a", "b"])
    await store.ensure_user(U2.id)

    await asyncio.gather(*(preset_service.toggle_like(U2, preset.id) for _ in range(4)))

    likes = await store.count_likes(preset.id)
    assert likes in (0, 1)
    assert (await store.get_preset(preset.id)).likes_count == likes


class RaceLosingStore(PresetStore):
    """Another toggle by the same user commits first, so this one conflicts."""

    def __init__(self):
        super().__init__()
        self.state_reads = 0

    async def toggle_like(self, user_id, preset_id):
        await super().toggle_like(user_id, preset_id)
        raise ConflictError("Like changed concurrently", {"preset_id": preset_id})

    async def get_like_state(self, user_id, preset_id):
        self.state_reads += 1
        return await super().get_like_state(user_id, preset_id)


@pytest.mark.asyncio
async def test_toggle_like_conflict_returns_committed_state_and_invalidates(
    db, cache: CacheAside, cache_backend: MemoryCacheBackend
):
    store = RaceLosingStore()
    service = PresetService(store, cache, page_size=3, clock=TickingClock())
    preset = await service.create_preset(U1, "A vs B", ["a", "b"])
    assert (await service.get_preset(preset.id)).likes_count == 0

    result = await service.toggle_like(U2, preset.id)

    assert store.state_reads == 1
    assert (result.liked, result.likes_count) == (True, 1)
    assert service.keys.preset(preset.id) in cache_backend.deleted
    assert service.keys.preset(preset.id, U2.id) in cache_backend.deleted
    assert service.keys.user_stats(U1.id) in cache_backend.deleted
    assert (await service.get_preset(preset.id)).likes_count == 1


# ============================================================
# Cached reads
# ============================================================


@pytest.mark.asyncio
async def test_list_presets_pages_with_one_ahead_has_more(preset_service: PresetService):
    for i in range(4):
        await preset_service.create_preset(U1, f"Preset {i}", ["a", "b"])

    first = await preset_service.list_presets(sort="new", page=1)
    assert [p.title for p in first.presets] == ["Preset 3", "Preset 2", "Preset 1"]
    assert first.has_more is True

    second = await preset_service.list_presets(sort="new", page=2)
    assert [p.title for p in second.presets] == ["Preset 0"]
    assert second.has_more is False


@pytest.mark.asyncio
async def test_exactly_full_last_page_reports_no_more(preset_service: PresetService):
    for i in range(3):
        await preset_service.create_preset(U1, f"Preset {i}", ["a", "b"])

    page = await preset_service.list_presets(sort="new", page=1)
    assert len(page.presets) == 3
    assert page.has_more is False


@pytest.mark.asyncio
async def test_list_presets_rejects_bad_arguments(preset_service: PresetService):
    with pytest.raises(ValidationError):
        await preset_service.list_presets(sort="random")
    with pytest.raises(ValidationError):
        await preset_service.list_presets(page=0)


@pytest.mark.asyncio
async def test_list_is_served_from_cache_until_a_write_invalidates_it(
    preset_service: PresetService, cache_backend: MemoryCacheBackend
):
    await preset_service.create_preset(U1, "First", ["a", "b"])
    key = preset_service.keys.presets_list("new", 1)

    await preset_service.list_presets(sort="new", page=1)
    assert key in cache_backend.data

    await preset_service.create_preset(U1, "Second", ["c", "d"])
    assert key not in cache_backend.data

    page = await preset_service.list_presets(sort="new", page=1)
    assert [p.title for p in page.presets] == ["Second", "First"]


@pytest.mark.asyncio
async def test_like_is_visible_on_next_read(preset_service: PresetService):
    preset = await preset_service.create_preset(U1, "A vs B", ["a", "b"])

    before = await preset_service.list_presets(sort="likes", page=1, viewer_id=U2.id)
    assert before.presets[0].liked is False
    assert (await preset_service.get_preset(preset.id)).likes_count == 0

    await preset_service.toggle_like(U2, preset.id)

    after = await preset_service.list_presets(sort="likes", page=1, viewer_id=U2.id)
    assert after.presets[0].liked is True
    assert after.presets[0].likes_count == 1
    assert (await preset_service.get_preset(preset.id)).likes_count == 1
    assert (await preset_service.get_preset(preset.id, viewer_id=U2.id)).liked is True


@pytest.mark.asyncio
async def test_anonymous_list_has_no_liked_flags(preset_service: PresetService):
    await preset_service.create_preset(U1, "A vs B", ["a", "b"])
    page = await preset_service.list_presets(sort="likes", page=1)
    assert page.presets[0].liked is None


@pytest.mark.asyncio
async def test_get_preset_not_found_is_not_cached(preset_service: PresetService, cache_backend: MemoryCacheBackend):
    with pytest.raises(NotFoundError):
        await preset_service.get_preset("missing")
    assert preset_service.keys.preset("missing") not in cache_backend.data


@pytest.mark.asyncio
async def test_presets_for_package_refresh_after_create(preset_service: PresetService):
    assert (await preset_service.list_presets_for_package("react")).presets == []

    await preset_service.create_preset(U1, "React vs Vue", ["react", "vue"])

    result = await preset_service.list_presets_for_package("react")
    assert [p.title for p in result.presets] == ["React vs Vue"]


@pytest.mark.asyncio
async def test_get_me(preset_service: PresetService):
    anonymous = await preset_service.get_me(ANONYMOUS)
    assert anonymous.authenticated is False
    assert anonymous.user is None

    preset = await preset_service.create_preset(U1, "A vs B", ["a", "b"])
    await preset_service.toggle_like(U2, preset.id)

    me = await preset_service.get_me(U1)
    assert me.authenticated is True
    assert me.user.id == "u1"
    assert me.user.stats.presets_count == 1
    assert me.user.stats.total_likes == 1


@pytest.mark.asyncio
async def test_cached_and_uncached_reads_are_identical(store: PresetStore):
    cached = PresetService(store, CacheAside(MemoryCacheBackend(), CacheConfig()), page_size=3, clock=TickingClock())
    uncached = PresetService(store, CacheAside(NullCacheBackend(), CacheConfig()), page_size=3)

    preset = await cached.create_preset(U1, "A vs B", ["a", "b"])
    await cached.create_preset(U1, "C vs D", ["c", "d"])
    await cached.toggle_like(U2, preset.id)

    for _ in range(2):
        assert await cached.list_presets(sort="likes", page=1, viewer_id=U2.id) == await uncached.list_presets(
            sort="likes", page=1, viewer_id=U2.id
        )
        assert await cached.get_preset(preset.id) == await uncached.get_preset(preset.id)
        assert await cached.get_me(U1) == await uncached.get_me(U1)


@pytest.mark.asyncio
async def test_invalidation_is_bounded_to_leading_pages(store: PresetStore):
    backend = MemoryCacheBackend()
    service = PresetService(
        store,
        CacheAside(backend, CacheConfig(invalidate_pages=1)),
        page_size=1,
        clock=TickingClock(),
    )
    for i in range(3):
        await service.create_preset(U1, f"Preset {i}", ["a", "b"])

    await service.list_presets(sort="new", page=1)
    deep = await service.list_presets(sort="new", page=2)
    assert [p.title for p in deep.presets] == ["Preset 1"]

    await service.create_preset(U1, "Preset 3", ["a", "b"])

    assert [p.title for p in (await service.list_presets(sort="new", page=1)).presets] == ["Preset 3"]
    # Page 2 is beyond the bound: it keeps its cached value until TTL expiry
    assert [p.title for p in (await service.list_presets(sort="new", page=2)).presets] == ["Preset 1"]
