"""Shared fixtures: a throwaway SQLite database, an in-memory cache and a
scripted hydrator, wired into the real services."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from app.deps import get_package_service, get_preset_service
from app.errors import CacheError, RegistryError
from app.main import app
from app.services.cache import CacheAside, CacheConfig
from app.services.identity import CallerIdentity
from app.services.packages import PackageService
from app.services.presets import PresetService
from app.stores.postgres import close_db, create_tables, init_db
from app.stores.repository import PresetStore


class MemoryCacheBackend:
    """Dict-backed CacheBackend that records every call."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.gets = 0
        self.sets = 0
        self.deleted: list[str] = []

    async def get(self, key: str) -> str | None:
        self.gets += 1
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        self.sets += 1
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, keys: list[str]) -> None:
        self.deleted.extend(keys)
        for key in keys:
            self.data.pop(key, None)


class BrokenCacheBackend:
    """Cache that is down: every call fails."""

    async def get(self, key: str) -> str | None:
        raise CacheError("connection refused")

    async def set(self, key: str, value: str, ttl: int) -> None:
        raise CacheError("connection refused")

    async def delete(self, keys: list[str]) -> None:
        raise CacheError("connection refused")


class FakeHydrator:
    """Scripted registry: known packages, unknown packages, or an outage."""

    def __init__(self, packages: dict[str, dict] | None = None, down: bool = False):
        self.packages = packages or {}
        self.down = down
        self.calls: list[str] = []

    async def fetch(self, name: str) -> dict | None:
        self.calls.append(name)
        if self.down:
            raise RegistryError("registry timed out", {"package": name})
        return self.packages.get(name)


class TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_user(user_id: str, name: str | None = None) -> CallerIdentity:
    return CallerIdentity(id=user_id, name=name or user_id, authenticated=True)


@pytest.fixture
async def db(tmp_path):
    """Fresh SQLite database per test (same schema as PostgreSQL)."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'presets.db'}")
    await create_tables()
    yield
    await close_db()


@pytest.fixture
def store(db) -> PresetStore:
    return PresetStore()


@pytest.fixture
def cache_backend() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture
def cache(cache_backend: MemoryCacheBackend) -> CacheAside:
    return CacheAside(cache_backend, CacheConfig())


@pytest.fixture
def hydrator() -> FakeHydrator:
    return FakeHydrator(
        {
            "left-pad": {
                "description": "String left pad",
                "repository": "https://github.com/left-pad/left-pad",
                "homepage": None,
                "weekly_downloads": 1_500_000,
            },
        }
    )


@pytest.fixture
def preset_service(store: PresetStore, cache: CacheAside) -> PresetService:
    return PresetService(store, cache, page_size=3, clock=TickingClock())


@pytest.fixture
def package_service(store: PresetStore, cache: CacheAside, hydrator: FakeHydrator) -> PackageService:
    return PackageService(store, cache, hydrator)


@pytest.fixture
async def client(preset_service: PresetService, package_service: PackageService):
    """API client wired to the test services (lifespan is not run)."""
    app.dependency_overrides[get_preset_service] = lambda: preset_service
    app.dependency_overrides[get_package_service] = lambda: package_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
