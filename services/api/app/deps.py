"""FastAPI dependencies: caller identity and service wiring.

Tests override these via `app.dependency_overrides`.
"""

from fastapi import Header

from app.errors import ValidationError
from app.services.cache import CacheAside
from app.services.hydration import NoopHydrator, PackageHydrator, RegistryHydrator
from app.services.identity import ANONYMOUS, CallerIdentity
from app.services.packages import PackageService
from app.services.presets import PresetService
from app.services.registry_client import get_registry_client
from app.settings import get_settings
from app.stores.redis import RedisCacheBackend
from app.stores.repository import PresetStore

# Matches the users.id and users.name column widths
MAX_IDENTITY_LENGTH = 200


def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
    x_user_avatar: str | None = Header(default=None),
) -> CallerIdentity:
    """Identity forwarded by the auth proxy; no X-User-Id means anonymous."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        return ANONYMOUS
    for header, value in (("X-User-Id", user_id), ("X-User-Name", x_user_name or "")):
        if len(value) > MAX_IDENTITY_LENGTH:
            raise ValidationError(
                f"{header} must be at most {MAX_IDENTITY_LENGTH} characters",
                {"field": header, "length": len(value)},
            )
    return CallerIdentity(
        id=user_id,
        name=x_user_name or None,
        avatar_url=x_user_avatar or None,
        authenticated=True,
    )


def get_cache() -> CacheAside:
    return CacheAside(RedisCacheBackend(), get_settings().cache_config())


def get_hydrator() -> PackageHydrator:
    if not get_settings().hydration_enabled:
        return NoopHydrator()
    return RegistryHydrator(get_registry_client())


def get_preset_service() -> PresetService:
    return PresetService(PresetStore(), get_cache(), page_size=get_settings().presets_page_size)


def get_package_service() -> PackageService:
    return PackageService(PresetStore(), get_cache(), get_hydrator())
