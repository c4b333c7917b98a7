"""Hydration strategies for packages missing from the catalog.

Flow (driven by PackageService.get_package):
1. Check Redis cache for the package payload
2. Check PostgreSQL for a persisted package row
3. If not found, ask the injected hydrator for registry metadata
4. Upsert the result (idempotent by package name), then serve and cache it

Strategies:
- RegistryHydrator: npm registry metadata + weekly downloads, fetched concurrently
- NoopHydrator: never calls out (tests, offline deployments)

A hydrator returns the package fields (without "weekly_downloads" when the
downloads API could not answer), None when the registry says the package
does not exist, or raises RegistryError when the registry could not
answer (timeout, outage) so the caller can degrade.
"""

import asyncio
import logging
from typing import Any, Protocol

from app.errors import RegistryError
from app.services.registry_client import NpmRegistryClient

logger = logging.getLogger("uvicorn.error")


class PackageHydrator(Protocol):
    async def fetch(self, name: str) -> dict[str, Any] | None: ...


class NoopHydrator:
    """Hydration disabled: every miss degrades to an un-enriched record."""

    async def fetch(self, name: str) -> dict[str, Any] | None:
        raise RegistryError("Package hydration is disabled", {"package": name})


class RegistryHydrator:
    """Fetch metadata and downloads from the npm registry."""

    def __init__(self, client: NpmRegistryClient):
        self.client = client

    async def fetch(self, name: str) -> dict[str, Any] | None:
        metadata_result, downloads_result = await asyncio.gather(
            self.client.get_metadata(name),
            self.client.get_weekly_downloads(name),
            return_exceptions=True,
        )

        # Metadata decides existence; without it there is nothing to persist.
        if isinstance(metadata_result, BaseException):
            if isinstance(metadata_result, RegistryError):
                raise metadata_result
            raise RegistryError(f"Registry metadata lookup failed: {metadata_result}") from metadata_result
        if metadata_result is None:
            logger.info(f"Registry has no package named {name}")
            return None

        fields: dict[str, Any] = {
            "description": metadata_result.description,
            "repository": metadata_result.repository,
            "homepage": metadata_result.homepage,
        }
        # Unknown downloads are left out rather than recorded as zero.
        if isinstance(downloads_result, BaseException):
            logger.warning(f"Weekly downloads unavailable for {name}: {downloads_result}")
            return fields

        fields["weekly_downloads"] = downloads_result or 0
        logger.info(f"Hydrated package {name} from registry ({fields['weekly_downloads']} weekly downloads)")
        return fields
