"""npm registry client.

Endpoints:
- {registry_url}/{name}: package document (description, repository, homepage)
- {downloads_url}/point/last-week/{name}: weekly download count

Every call is bounded by REGISTRY_TIMEOUT_SECONDS. Failures (timeouts,
transport errors, 5xx, malformed JSON) raise RegistryError; a 404 from the
registry means the package does not exist and returns None.
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from app.errors import RegistryError
from app.settings import get_settings

logger = logging.getLogger("uvicorn.error")


@dataclass
class PackageMetadata:
    """Parsed subset of the registry package document."""

    name: str
    description: str | None = None
    repository: str | None = None
    homepage: str | None = None


class NpmRegistryClient:
    """Client for the public npm registry and downloads API."""

    def __init__(
        self,
        registry_url: str | None = None,
        downloads_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.registry_url = (registry_url or settings.registry_url).rstrip("/")
        self.downloads_url = (downloads_url or settings.downloads_url).rstrip("/")
        self.timeout = timeout or settings.registry_timeout_seconds
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_json(self, url: str) -> dict[str, Any] | None:
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise RegistryError(f"Registry request timed out: {url}") from e
        except httpx.HTTPError as e:
            raise RegistryError(f"Registry request failed: {url}: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.warning(f"Registry returned {response.status_code} for {url}")
            raise RegistryError(
                f"Registry returned HTTP {response.status_code}",
                {"url": url, "status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RegistryError(f"Registry returned invalid JSON: {url}") from e
        if not isinstance(data, dict):
            raise RegistryError(f"Unexpected registry payload: {url}")
        return data

    async def get_metadata(self, name: str) -> PackageMetadata | None:
        """Fetch package metadata; None if the registry has no such package."""
        # Scoped names keep "@" but must encode the "/" ("@types%2Fnode").
        data = await self._get_json(f"{self.registry_url}/{quote(name, safe='@')}")
        if data is None:
            return None
        return self._parse_metadata(name, data)

    async def get_weekly_downloads(self, name: str) -> int | None:
        """Fetch last-week downloads; None if unknown."""
        data = await self._get_json(f"{self.downloads_url}/point/last-week/{quote(name, safe='@/')}")
        if data is None:
            return None
        downloads = data.get("downloads")
        if isinstance(downloads, bool) or not isinstance(downloads, int):
            return None
        return max(downloads, 0)

    def _parse_metadata(self, name: str, data: dict[str, Any]) -> PackageMetadata:
        description = data.get("description")
        homepage = data.get("homepage")
        return PackageMetadata(
            name=name,
            description=description if isinstance(description, str) else None,
            repository=_normalize_repository_url(data.get("repository")),
            homepage=homepage if isinstance(homepage, str) and homepage else None,
        )


def _normalize_repository_url(repository: object) -> str | None:
    """Turn the registry `repository` field into a browsable URL.

    Accepts {"type": "git", "url": "git+https://github.com/a/b.git"} or a
    plain string; returns e.g. "https://github.com/a/b".
    """
    if isinstance(repository, dict):
        repository = repository.get("url")
    if not isinstance(repository, str) or not repository.strip():
        return None

    url = repository.strip()
    if url.startswith("git+"):
        url = url[len("git+"):]
    if url.startswith("git://"):
        url = "https://" + url[len("git://"):]
    if url.startswith("git@github.com:"):
        url = "https://github.com/" + url[len("git@github.com:"):]
    if url.startswith("github:"):
        url = "https://github.com/" + url[len("github:"):]
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


_client: NpmRegistryClient | None = None


def get_registry_client() -> NpmRegistryClient:
    """Get npm registry client singleton."""
    global _client
    if _client is None:
        _client = NpmRegistryClient()
    return _client


async def close_registry_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
