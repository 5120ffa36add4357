"""Sources of published version tags for dependencies."""

import asyncio
from typing import Protocol
from urllib.parse import quote

import httpx

from .config import DEFAULT_REGISTRY
from .errors import TagNotFoundError, TagSourceError
from .ranges import clean_tags


class TagSource(Protocol):
    """Anything that can list the published tags of a dependency."""

    async def list_tags(self, name: str) -> list[str]:
        """Return tags sorted high to low; raise TagNotFoundError for unknown names."""
        ...


class StaticTagSource:
    """Tags held in memory, e.g. loaded from a JSON file."""

    def __init__(self, tags: dict[str, list[str]]):
        self.tags = {name: clean_tags(values) for name, values in tags.items()}

    async def list_tags(self, name: str) -> list[str]:
        if name not in self.tags:
            raise TagNotFoundError(name)
        return list(self.tags[name])


class RegistryTagSource:
    """Tag source backed by an npm-compatible package registry."""

    def __init__(
        self,
        registry_url: str = DEFAULT_REGISTRY,
        timeout: float = 30.0,
        max_concurrency: int = 6,
    ):
        """Initialize registry tag source.

        Args:
            registry_url: Base URL of the registry
            timeout: Request timeout in seconds
            max_concurrency: Maximum concurrent requests
        """
        self.registry_url = registry_url.rstrip("/") + "/"
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self._cache: dict[str, list[str]] = {}
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def list_tags(self, name: str) -> list[str]:
        """List published versions of a package.

        Args:
            name: Package name

        Returns:
            Valid version strings, highest first

        Raises:
            TagNotFoundError: If the registry does not know the package
            TagSourceError: On timeouts and other HTTP failures
        """
        if name in self._cache:
            return list(self._cache[name])

        async with self._semaphore:
            metadata = await self._fetch_package_metadata(name)
        if metadata is None:
            raise TagNotFoundError(name)

        versions = (metadata.get("versions") or {}) if isinstance(metadata, dict) else None
        if not isinstance(versions, dict):
            raise TagSourceError(name, f"Unexpected registry document for {name}")
        tags = clean_tags(list(versions))
        self._cache[name] = tags
        return list(tags)

    async def _fetch_package_metadata(self, name: str) -> dict | None:
        """Fetch the registry document for a package.

        Args:
            name: Package name

        Returns:
            Registry document or None if not found
        """
        url = self.registry_url + quote(name, safe="@")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException:
            raise TagSourceError(name, f"Timeout fetching tags for {name}")
        except httpx.HTTPStatusError as e:
            raise TagSourceError(name, f"HTTP error fetching {name}: {e}")
        except (httpx.HTTPError, ValueError) as e:
            raise TagSourceError(name, f"Network error fetching {name}: {e}")
