"""
Firecrawl search provider.

Firecrawl searches and scrapes in one call, returning page markdown. It can
run self-hosted (no API key, e.g. http://localhost:3002) or against the cloud
API. Register a local and a cloud instance in priority order to get
local-first behaviour with cloud fallback through SearchManager; a local
instance that cannot be reached is dropped for the rest of the session.
"""

import logging

import httpx

from ..errors import SearchError
from .base import SourceItem

logger = logging.getLogger(__name__)

CLOUD_BASE_URL = "https://api.firecrawl.dev"


class FirecrawlSearchProvider:
    """Firecrawl search provider (search + markdown scrape)."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Firecrawl provider.

        Args:
            api_key: Firecrawl API key (not needed for self-hosted instances)
            base_url: Instance URL; defaults to the cloud API
            transport: Optional httpx transport (tests)
        """
        self.base_url = (base_url or CLOUD_BASE_URL).rstrip("/")
        self.api_key = api_key
        self._transport = transport
        self._name = "firecrawl" if self.base_url == CLOUD_BASE_URL else "firecrawl-local"
        self.disable_on_connection_failure = self.base_url != CLOUD_BASE_URL

        if self.base_url == CLOUD_BASE_URL and not api_key:
            raise ValueError("api_key required for Firecrawl cloud")

    @property
    def name(self) -> str:
        return self._name

    async def search(
        self,
        query: str,
        max_results: int = 10,
        timeout: float | None = None,
    ) -> list[SourceItem]:
        """
        Execute Firecrawl search with markdown scraping.

        Raises:
            SearchError: When cloud credits are exhausted
            httpx.HTTPError: On other transport or HTTP failures
        """
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/v1/search",
                headers=headers,
                json={
                    "query": query,
                    "limit": max_results,
                    "scrapeOptions": {"formats": ["markdown"]},
                },
                timeout=timeout or 60.0,
            )

            if response.status_code == 402:
                raise SearchError(
                    "Firecrawl cloud credits exhausted. "
                    "Start a local Firecrawl instance or add credits.",
                    query=query,
                )
            response.raise_for_status()
            data = response.json()

        results = []
        for r in data.get("data", []):
            metadata = r.get("metadata") or {}
            results.append(
                SourceItem(
                    url=r.get("url") or metadata.get("sourceURL") or None,
                    title=r.get("title") or metadata.get("title") or None,
                    content=r.get("markdown") or r.get("description") or None,
                    published_date=metadata.get("publishedTime"),
                )
            )

        return results
