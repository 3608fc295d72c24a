"""Brave search provider."""

import logging

import httpx

from .base import SourceItem

logger = logging.getLogger(__name__)


class BraveSearchProvider:
    """Brave search provider (privacy-focused)."""

    def __init__(self, api_key: str):
        """
        Initialize Brave provider.

        Args:
            api_key: Brave API key
        """
        self.api_key = api_key
        self.base_url = "https://api.search.brave.com/res/v1/web/search"
        self._name = "brave"

    @property
    def name(self) -> str:
        return self._name

    async def search(
        self,
        query: str,
        max_results: int = 10,
        timeout: float | None = None,
    ) -> list[SourceItem]:
        """Execute Brave search. Brave returns snippets only, not page content."""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                self.base_url,
                headers={"X-Subscription-Token": self.api_key},
                params={"q": query, "count": max_results},
                timeout=timeout or 30.0,
            )

            response.raise_for_status()
            data = response.json()

            return [
                SourceItem(
                    url=r.get("url") or None,
                    title=r.get("title") or None,
                    content=r.get("description") or None,
                    published_date=r.get("page_age"),
                )
                for r in data.get("web", {}).get("results", [])
            ]
