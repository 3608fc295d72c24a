"""Tavily search provider."""

import asyncio
import logging

from tavily import TavilyClient

from .base import SourceItem

logger = logging.getLogger(__name__)


class TavilySearchProvider:
    """Tavily search provider (best for research)."""

    def __init__(self, api_key: str, search_depth: str = "advanced"):
        """
        Initialize Tavily provider.

        Args:
            api_key: Tavily API key
            search_depth: "basic" or "advanced"
        """
        self.client = TavilyClient(api_key=api_key)
        self.search_depth = search_depth
        self._name = "tavily"

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
        Execute Tavily search.

        Args:
            query: Search query
            max_results: Maximum results to return
            timeout: Request timeout in seconds

        Returns:
            List of source items
        """
        # Tavily client is synchronous; keep it off the event loop
        response = await asyncio.to_thread(
            self.client.search,
            query=query,
            max_results=max_results,
            search_depth=self.search_depth,
            include_raw_content=True,
            timeout=int(timeout or 60),
        )

        return [
            SourceItem(
                url=r.get("url") or None,
                title=r.get("title") or None,
                content=r.get("raw_content") or r.get("content") or None,
                published_date=r.get("published_date"),
            )
            for r in response.get("results", [])
        ]
