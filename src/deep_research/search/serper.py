"""Serper (Google) search provider."""

import logging

import httpx

from .base import SourceItem

logger = logging.getLogger(__name__)


class SerperSearchProvider:
    """Serper search provider (Google results)."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self.url = "https://google.serper.dev/search"
        self._name = "serper"

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
        Execute Serper search.

        Args:
            query: Search query
            max_results: Maximum results to return
            timeout: Request timeout in seconds

        Returns:
            List of source items
        """
        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.url,
                headers={"X-API-KEY": self.api_key},
                json={"q": query, "num": max_results},
                timeout=timeout or 30.0,
            )

            response.raise_for_status()
            data = response.json()

            return [
                SourceItem(
                    url=r.get("link") or None,
                    title=r.get("title") or None,
                    content=r.get("snippet") or None,
                    published_date=r.get("date"),
                )
                for r in data.get("organic", [])
            ]
