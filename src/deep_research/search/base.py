"""
Base search provider protocol and manager.

Supports multiple search providers with automatic fallback. Providers that
set ``disable_on_connection_failure`` (a self-hosted instance, say) are
skipped for the rest of the manager's lifetime once they fail to connect,
as long as another provider remains.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from ..errors import SearchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchQuery:
    """One planned search."""

    text: str
    limit: int | None = None
    timeout: float | None = None
    research_goal: str | None = None


@dataclass
class SourceItem:
    """Single search result. The engine treats content as opaque."""

    url: str | None = None
    title: str | None = None
    content: str | None = None
    published_date: str | None = None


@dataclass
class SearchResult:
    """Items returned for one query."""

    query: str
    items: list[SourceItem] = field(default_factory=list)
    success: bool = True
    provider: str | None = None  # Which provider returned this


class SearchProvider(Protocol):
    """Protocol for search providers."""

    @property
    def name(self) -> str:
        """Provider name (tavily, brave, serper, firecrawl, etc.)."""
        ...

    async def search(
        self,
        query: str,
        max_results: int = 10,
        timeout: float | None = None,
    ) -> list[SourceItem]:
        """
        Execute search and return results.

        Args:
            query: Search query
            max_results: Maximum results to return
            timeout: Per-request timeout in seconds

        Returns:
            List of source items
        """
        ...


class SearchManager:
    """Manages multiple search providers with fallback."""

    def __init__(
        self,
        providers: list[SearchProvider],
        fallback_enabled: bool = True,
        default_limit: int = 5,
        default_timeout: float = 30.0,
    ):
        """
        Initialize search manager.

        Args:
            providers: List of search providers (in priority order)
            fallback_enabled: Enable automatic fallback on failure
            default_limit: Results per query when the query sets no limit
            default_timeout: Seconds per provider call when the query sets none
        """
        if not providers:
            raise ValueError("At least one search provider required")

        self.providers = providers
        self.fallback_enabled = fallback_enabled
        self.default_limit = default_limit
        self.default_timeout = default_timeout
        self.disabled: set[str] = set()

    @property
    def name(self) -> str:
        return "+".join(p.name for p in self.providers)

    def _active_providers(self) -> list[SearchProvider]:
        return [p for p in self.providers if p.name not in self.disabled]

    def _disable_if_unreachable(self, provider: SearchProvider, error: BaseException) -> None:
        if not getattr(provider, "disable_on_connection_failure", False):
            return
        if not isinstance(error, (httpx.TransportError, OSError, asyncio.TimeoutError)):
            return
        if len(self._active_providers()) <= 1:
            return

        self.disabled.add(provider.name)
        logger.warning(f"Disabling search provider {provider.name} after connection failure")

    async def search(
        self,
        query: str,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> SearchResult:
        """
        Search using providers with automatic fallback.

        Args:
            query: Search query
            limit: Maximum results to return
            timeout: Per-provider timeout in seconds

        Returns:
            SearchResult from the first provider that answered

        Raises:
            SearchError: If all providers fail
        """
        max_results = limit or self.default_limit
        call_timeout = timeout or self.default_timeout
        last_error: BaseException | None = None

        for provider in self._active_providers():
            try:
                logger.debug(f"Trying search provider: {provider.name}")
                items = await asyncio.wait_for(
                    provider.search(query, max_results, timeout=call_timeout),
                    timeout=call_timeout,
                )

                if items:
                    logger.info(
                        f"Search via {provider.name}: {len(items)} results for '{query[:50]}...'"
                    )
                    return SearchResult(
                        query=query,
                        items=items[:max_results],
                        success=True,
                        provider=provider.name,
                    )

                logger.warning(f"No results from {provider.name}")

            except Exception as e:
                logger.warning(f"Search failed for {provider.name}: {e!r}")
                last_error = e
                self._disable_if_unreachable(provider, e)

                if not self.fallback_enabled:
                    raise SearchError(
                        f"Search failed for {provider.name}: {e}", query=query, cause=e
                    ) from e

        # All providers failed
        if last_error:
            raise SearchError(
                f"All search providers failed. Last error: {last_error!r}",
                query=query,
                cause=last_error,
            ) from last_error

        return SearchResult(query=query, items=[], success=True)
