"""Multi-provider search and adaptive dispatch."""

from .base import SearchManager, SearchProvider, SearchQuery, SearchResult, SourceItem
from .brave import BraveSearchProvider
from .dispatcher import ConcurrencyConfig, ConcurrencyController, SearchDispatcher
from .firecrawl import FirecrawlSearchProvider
from .serper import SerperSearchProvider
from .tavily import TavilySearchProvider

__all__ = [
    "BraveSearchProvider",
    "ConcurrencyConfig",
    "ConcurrencyController",
    "FirecrawlSearchProvider",
    "SearchDispatcher",
    "SearchManager",
    "SearchProvider",
    "SearchQuery",
    "SearchResult",
    "SerperSearchProvider",
    "SourceItem",
    "TavilySearchProvider",
]
