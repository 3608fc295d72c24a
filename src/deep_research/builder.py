"""
Assemble a ResearchOrchestrator from configuration.

Every collaborator is created here and injected, so nothing that affects
research outcomes lives in module-level state.
"""

import logging

from .agents.adapters.anthropic import AnthropicAdapter
from .agents.adapters.openrouter import OpenRouterAdapter
from .agents.protocol import ModelAdapter
from .cache.base import CacheBackend
from .cache.memory import MemoryCache
from .cache.redis_cache import RedisCache
from .cache.tiered import CacheTier, TieredCache
from .config import CacheConfig, ResearchConfig, SearchConfig
from .orchestrator.core import ProgressCallback, ResearchOrchestrator
from .orchestrator.evaluation import ReliabilityEvaluator
from .orchestrator.planner import QueryPlanner
from .search.base import SearchManager, SearchProvider
from .search.brave import BraveSearchProvider
from .search.dispatcher import ConcurrencyConfig, SearchDispatcher
from .search.firecrawl import FirecrawlSearchProvider
from .search.serper import SerperSearchProvider
from .search.tavily import TavilySearchProvider

logger = logging.getLogger(__name__)


def build_model_adapter(config: ResearchConfig) -> ModelAdapter:
    """Create the configured model adapter."""
    api_key = config.get_model_api_key()
    model_cfg = config.model

    if model_cfg.provider == "anthropic":
        return AnthropicAdapter(
            model=model_cfg.model,
            api_key=api_key,
            timeout=model_cfg.timeout_seconds,
            max_retries=model_cfg.max_retries,
        )
    if model_cfg.provider == "openrouter":
        return OpenRouterAdapter(
            model=model_cfg.model,
            api_key=api_key,
            timeout=model_cfg.timeout_seconds,
            max_retries=model_cfg.max_retries,
        )

    raise ValueError(f"Unknown model provider: {model_cfg.provider}")


def build_search_manager(config: SearchConfig) -> SearchManager:
    """Create providers in priority order behind a fallback manager."""
    providers: list[SearchProvider] = []

    for provider_cfg in config.ordered_providers():
        api_key = provider_cfg.get_api_key()

        if provider_cfg.name == "tavily":
            if not api_key:
                raise ValueError("tavily requires api_key_env")
            providers.append(TavilySearchProvider(api_key=api_key))
        elif provider_cfg.name == "brave":
            if not api_key:
                raise ValueError("brave requires api_key_env")
            providers.append(BraveSearchProvider(api_key=api_key))
        elif provider_cfg.name == "serper":
            if not api_key:
                raise ValueError("serper requires api_key_env")
            providers.append(SerperSearchProvider(api_key=api_key))
        elif provider_cfg.name == "firecrawl":
            providers.append(
                FirecrawlSearchProvider(api_key=api_key, base_url=provider_cfg.base_url)
            )

        logger.debug(f"Configured search provider: {provider_cfg.name}")

    return SearchManager(
        providers,
        fallback_enabled=config.fallback_enabled,
        default_limit=config.results_per_query,
        default_timeout=config.timeout_seconds,
    )


def build_cache(config: CacheConfig) -> CacheBackend | None:
    """Memory near tier, plus a Redis shared tier when a URL is configured."""
    if not config.enabled:
        return None

    tiers = [
        CacheTier(
            backend=MemoryCache(
                max_entries=config.memory_max_entries,
                sweep_threshold=config.memory_sweep_threshold,
            ),
            name="memory",
            max_ttl=config.memory_max_ttl_seconds,
        )
    ]
    if config.redis_url:
        tiers.append(
            CacheTier(
                backend=RedisCache.from_url(config.redis_url, key_prefix=config.key_prefix),
                name="redis",
            )
        )

    return TieredCache(tiers, backfill_ttl=config.memory_max_ttl_seconds)


def build_orchestrator(
    config: ResearchConfig,
    adapter: ModelAdapter | None = None,
    search_manager: SearchManager | None = None,
    cache: CacheBackend | None = None,
    progress_callback: ProgressCallback | None = None,
) -> ResearchOrchestrator:
    """
    Build a fully wired orchestrator.

    Args:
        config: Validated configuration
        adapter: Model adapter override (defaults to the configured one)
        search_manager: Search capability override
        cache: Cache override (defaults to the configured tiers)
        progress_callback: Optional async progress callback

    Returns:
        ResearchOrchestrator ready for conduct_research()
    """
    adapter = adapter or build_model_adapter(config)
    search_manager = search_manager or build_search_manager(config.search)
    if cache is None:
        cache = build_cache(config.cache)

    dispatcher_cfg = config.dispatcher
    dispatcher = SearchDispatcher(
        search_manager,
        config=ConcurrencyConfig(
            min_concurrency=dispatcher_cfg.min_concurrency,
            max_concurrency=dispatcher_cfg.max_concurrency,
            initial_concurrency=dispatcher_cfg.initial_concurrency,
            adjustment_interval=dispatcher_cfg.adjustment_interval_seconds,
            min_samples=dispatcher_cfg.min_samples,
            low_latency_threshold=dispatcher_cfg.low_latency_seconds,
            high_latency_threshold=dispatcher_cfg.high_latency_seconds,
        ),
        cache=cache,
        cache_ttl=config.cache.search_ttl_seconds,
    )

    evaluator = ReliabilityEvaluator(
        adapter,
        cache=cache,
        cache_ttl=config.cache.evaluation_ttl_seconds,
        max_content_chars=config.research.max_content_chars,
    )

    planner = QueryPlanner(
        adapter,
        results_per_query=config.search.results_per_query,
        search_timeout=config.search.timeout_seconds,
    )

    return ResearchOrchestrator(
        planner=planner,
        dispatcher=dispatcher,
        evaluator=evaluator,
        max_depth=config.research.max_depth,
        max_breadth=config.research.max_breadth,
        evaluation_concurrency=config.research.evaluation_concurrency,
        progress_callback=progress_callback,
    )
