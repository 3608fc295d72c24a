"""
Search dispatch with adaptive concurrency.

The dispatcher wraps a single stateless search client with:
- an admission gate allowing at most ``ceiling`` searches in flight
- per-call latency and outcome sampling
- an additive-increase/additive-decrease controller that moves the ceiling
  by at most one step per adjustment interval

Concurrency state belongs to the dispatcher instance and persists across
research sessions so tuning amortises over many calls.
"""

import asyncio
import hashlib
import json
import logging
import math
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Protocol

from ..cache.base import CacheBackend, cached_or_none, store_quietly
from ..errors import SearchError
from ..result import Err, Ok, Result
from .base import SearchQuery, SearchResult, SourceItem

logger = logging.getLogger(__name__)


class SearchClient(Protocol):
    """The raw search capability (usually a SearchManager)."""

    async def search(
        self,
        query: str,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> SearchResult:
        ...


@dataclass
class ConcurrencyConfig:
    """Bounds and thresholds for the adaptive controller."""

    min_concurrency: int = 1
    max_concurrency: int = 10
    initial_concurrency: int = 3
    adjustment_interval: float = 5.0
    min_samples: int = 5
    low_latency_threshold: float = 2.0
    high_latency_threshold: float = 10.0
    high_error_rate: float = 0.20
    low_error_rate: float = 0.05

    def __post_init__(self) -> None:
        if self.min_concurrency < 1:
            raise ValueError("min_concurrency must be >= 1")
        if self.max_concurrency < self.min_concurrency:
            raise ValueError("max_concurrency must be >= min_concurrency")
        self.initial_concurrency = max(
            self.min_concurrency, min(self.max_concurrency, self.initial_concurrency)
        )


@dataclass
class ConcurrencyState:
    """Current ceiling plus samples gathered since the last adjustment."""

    ceiling: int
    successes: int = 0
    errors: int = 0
    latencies: list[float] = field(default_factory=list)
    last_adjustment: float = 0.0
    total_successes: int = 0
    total_errors: int = 0
    adjustments: int = 0

    @property
    def sample_count(self) -> int:
        return self.successes + self.errors


def percentile(samples: list[float], pct: float) -> float:
    """Nearest-rank percentile; 0.0 for no samples."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    rank = max(1, math.ceil(pct / 100.0 * len(ordered)))
    return ordered[rank - 1]


class ConcurrencyController:
    """
    Mutex-protected sample window and ceiling.

    ``record`` may be called from any task; the lock is never held across an
    await.
    """

    def __init__(
        self,
        config: ConcurrencyConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ConcurrencyConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self.state = ConcurrencyState(
            ceiling=self.config.initial_concurrency,
            last_adjustment=clock(),
        )

    @property
    def ceiling(self) -> int:
        return self.state.ceiling

    def record(self, latency: float, success: bool) -> int:
        """Record one call outcome, adjust if due, and return the ceiling."""
        with self._lock:
            state = self.state
            if success:
                state.successes += 1
                state.total_successes += 1
            else:
                state.errors += 1
                state.total_errors += 1
            state.latencies.append(latency)

            return self._maybe_adjust_locked()

    def _maybe_adjust_locked(self) -> int:
        state = self.state
        cfg = self.config
        now = self._clock()

        if now - state.last_adjustment < cfg.adjustment_interval:
            return state.ceiling
        if state.sample_count < cfg.min_samples:
            return state.ceiling

        error_rate = state.errors / state.sample_count
        p95 = percentile(state.latencies, 95)
        previous = state.ceiling

        if error_rate > cfg.high_error_rate:
            state.ceiling = max(cfg.min_concurrency, state.ceiling - 1)
        elif error_rate < cfg.low_error_rate and p95 < cfg.low_latency_threshold:
            state.ceiling = min(cfg.max_concurrency, state.ceiling + 1)
        elif p95 > cfg.high_latency_threshold:
            state.ceiling = max(cfg.min_concurrency, state.ceiling - 1)

        state.successes = 0
        state.errors = 0
        state.latencies = []
        state.last_adjustment = now

        if state.ceiling != previous:
            state.adjustments += 1
            logger.info(
                f"Search concurrency {previous} -> {state.ceiling} "
                f"(error_rate={error_rate:.2f}, p95={p95:.2f}s)"
            )

        return state.ceiling


class AdaptiveGate:
    """Counting gate whose capacity is read from the controller on every admission."""

    def __init__(self, controller: ConcurrencyController):
        self._controller = controller
        self._condition = asyncio.Condition()
        self.in_flight = 0

    async def __aenter__(self) -> "AdaptiveGate":
        async with self._condition:
            await self._condition.wait_for(
                lambda: self.in_flight < self._controller.ceiling
            )
            self.in_flight += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        async with self._condition:
            self.in_flight -= 1
            self._condition.notify_all()


def _search_cache_key(query: SearchQuery, limit: int | None) -> str:
    raw = json.dumps({"q": query.text, "limit": limit}, sort_keys=True)
    return "search:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SearchDispatcher:
    """Concurrency-limited, self-tuning front for the search capability."""

    def __init__(
        self,
        client: SearchClient,
        config: ConcurrencyConfig | None = None,
        cache: CacheBackend | None = None,
        cache_ttl: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize dispatcher.

        Args:
            client: Raw search capability
            config: Concurrency bounds and thresholds
            cache: Optional result cache; hits bypass the gate
            cache_ttl: Seconds to keep search results
            clock: Monotonic clock (injectable for tests)
        """
        self.client = client
        self.controller = ConcurrencyController(config, clock=clock)
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._gate = AdaptiveGate(self.controller)

    @property
    def ceiling(self) -> int:
        return self.controller.ceiling

    @property
    def in_flight(self) -> int:
        return self._gate.in_flight

    async def search(self, query: SearchQuery) -> Result[SearchResult, SearchError]:
        """
        Run one search through the gate.

        Returns:
            Ok(SearchResult) or Err(SearchError); never raises for search failures
        """
        cache_key = _search_cache_key(query, query.limit)
        cached = await cached_or_none(self.cache, cache_key)
        if cached is not None:
            logger.debug(f"Search cache hit: '{query.text[:50]}'")
            return Ok(_result_from_dict(cached))

        async with self._gate:
            started = self._clock()
            try:
                result = await self.client.search(
                    query.text, limit=query.limit, timeout=query.timeout
                )
            except Exception as e:
                latency = self._clock() - started
                self.controller.record(latency, success=False)
                error = e if isinstance(e, SearchError) else SearchError(
                    f"Search failed: {e!r}", query=query.text, cause=e
                )
                logger.warning(f"Search failed for '{query.text[:50]}': {error}")
                return Err(error)

            self.controller.record(self._clock() - started, success=True)

        if result.items:
            await store_quietly(self.cache, cache_key, _result_to_dict(result), self.cache_ttl)

        return Ok(result)

    def stats(self) -> dict[str, Any]:
        state = self.controller.state
        return {
            "ceiling": state.ceiling,
            "in_flight": self._gate.in_flight,
            "total_successes": state.total_successes,
            "total_errors": state.total_errors,
            "adjustments": state.adjustments,
        }


def _result_to_dict(result: SearchResult) -> dict[str, Any]:
    return {
        "query": result.query,
        "items": [asdict(item) for item in result.items],
        "success": result.success,
        "provider": result.provider,
    }


def _result_from_dict(data: dict[str, Any]) -> SearchResult:
    return SearchResult(
        query=data["query"],
        items=[SourceItem(**item) for item in data.get("items", [])],
        success=data.get("success", True),
        provider=data.get("provider"),
    )
