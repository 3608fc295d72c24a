"""
Recursive research orchestrator.

The ResearchOrchestrator drives a session level by level:
- Plans up to ``breadth`` queries from the accumulated context
- Dispatches them concurrently through the adaptive search dispatcher
- Evaluates every new source for reliability
- Merges accepted learnings, visited URLs and follow-up directions
- Stops when the budget is spent, the depth is exhausted or nothing is left to explore

Levels run strictly in sequence; everything inside one level runs
concurrently and the level waits for all of it before merging. Partial
failures never raise: they are counted in the session stats.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from ..errors import ValidationError
from ..utils.logging import StructuredLogger
from .budget import BudgetAccountant, BudgetSummary
from .research_context import Learning, ResearchContext, ResearchDirection

if TYPE_CHECKING:
    from ..search.base import SearchQuery, SourceItem
    from ..search.dispatcher import SearchDispatcher
    from .evaluation import ReliabilityAssessment, ReliabilityEvaluator
    from .planner import QueryPlanner

logger = logging.getLogger(__name__)

FALLBACK_LEARNING_CHARS = 300


class StopReason(str, Enum):
    """Why a session stopped expanding."""

    BUDGET_EXCEEDED = "budget_exceeded"
    DEPTH_EXHAUSTED = "depth_exhausted"
    NO_NEW_QUERIES = "no_new_queries"
    PLANNING_FAILED = "planning_failed"


@dataclass
class ResearchProgress:
    """Progress snapshot passed to the optional progress callback."""

    current_depth: int
    total_depth: int
    current_breadth: int
    total_breadth: int
    completed_queries: int = 0
    total_queries: int = 0
    current_query: str | None = None


ProgressCallback = Callable[[ResearchProgress], Awaitable[None]]


@dataclass
class SourceMetadata:
    """Citation record for one evaluated source."""

    url: str
    title: str | None
    domain: str
    reliability_score: float
    reliability_reasoning: str
    used: bool
    query: str
    level: int
    preference_violation: str | None = None
    published_date: str | None = None


@dataclass
class ResearchStats:
    """Completeness counters so callers can judge partial results."""

    queries_planned: int = 0
    queries_succeeded: int = 0
    queries_failed: int = 0
    sources_found: int = 0
    sources_skipped: int = 0
    sources_evaluated: int = 0
    sources_accepted: int = 0
    sources_rejected: int = 0
    sources_failed: int = 0
    levels_completed: int = 0
    stop_reason: StopReason | None = None
    errors: list[str] = field(default_factory=list)


@dataclass
class ResearchResult:
    """Everything a session produced."""

    query: str
    learnings: list[str]
    weighted_learnings: list[Learning]
    visited_urls: list[str]
    source_metadata: list[SourceMetadata]
    directions: list[ResearchDirection]
    budget_summary: BudgetSummary
    stats: ResearchStats

    @property
    def reliability_defined(self) -> bool:
        """False when there are no learnings to average."""
        return bool(self.weighted_learnings)

    @property
    def average_reliability(self) -> float:
        """
        Mean reliability of retained learnings.

        Returns 0.0 when there are no learnings. That value is a guard, not a
        score; check ``reliability_defined`` before interpreting it.
        """
        if not self.weighted_learnings:
            return 0.0
        return sum(l.reliability for l in self.weighted_learnings) / len(
            self.weighted_learnings
        )


@dataclass
class _SourceOutcome:
    item: SourceItem
    assessment: ReliabilityAssessment | None = None
    error: str | None = None


@dataclass
class _QueryOutcome:
    query: SearchQuery
    error: str | None = None
    found: int = 0
    skipped: int = 0
    sources: list[_SourceOutcome] = field(default_factory=list)


def _fallback_learning(item: SourceItem) -> str:
    """Learning text when the model returned no finding."""
    excerpt = " ".join((item.content or "").split())[:FALLBACK_LEARNING_CHARS]
    if item.title and excerpt:
        return f"{item.title}: {excerpt}"
    return item.title or excerpt or (item.url or "")


class ResearchOrchestrator:
    """
    Recursion controller for depth/breadth research sessions.

    All collaborators are injected; the orchestrator holds no state between
    sessions apart from what they hold (dispatcher concurrency, cache contents).
    """

    def __init__(
        self,
        planner: QueryPlanner,
        dispatcher: SearchDispatcher,
        evaluator: ReliabilityEvaluator,
        max_depth: int = 5,
        max_breadth: int = 5,
        evaluation_concurrency: int = 5,
        progress_callback: ProgressCallback | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            planner: Query planner
            dispatcher: Adaptive search dispatcher
            evaluator: Source reliability evaluator
            max_depth: Largest accepted depth
            max_breadth: Largest accepted breadth
            evaluation_concurrency: Evaluations allowed in flight per level
            progress_callback: Optional async callback for progress updates
        """
        if evaluation_concurrency < 1:
            raise ValueError("evaluation_concurrency must be >= 1")

        self.planner = planner
        self.dispatcher = dispatcher
        self.evaluator = evaluator
        self.max_depth = max_depth
        self.max_breadth = max_breadth
        self.evaluation_concurrency = evaluation_concurrency
        self.progress_callback = progress_callback

    def validate(
        self,
        query: str,
        depth: int,
        breadth: int,
        budget_cap: int | None = None,
    ) -> None:
        """
        Check session parameters.

        Raises:
            ValidationError: On blank query, out-of-range depth/breadth or non-positive cap
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("query must be a non-empty string")
        if isinstance(depth, bool) or not isinstance(depth, int) or not 1 <= depth <= self.max_depth:
            raise ValidationError(f"depth must be an integer between 1 and {self.max_depth}")
        if isinstance(breadth, bool) or not isinstance(breadth, int) or not 1 <= breadth <= self.max_breadth:
            raise ValidationError(f"breadth must be an integer between 1 and {self.max_breadth}")
        if budget_cap is not None and budget_cap <= 0:
            raise ValidationError("budget cap must be positive")

    async def _emit_progress(self, progress: ResearchProgress) -> None:
        if self.progress_callback:
            try:
                await self.progress_callback(replace(progress))
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    async def conduct_research(
        self,
        query: str,
        depth: int,
        breadth: int,
        budget_cap: int | None = None,
        preferences: str | None = None,
    ) -> ResearchResult:
        """
        Run a research session.

        Args:
            query: Research question
            depth: Number of levels to expand (1..max_depth)
            breadth: Queries per level (1..max_breadth)
            budget_cap: Optional soft cap on model tokens
            preferences: Optional natural-language source preferences

        Returns:
            ResearchResult with learnings, citations, budget and stats

        Raises:
            ValidationError: If parameters are invalid (before any external call)
        """
        self.validate(query, depth, breadth, budget_cap)

        session_id = uuid.uuid4().hex[:8]
        log = StructuredLogger(__name__, session=session_id)
        budget = BudgetAccountant(budget_cap)
        context = ResearchContext(query=query.strip())
        stats = ResearchStats()
        source_metadata: list[SourceMetadata] = []
        progress = ResearchProgress(
            current_depth=depth,
            total_depth=depth,
            current_breadth=breadth,
            total_breadth=breadth,
        )

        log.info(f"Starting research: depth={depth} breadth={breadth} '{query[:60]}'")

        level = 0
        while True:
            level += 1
            level_log = log.add_context(level=level)

            # Planning
            plan_result = await self.planner.plan(context, breadth)
            if not plan_result.ok:
                budget.charge(plan_result.error.tokens_used)
                stats.errors.append(str(plan_result.error))
                stats.stop_reason = StopReason.PLANNING_FAILED
                level_log.warning(f"Planning failed, returning partial results: {plan_result.error}")
                break

            plan = plan_result.value
            budget.charge(plan.tokens_used)

            if not plan.queries:
                stats.stop_reason = StopReason.NO_NEW_QUERIES
                level_log.info("Planner produced no new queries")
                break

            stats.queries_planned += len(plan.queries)
            progress.current_breadth = len(plan.queries)
            progress.total_queries += len(plan.queries)
            await self._emit_progress(progress)

            # Dispatching + evaluating (one barrier per level)
            outcomes = await self._run_level(
                context, plan.queries, level, budget, preferences, progress
            )

            # Merge
            learnings: list[Learning] = []
            visited: list[str] = []
            for outcome in outcomes:
                if outcome.error:
                    stats.queries_failed += 1
                    stats.errors.append(outcome.error)
                    continue

                stats.queries_succeeded += 1
                stats.sources_found += outcome.found
                stats.sources_skipped += outcome.skipped

                for source in outcome.sources:
                    if source.assessment is None:
                        stats.sources_failed += 1
                        continue

                    assessment = source.assessment
                    url = source.item.url or ""
                    stats.sources_evaluated += 1
                    visited.append(url)
                    source_metadata.append(
                        SourceMetadata(
                            url=url,
                            title=source.item.title,
                            domain=assessment.domain,
                            reliability_score=assessment.score,
                            reliability_reasoning=assessment.reasoning,
                            used=assessment.should_use,
                            query=outcome.query.text,
                            level=level,
                            preference_violation=assessment.preference_violation,
                            published_date=source.item.published_date,
                        )
                    )

                    if assessment.should_use:
                        stats.sources_accepted += 1
                        learnings.append(
                            Learning(
                                text=assessment.finding or _fallback_learning(source.item),
                                reliability=assessment.score,
                                source_url=url,
                            )
                        )
                    else:
                        stats.sources_rejected += 1

            context = context.merged(
                learnings=learnings,
                visited_urls=visited,
                directions=plan.directions,
                queries=[q.text for q in plan.queries],
            )
            stats.levels_completed += 1
            progress.current_depth = depth - level

            summary = budget.summary()
            level_log.info(
                f"Level merged: +{len(learnings)} learnings, "
                f"{len(context.visited_urls)} sources visited, "
                f"{summary.total} tokens used"
            )

            if summary.exceeded:
                stats.stop_reason = StopReason.BUDGET_EXCEEDED
                level_log.info(f"Token budget exceeded ({summary.total}/{summary.cap})")
                break
            if level >= depth:
                stats.stop_reason = StopReason.DEPTH_EXHAUSTED
                break

        log.info(
            f"Research complete ({stats.stop_reason.value}): "
            f"{len(context.learnings)} learnings, "
            f"{stats.queries_succeeded}/{stats.queries_planned} queries succeeded, "
            f"{stats.sources_failed} evaluations failed"
        )
        log.debug(f"Search dispatcher: {self.dispatcher.stats()}")

        return ResearchResult(
            query=context.query,
            learnings=[l.text for l in context.learnings],
            weighted_learnings=list(context.learnings),
            visited_urls=list(context.visited_urls),
            source_metadata=source_metadata,
            directions=list(context.directions),
            budget_summary=budget.summary(),
            stats=stats,
        )

    async def _run_level(
        self,
        context: ResearchContext,
        queries: list[SearchQuery],
        level: int,
        budget: BudgetAccountant,
        preferences: str | None,
        progress: ResearchProgress,
    ) -> list[_QueryOutcome]:
        """Search and evaluate every query of one level concurrently."""
        claimed: set[str] = set()
        evaluation_slots = asyncio.Semaphore(self.evaluation_concurrency)

        async def evaluate(item: SourceItem, query_text: str) -> _SourceOutcome:
            async with evaluation_slots:
                result = await self.evaluator.evaluate(item, query_text, preferences)
            if not result.ok:
                budget.charge(result.error.tokens_used)
                return _SourceOutcome(item=item, error=str(result.error))
            outcome = result.value
            budget.charge(outcome.tokens_used)
            return _SourceOutcome(item=item, assessment=outcome.assessment)

        async def run_query(query: SearchQuery) -> _QueryOutcome:
            search_result = await self.dispatcher.search(query)
            if not search_result.ok:
                outcome = _QueryOutcome(query=query, error=str(search_result.error))
            else:
                items = search_result.value.items
                outcome = _QueryOutcome(query=query, found=len(items))
                fresh: list[SourceItem] = []
                for item in items:
                    # Claimed synchronously, so sibling queries never evaluate the same URL
                    if not item.url or context.has_visited(item.url) or item.url in claimed:
                        outcome.skipped += 1
                        continue
                    claimed.add(item.url)
                    fresh.append(item)

                outcome.sources = list(
                    await asyncio.gather(*(evaluate(item, query.text) for item in fresh))
                )

            progress.completed_queries += 1
            progress.current_query = query.text
            await self._emit_progress(progress)
            return outcome

        logger.debug(f"Level {level}: dispatching {len(queries)} queries")
        return list(await asyncio.gather(*(run_query(q) for q in queries)))
