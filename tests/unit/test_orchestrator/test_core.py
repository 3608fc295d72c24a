"""
Tests for the recursive research orchestrator.

These tests verify:
- A single level collects learnings and visited URLs
- The token budget stops expansion after the level that crossed it
- Failed queries and failed evaluations are counted, not raised
- Depth and breadth bounds are enforced and validated
- Visited URLs are evaluated once per session
- Planning failures return partial results
- Tokens billed for failed model calls still count against the budget
- A failing cache backend never aborts a session
"""

import asyncio
import re

import pytest

from deep_research.agents.protocol import StructuredResponse, TokenUsage
from deep_research.errors import CacheError, ModelError, SearchError, ValidationError
from deep_research.orchestrator.core import (
    ResearchOrchestrator,
    ResearchProgress,
    StopReason,
)
from deep_research.orchestrator.evaluation import ReliabilityEvaluator
from deep_research.orchestrator.planner import QueryPlanner, QueryPlanReply
from deep_research.search.base import SearchResult, SourceItem
from deep_research.search.dispatcher import SearchDispatcher

URL_PATTERN = re.compile(r"^- URL: (\S+)$", re.MULTILINE)


class ScriptedModelAdapter:
    """
    Mock model for both planning and evaluation.

    Planning replies come from ``plans`` in order (an Exception entry is
    raised); once exhausted, the planner gets an empty plan. Evaluations
    score URLs from ``scores`` (default 0.8) and accept scores >= 0.5.
    """

    def __init__(
        self,
        plans=(),
        scores=None,
        failing_urls=(),
        plan_tokens: int = 0,
        eval_tokens: int = 0,
        failed_eval_tokens: int = 0,
    ):
        self.plans = list(plans)
        self.scores = scores or {}
        self.failing_urls = set(failing_urls)
        self.plan_tokens = plan_tokens
        self.eval_tokens = eval_tokens
        self.failed_eval_tokens = failed_eval_tokens
        self.plan_calls = 0
        self.evaluated_urls = []

    @property
    def name(self) -> str:
        return "mock:scripted"

    async def verify(self) -> None:
        pass

    async def generate_structured(self, system_prompt, user_prompt, schema):
        if schema is QueryPlanReply:
            self.plan_calls += 1
            plan = self.plans.pop(0) if self.plans else []
            if isinstance(plan, Exception):
                raise plan
            return StructuredResponse(
                data=QueryPlanReply(
                    queries=[{"query": q} for q in plan],
                    directions=[{"question": f"Follow up on {q}?"} for q in plan[:1]],
                ),
                usage=TokenUsage(input_tokens=self.plan_tokens),
            )

        url = URL_PATTERN.search(user_prompt).group(1)
        self.evaluated_urls.append(url)
        await asyncio.sleep(0)
        if url in self.failing_urls:
            raise ModelError(
                f"reply for {url} did not match schema", tokens_used=self.failed_eval_tokens
            )

        score = self.scores.get(url, 0.8)
        return StructuredResponse(
            data=schema(
                score=score,
                reasoning="scripted",
                should_use=score >= 0.5,
                finding=f"Finding from {url}",
            ),
            usage=TokenUsage(output_tokens=self.eval_tokens),
        )


class MockSearchClient:
    """
    Mock search capability.

    ``results`` maps query text to URLs; unknown queries get three URLs
    derived from the query. Queries in ``failing`` raise SearchError.
    """

    def __init__(self, results=None, failing=()):
        self.results = results or {}
        self.failing = set(failing)
        self.queries = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def search(self, query, limit=None, timeout=None):
        self.queries.append(query)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            if query in self.failing:
                raise SearchError(f"provider down for {query}", query=query)
            urls = self.results.get(
                query, [f"https://example.com/{query.replace(' ', '-')}/{i}" for i in range(3)]
            )
            items = [
                SourceItem(url=url, title=f"Title {url}", content=f"Content of {url}")
                for url in urls
            ]
            return SearchResult(query=query, items=items, provider="mock")
        finally:
            self.in_flight -= 1


def make_orchestrator(adapter, client, **kwargs):
    return ResearchOrchestrator(
        planner=QueryPlanner(adapter),
        dispatcher=SearchDispatcher(client),
        evaluator=ReliabilityEvaluator(adapter),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_single_level_collects_learnings():
    """One query, three results, two accepted."""
    urls = ["https://a.example/1", "https://b.example/2", "https://c.example/3"]
    adapter = ScriptedModelAdapter(
        plans=[["battery density"]],
        scores={urls[2]: 0.2},
    )
    client = MockSearchClient(results={"battery density": urls})
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("solid-state batteries", depth=1, breadth=1)

    assert sorted(result.visited_urls) == sorted(urls)
    assert len(result.learnings) == 2
    assert "Finding from https://a.example/1" in result.learnings
    assert result.stats.stop_reason == StopReason.DEPTH_EXHAUSTED
    assert result.stats.sources_accepted == 2
    assert result.stats.sources_rejected == 1
    assert len(result.source_metadata) == 3
    rejected = [s for s in result.source_metadata if not s.used]
    assert rejected[0].url == urls[2]
    assert rejected[0].domain == "c.example"
    assert rejected[0].level == 1


@pytest.mark.asyncio
async def test_budget_stops_after_level_that_crossed_cap():
    """Cap 100 at 60 tokens per level: two levels run, the third never starts."""
    adapter = ScriptedModelAdapter(
        plans=[["q1"], ["q2"], ["q3"], ["q4"]],
        plan_tokens=60,
    )
    client = MockSearchClient()
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("topic", depth=5, breadth=1, budget_cap=100)

    assert result.stats.stop_reason == StopReason.BUDGET_EXCEEDED
    assert result.stats.levels_completed == 2
    assert adapter.plan_calls == 2
    assert client.queries == ["q1", "q2"]
    assert result.budget_summary.total == 120
    assert result.budget_summary.exceeded
    # Learnings from the level that crossed the cap are kept
    assert len(result.learnings) == 6


@pytest.mark.asyncio
async def test_evaluation_tokens_are_charged():
    adapter = ScriptedModelAdapter(plans=[["q1"]], plan_tokens=10, eval_tokens=5)
    orchestrator = make_orchestrator(adapter, MockSearchClient())

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert result.budget_summary.total == 10 + 3 * 5
    assert result.budget_summary.cap is None


@pytest.mark.asyncio
async def test_failed_query_is_counted_not_raised():
    adapter = ScriptedModelAdapter(plans=[["good one", "bad", "good two"]])
    client = MockSearchClient(failing={"bad"})
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("topic", depth=1, breadth=3)

    assert result.stats.queries_planned == 3
    assert result.stats.queries_failed == 1
    assert result.stats.queries_succeeded == 2
    assert len(result.learnings) == 6
    assert any("provider down for bad" in e for e in result.stats.errors)


@pytest.mark.asyncio
async def test_failed_evaluation_drops_source():
    urls = ["https://ok.example/1", "https://flaky.example/2"]
    adapter = ScriptedModelAdapter(
        plans=[["q"]],
        failing_urls={"https://flaky.example/2"},
    )
    client = MockSearchClient(results={"q": urls})
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert result.visited_urls == ["https://ok.example/1"]
    assert result.stats.sources_failed == 1
    assert result.stats.sources_evaluated == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "query, depth, breadth, cap",
    [
        ("topic", 0, 3, None),
        ("topic", 3, 0, None),
        ("topic", 6, 3, None),
        ("topic", 3, 6, None),
        ("   ", 2, 2, None),
        ("topic", 2, 2, 0),
    ],
)
async def test_invalid_parameters_rejected_before_any_call(query, depth, breadth, cap):
    adapter = ScriptedModelAdapter(plans=[["q"]])
    client = MockSearchClient()
    orchestrator = make_orchestrator(adapter, client)

    with pytest.raises(ValidationError):
        await orchestrator.conduct_research(query, depth=depth, breadth=breadth, budget_cap=cap)

    assert adapter.plan_calls == 0
    assert client.queries == []


@pytest.mark.asyncio
async def test_depth_and_breadth_bounds():
    """Planner offers five queries per level; only breadth run, for depth levels."""
    plans = [[f"level{lvl} query{i}" for i in range(5)] for lvl in range(10)]
    adapter = ScriptedModelAdapter(plans=plans)
    client = MockSearchClient()
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("topic", depth=3, breadth=2)

    assert adapter.plan_calls == 3
    assert result.stats.levels_completed == 3
    assert len(client.queries) == 6
    for lvl in range(3):
        assert len([q for q in client.queries if q.startswith(f"level{lvl} ")]) <= 2
    assert result.stats.stop_reason == StopReason.DEPTH_EXHAUSTED


@pytest.mark.asyncio
async def test_visited_urls_evaluated_once():
    """Every query returns the same URLs; each is evaluated exactly once."""
    shared = ["https://same.example/1", "https://same.example/2"]
    adapter = ScriptedModelAdapter(plans=[["a", "b"], ["c", "d"]])
    client = MockSearchClient(results={q: shared for q in "abcd"})
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("topic", depth=2, breadth=2)

    assert sorted(adapter.evaluated_urls) == sorted(shared)
    assert len(result.visited_urls) == len(set(result.visited_urls)) == 2
    assert result.stats.sources_skipped == 6


@pytest.mark.asyncio
async def test_items_without_url_are_skipped():
    adapter = ScriptedModelAdapter(plans=[["q"]])

    class NoUrlClient(MockSearchClient):
        async def search(self, query, limit=None, timeout=None):
            return SearchResult(
                query=query,
                items=[SourceItem(title="orphan"), SourceItem(url="https://x.example")],
            )

    orchestrator = make_orchestrator(adapter, NoUrlClient())

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert result.visited_urls == ["https://x.example"]
    assert result.stats.sources_skipped == 1


@pytest.mark.asyncio
async def test_planning_failure_returns_partial_results():
    adapter = ScriptedModelAdapter(plans=[["q1"], ModelError("model unavailable")])
    orchestrator = make_orchestrator(adapter, MockSearchClient())

    result = await orchestrator.conduct_research("topic", depth=3, breadth=1)

    assert result.stats.stop_reason == StopReason.PLANNING_FAILED
    assert result.stats.levels_completed == 1
    assert len(result.learnings) == 3
    assert any("model unavailable" in e for e in result.stats.errors)


@pytest.mark.asyncio
async def test_no_new_queries_stops_early():
    adapter = ScriptedModelAdapter(plans=[["q1"], []])
    orchestrator = make_orchestrator(adapter, MockSearchClient())

    result = await orchestrator.conduct_research("topic", depth=4, breadth=1)

    assert result.stats.stop_reason == StopReason.NO_NEW_QUERIES
    assert result.stats.levels_completed == 1


@pytest.mark.asyncio
async def test_average_reliability():
    urls = ["https://a.example", "https://b.example"]
    adapter = ScriptedModelAdapter(
        plans=[["q"]], scores={urls[0]: 0.9, urls[1]: 0.6}
    )
    orchestrator = make_orchestrator(adapter, MockSearchClient(results={"q": urls}))

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert result.reliability_defined
    assert result.average_reliability == pytest.approx(0.75)


@pytest.mark.asyncio
async def test_average_reliability_without_learnings():
    adapter = ScriptedModelAdapter(plans=[["q"]], scores={"https://a.example": 0.1})
    client = MockSearchClient(results={"q": ["https://a.example"]})
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert result.learnings == []
    assert not result.reliability_defined
    assert result.average_reliability == 0.0


@pytest.mark.asyncio
async def test_directions_carried_into_result():
    adapter = ScriptedModelAdapter(plans=[["q1"], ["q2"]])
    orchestrator = make_orchestrator(adapter, MockSearchClient())

    result = await orchestrator.conduct_research("topic", depth=2, breadth=1)

    assert [d.question for d in result.directions] == [
        "Follow up on q1?",
        "Follow up on q2?",
    ]


@pytest.mark.asyncio
async def test_progress_callback_receives_snapshots():
    updates: list[ResearchProgress] = []

    async def on_progress(progress: ResearchProgress) -> None:
        updates.append(progress)

    adapter = ScriptedModelAdapter(plans=[["a", "b"], ["c"]])
    orchestrator = make_orchestrator(
        adapter, MockSearchClient(), progress_callback=on_progress
    )

    await orchestrator.conduct_research("topic", depth=2, breadth=2)

    assert updates
    assert updates[-1].completed_queries == 3
    assert updates[-1].total_queries == 3
    assert updates[0] is not updates[-1]
    assert all(u.total_depth == 2 for u in updates)


@pytest.mark.asyncio
async def test_failing_progress_callback_does_not_abort():
    async def broken(progress):
        raise RuntimeError("display closed")

    adapter = ScriptedModelAdapter(plans=[["q"]])
    orchestrator = make_orchestrator(adapter, MockSearchClient(), progress_callback=broken)

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert len(result.learnings) == 3


@pytest.mark.asyncio
async def test_queries_within_level_run_concurrently():
    adapter = ScriptedModelAdapter(plans=[["a", "b", "c"]])
    client = MockSearchClient()
    orchestrator = make_orchestrator(adapter, client)

    await orchestrator.conduct_research("topic", depth=1, breadth=3)

    assert client.max_in_flight > 1
    assert client.max_in_flight <= orchestrator.dispatcher.ceiling


def test_invalid_evaluation_concurrency():
    adapter = ScriptedModelAdapter()
    with pytest.raises(ValueError):
        make_orchestrator(adapter, MockSearchClient(), evaluation_concurrency=0)


@pytest.mark.asyncio
async def test_failed_evaluation_tokens_are_charged():
    adapter = ScriptedModelAdapter(
        plans=[["q"]],
        failing_urls={"https://flaky.example/2"},
        plan_tokens=10,
        eval_tokens=5,
        failed_eval_tokens=40,
    )
    client = MockSearchClient(results={"q": ["https://ok.example/1", "https://flaky.example/2"]})
    orchestrator = make_orchestrator(adapter, client)

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert result.stats.sources_failed == 1
    assert result.budget_summary.total == 10 + 5 + 40


@pytest.mark.asyncio
async def test_failed_plan_tokens_are_charged():
    adapter = ScriptedModelAdapter(
        plans=[ModelError("plan did not match schema", tokens_used=25)]
    )
    orchestrator = make_orchestrator(adapter, MockSearchClient())

    result = await orchestrator.conduct_research("topic", depth=2, breadth=1, budget_cap=20)

    assert result.stats.stop_reason == StopReason.PLANNING_FAILED
    assert result.budget_summary.total == 25
    assert result.budget_summary.exceeded


class UnreachableCache:
    """Cache backend whose every call fails."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args):
        self.calls += 1
        raise CacheError("shared tier unreachable")

    get = set = delete = exists = _fail


@pytest.mark.asyncio
async def test_failing_cache_backend_is_treated_as_miss():
    cache = UnreachableCache()
    adapter = ScriptedModelAdapter(plans=[["q1"]])
    orchestrator = ResearchOrchestrator(
        planner=QueryPlanner(adapter),
        dispatcher=SearchDispatcher(MockSearchClient(), cache=cache),
        evaluator=ReliabilityEvaluator(adapter, cache=cache),
    )

    result = await orchestrator.conduct_research("topic", depth=1, breadth=1)

    assert len(result.learnings) == 3
    assert result.stats.queries_succeeded == 1
    assert result.stats.sources_failed == 0
    assert cache.calls > 0
