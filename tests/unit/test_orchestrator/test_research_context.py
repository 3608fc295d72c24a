"""
Tests for the accumulated research context.

These tests verify:
- Merging returns a new context and leaves the old one untouched
- Visited URLs, directions and queries are de-duplicated in order
- Rendering is empty for a fresh context and character-budgeted otherwise
"""

import pytest

from deep_research.orchestrator.research_context import (
    Learning,
    ResearchContext,
    ResearchDirection,
    TokenBudget,
    _clip_lines,
)


def test_fresh_context_renders_empty():
    assert ResearchContext(query="battery chemistry").render() == ""


def test_merge_is_immutable():
    ctx = ResearchContext(query="q")

    merged = ctx.merged(
        learnings=[Learning("Fact A", 0.9, "https://a.example")],
        visited_urls=["https://a.example"],
    )

    assert ctx.learnings == ()
    assert ctx.visited_urls == ()
    assert merged.learnings[0].text == "Fact A"
    assert merged.has_visited("https://a.example")
    with pytest.raises(AttributeError):
        merged.query = "other"  # type: ignore[misc]


def test_visited_urls_unique_and_ordered():
    ctx = ResearchContext(query="q").merged(visited_urls=["u1", "u2"])

    ctx = ctx.merged(visited_urls=["u2", "u3", "u1", "u3"])

    assert ctx.visited_urls == ("u1", "u2", "u3")


def test_directions_deduplicated_case_insensitively():
    ctx = ResearchContext(query="q").merged(
        directions=[ResearchDirection("What about cost?", priority=2)]
    )

    ctx = ctx.merged(
        directions=[
            ResearchDirection("what about COST? ", priority=1),
            ResearchDirection("Who are the vendors?", priority=4),
            ResearchDirection("   ", priority=1),
        ]
    )

    assert [d.question for d in ctx.directions] == [
        "What about cost?",
        "Who are the vendors?",
    ]


def test_prior_queries_deduplicated():
    ctx = ResearchContext(query="q").merged(queries=["solid state battery"])

    ctx = ctx.merged(queries=["Solid State Battery", "sodium ion"])

    assert ctx.prior_queries == ("solid state battery", "sodium ion")


def test_pending_directions_sorted_by_priority():
    ctx = ResearchContext(query="q").merged(
        directions=[
            ResearchDirection("low", priority=5),
            ResearchDirection("high", priority=1),
            ResearchDirection("mid", priority=3),
        ]
    )

    assert [d.question for d in ctx.pending_directions()] == ["high", "mid", "low"]


def test_render_includes_every_section():
    ctx = ResearchContext(query="q").merged(
        learnings=[
            Learning("Weak claim", 0.3),
            Learning("Strong claim", 0.95),
        ],
        visited_urls=["https://a.example/report"],
        directions=[ResearchDirection("Next question", priority=2, parent_goal="q")],
        queries=["first query"],
    )

    text = ctx.render()

    assert "### Learnings" in text
    assert "### Queries Already Run" in text
    assert "### Sources Already Visited" in text
    assert "### Open Research Directions" in text
    assert "https://a.example/report" in text
    assert "[P2] Next question (goal: q)" in text
    # Most reliable learnings first
    assert text.index("Strong claim") < text.index("Weak claim")


def test_render_respects_budget():
    budget = TokenBudget(visited_urls=60)
    urls = [f"https://example.com/page/{i}" for i in range(50)]
    ctx = ResearchContext(query="q", budget=budget).merged(visited_urls=urls)

    text = ctx.render()

    assert "https://example.com/page/0" in text
    assert "https://example.com/page/49" not in text
    assert "- ..." in text


def test_clip_lines_keeps_lines_within_budget():
    assert _clip_lines(["- a", "- b"], 100) == "- a\n- b"
    assert _clip_lines(["- aaaa", "- bbbb"], 8) == "- aaaa\n- ..."
