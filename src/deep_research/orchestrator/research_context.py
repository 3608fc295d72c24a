"""
Accumulated state of one research session.

The context is immutable: each depth level receives a snapshot and the
controller builds a new context from the merged level results. Rendering
produces a character-budgeted section the query planner receives so each
level builds on everything that came before.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable


@dataclass(frozen=True)
class Learning:
    """One retained finding and the reliability of the source it came from."""

    text: str
    reliability: float
    source_url: str | None = None


@dataclass(frozen=True)
class ResearchDirection:
    """A follow-up question worth pursuing at a later depth."""

    question: str
    priority: int = 3  # 1 (highest) to 5 (lowest)
    parent_goal: str | None = None


@dataclass
class TokenBudget:
    """Character limits for each rendered section (~4 chars per token)."""

    learnings: int = 6000
    visited_urls: int = 2400
    directions: int = 2400
    prior_queries: int = 1600


def _clip_lines(lines: Iterable[str], max_chars: int) -> str:
    """Join lines until the character budget is spent."""
    kept: list[str] = []
    used = 0
    for line in lines:
        if used + len(line) + 1 > max_chars:
            kept.append("- ...")
            break
        kept.append(line)
        used += len(line) + 1
    return "\n".join(kept)


@dataclass(frozen=True)
class ResearchContext:
    """Learnings, visited URLs, directions and queries accumulated so far."""

    query: str
    learnings: tuple[Learning, ...] = ()
    visited_urls: tuple[str, ...] = ()
    directions: tuple[ResearchDirection, ...] = ()
    prior_queries: tuple[str, ...] = ()
    budget: TokenBudget = field(default_factory=TokenBudget, compare=False)

    def has_visited(self, url: str) -> bool:
        return url in self.visited_urls

    def merged(
        self,
        learnings: Iterable[Learning] = (),
        visited_urls: Iterable[str] = (),
        directions: Iterable[ResearchDirection] = (),
        queries: Iterable[str] = (),
    ) -> ResearchContext:
        """
        Return a new context with the given additions.

        URLs, direction questions (case-insensitive) and queries
        (case-insensitive) already present are dropped, preserving order.
        """
        urls = list(self.visited_urls)
        seen_urls = set(urls)
        for url in visited_urls:
            if url not in seen_urls:
                seen_urls.add(url)
                urls.append(url)

        merged_directions = list(self.directions)
        seen_questions = {d.question.strip().lower() for d in merged_directions}
        for direction in directions:
            key = direction.question.strip().lower()
            if key and key not in seen_questions:
                seen_questions.add(key)
                merged_directions.append(direction)

        merged_queries = list(self.prior_queries)
        seen_queries = {q.strip().lower() for q in merged_queries}
        for q in queries:
            key = q.strip().lower()
            if key and key not in seen_queries:
                seen_queries.add(key)
                merged_queries.append(q)

        return replace(
            self,
            learnings=self.learnings + tuple(learnings),
            visited_urls=tuple(urls),
            directions=tuple(merged_directions),
            prior_queries=tuple(merged_queries),
        )

    def pending_directions(self) -> list[ResearchDirection]:
        """Directions ordered by priority, highest first (stable)."""
        return sorted(self.directions, key=lambda d: d.priority)

    def render(self) -> str:
        """Combine all non-empty sections into a single context string."""
        if not (self.learnings or self.visited_urls or self.directions or self.prior_queries):
            return ""

        sections: list[str] = [
            "## Accumulated Research Context\n\n"
            "Build on what is already known. Do not repeat covered ground."
        ]

        if self.learnings:
            lines = [
                f"- ({learning.reliability:.2f}) {learning.text}"
                for learning in sorted(self.learnings, key=lambda l: -l.reliability)
            ]
            sections.append(
                "### Learnings (reliability in parentheses)\n\n"
                + _clip_lines(lines, self.budget.learnings)
            )

        if self.prior_queries:
            lines = [f"- {q}" for q in self.prior_queries]
            sections.append(
                "### Queries Already Run (avoid repeating these)\n\n"
                + _clip_lines(lines, self.budget.prior_queries)
            )

        if self.visited_urls:
            lines = [f"- {url}" for url in self.visited_urls]
            sections.append(
                "### Sources Already Visited\n\n"
                + _clip_lines(lines, self.budget.visited_urls)
            )

        if self.directions:
            lines = []
            for d in self.pending_directions():
                goal = f" (goal: {d.parent_goal})" if d.parent_goal else ""
                lines.append(f"- [P{d.priority}] {d.question}{goal}")
            sections.append(
                "### Open Research Directions\n\n"
                + _clip_lines(lines, self.budget.directions)
            )

        return "\n\n".join(sections)
