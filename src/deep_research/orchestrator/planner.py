"""
Query planning.

Asks the model for the next round of search queries, conditioned on the
running research context so covered ground is not searched twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from ..errors import ModelError, PlanError
from ..result import Err, Ok, Result
from ..search.base import SearchQuery
from .prompts import planner_system_prompt, planner_user_prompt
from .research_context import ResearchDirection

if TYPE_CHECKING:
    from ..agents.protocol import ModelAdapter
    from .research_context import ResearchContext

logger = logging.getLogger(__name__)


class PlannedQuery(BaseModel):
    query: str = Field(description="The search query")
    research_goal: str = Field(
        default="",
        description="What this query should establish and how to go deeper afterwards",
    )


class PlannedDirection(BaseModel):
    question: str = Field(description="Follow-up question for later rounds")
    priority: int = Field(default=3, description="1 (highest) to 5 (lowest)")


class QueryPlanReply(BaseModel):
    """Structured reply requested from the model."""

    queries: list[PlannedQuery] = Field(default_factory=list)
    directions: list[PlannedDirection] = Field(default_factory=list)


@dataclass
class ResearchPlan:
    """Queries for the next level plus follow-up directions."""

    queries: list[SearchQuery] = field(default_factory=list)
    directions: list[ResearchDirection] = field(default_factory=list)
    tokens_used: int = 0


class QueryPlanner:
    """Generates up to ``breadth`` new queries per level."""

    def __init__(
        self,
        adapter: ModelAdapter,
        results_per_query: int | None = None,
        search_timeout: float | None = None,
    ):
        """
        Initialize planner.

        Args:
            adapter: Model capability
            results_per_query: Result limit attached to every planned query
            search_timeout: Timeout override attached to every planned query
        """
        self.adapter = adapter
        self.results_per_query = results_per_query
        self.search_timeout = search_timeout

    async def plan(
        self,
        context: ResearchContext,
        breadth: int,
    ) -> Result[ResearchPlan, PlanError]:
        """
        Plan the next level.

        Args:
            context: Snapshot of the session so far
            breadth: Maximum number of queries

        Returns:
            Ok(ResearchPlan) or Err(PlanError)
        """
        try:
            response = await self.adapter.generate_structured(
                planner_system_prompt(),
                planner_user_prompt(context.query, context.render(), breadth),
                QueryPlanReply,
            )
        except ModelError as e:
            logger.warning(f"Query planning failed: {e}")
            return Err(
                PlanError(f"Query planning failed: {e}", cause=e, tokens_used=e.tokens_used)
            )
        except Exception as e:
            logger.warning(f"Query planning failed: {e!r}")
            return Err(PlanError(f"Query planning failed: {e!r}", cause=e))

        reply = response.data
        seen = {q.strip().lower() for q in context.prior_queries}
        queries: list[SearchQuery] = []

        for planned in reply.queries:
            text = planned.query.strip()
            key = text.lower()
            if not text or key in seen:
                logger.debug(f"Dropping duplicate or empty query: '{text}'")
                continue
            seen.add(key)
            queries.append(
                SearchQuery(
                    text=text,
                    limit=self.results_per_query,
                    timeout=self.search_timeout,
                    research_goal=planned.research_goal.strip() or None,
                )
            )
            if len(queries) >= breadth:
                break

        directions = [
            ResearchDirection(
                question=d.question.strip(),
                priority=min(5, max(1, d.priority)),
                parent_goal=context.query,
            )
            for d in reply.directions
            if d.question.strip()
        ]

        logger.info(
            f"Planned {len(queries)} queries and {len(directions)} directions "
            f"(breadth {breadth})"
        )

        return Ok(
            ResearchPlan(
                queries=queries,
                directions=directions,
                tokens_used=response.usage.total_tokens,
            )
        )
