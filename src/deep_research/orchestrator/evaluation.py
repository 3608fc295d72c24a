"""
Source reliability evaluation.

Scores one search result against the query that found it (and the user's
optional source preferences) using the model capability. Results are cached
by query, URL, preferences and content hash, so re-evaluating the same
source within the TTL never calls the model again.

The evaluator never raises for model failures: callers get an ``Err`` and
decide what to do with the source.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..cache.base import cached_or_none, store_quietly
from ..errors import ModelError
from ..result import Err, Ok, Result
from .prompts import evaluation_system_prompt, evaluation_user_prompt

if TYPE_CHECKING:
    from ..agents.protocol import ModelAdapter
    from ..cache.base import CacheBackend
    from ..search.base import SourceItem

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_CHARS = 25_000


class SourceEvaluation(BaseModel):
    """Structured reply requested from the model."""

    score: float = Field(description="Reliability score from 0.0 to 1.0")
    reasoning: str = Field(description="Why the source earned this score")
    should_use: bool = Field(description="Whether the source should inform the research")
    finding: str = Field(
        default="",
        description="The key finding this source contributes, in one or two sentences",
    )


class SourceEvaluationWithPreferences(SourceEvaluation):
    """Reply schema used when the user supplied source preferences."""

    preference_violation: str | None = Field(
        default=None,
        description="How the source violates the user's preferences, if it does",
    )


@dataclass(frozen=True)
class ReliabilityAssessment:
    """Outcome of evaluating one source."""

    score: float
    reasoning: str
    should_use: bool
    domain: str
    preference_violation: str | None = None
    finding: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReliabilityAssessment:
        return cls(
            score=data["score"],
            reasoning=data["reasoning"],
            should_use=data["should_use"],
            domain=data.get("domain", ""),
            preference_violation=data.get("preference_violation"),
            finding=data.get("finding", ""),
        )


@dataclass(frozen=True)
class EvaluationOutcome:
    """Assessment plus what it cost."""

    assessment: ReliabilityAssessment
    tokens_used: int = 0
    cached: bool = False


def resolve_domain(url: str | None) -> str:
    """Host of ``url`` without a leading 'www.'; empty string if unparseable."""
    if not url:
        return ""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def truncate_content(content: str | None, max_chars: int) -> str:
    """Drop content beyond ``max_chars``."""
    if not content:
        return ""
    return content[:max_chars]


def evaluation_cache_key(
    query: str,
    url: str | None,
    preferences: str | None,
    content: str,
) -> str:
    content_hash = hashlib.sha256(content.encode("utf-8")).hexdigest()
    raw = json.dumps(
        {"q": query, "url": url, "prefs": preferences, "content": content_hash},
        sort_keys=True,
    )
    return "evaluation:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ReliabilityEvaluator:
    """Scores sources through the model capability, with optional caching."""

    def __init__(
        self,
        adapter: ModelAdapter,
        cache: CacheBackend | None = None,
        cache_ttl: float = 300.0,
        max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
    ):
        """
        Initialize evaluator.

        Args:
            adapter: Model capability
            cache: Optional cache for assessments
            cache_ttl: Seconds an assessment stays valid
            max_content_chars: Content beyond this is dropped before prompting
        """
        self.adapter = adapter
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.max_content_chars = max_content_chars

    async def evaluate(
        self,
        item: SourceItem,
        query: str,
        preferences: str | None = None,
    ) -> Result[EvaluationOutcome, ModelError]:
        """
        Evaluate one source for ``query``.

        Args:
            item: Search result to assess
            query: Query that produced the item
            preferences: Optional natural-language source preferences

        Returns:
            Ok(EvaluationOutcome) or Err(ModelError)
        """
        preferences = preferences.strip() if preferences else None
        domain = resolve_domain(item.url)
        content = truncate_content(item.content, self.max_content_chars)
        cache_key = evaluation_cache_key(query, item.url, preferences, content)

        cached = await cached_or_none(self.cache, cache_key)
        if cached is not None:
            logger.debug(f"Evaluation cache hit for {item.url}")
            return Ok(
                EvaluationOutcome(
                    assessment=ReliabilityAssessment.from_dict(cached),
                    cached=True,
                )
            )

        schema = SourceEvaluationWithPreferences if preferences else SourceEvaluation
        user_prompt = evaluation_user_prompt(
            query=query,
            url=item.url,
            domain=domain,
            title=item.title,
            published_date=item.published_date,
            content=content,
            preferences=preferences,
        )

        try:
            response = await self.adapter.generate_structured(
                evaluation_system_prompt(), user_prompt, schema
            )
        except ModelError as e:
            logger.warning(f"Failed to evaluate source reliability for {item.url}: {e}")
            return Err(e)
        except Exception as e:
            logger.warning(
                f"Failed to evaluate source reliability for {item.url}: {e!r}"
            )
            return Err(ModelError(f"Model call failed: {e!r}", cause=e))

        reply = response.data
        assessment = ReliabilityAssessment(
            score=min(1.0, max(0.0, float(reply.score))),
            reasoning=reply.reasoning,
            should_use=bool(reply.should_use),
            domain=domain,
            preference_violation=getattr(reply, "preference_violation", None) or None,
            finding=reply.finding.strip(),
        )

        await store_quietly(self.cache, cache_key, assessment.to_dict(), self.cache_ttl)

        return Ok(
            EvaluationOutcome(
                assessment=assessment,
                tokens_used=response.usage.total_tokens,
            )
        )
