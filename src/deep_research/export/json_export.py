"""
JSON export for research results.

Produces the machine-readable ``research-sources`` payload:
- research_session: query, parameters, model and timing
- raw_sources: one entry per evaluated source with its reliability assessment
- research_coverage: totals, average reliability and visited URLs
- learnings and session stats, so callers can judge completeness
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..orchestrator.core import ResearchResult, SourceMetadata

HIGH_RELIABILITY_THRESHOLD = 0.7


def _source_id(index: int) -> str:
    return f"src_{index:03d}"


def _serialize_source(source: "SourceMetadata", index: int) -> dict[str, Any]:
    """Serialize one citation record."""
    return {
        "id": _source_id(index),
        "url": source.url,
        "title": source.title,
        "published_date": source.published_date,
        "metadata": {
            "domain": source.domain,
            "query": source.query,
            "level": source.level,
        },
        "reliability_assessment": {
            "score": source.reliability_score,
            "reasoning": source.reliability_reasoning,
            "used": source.used,
            "preference_violation": source.preference_violation,
        },
    }


def to_research_sources(
    result: "ResearchResult",
    depth: int,
    breadth: int,
    budget_cap: int | None = None,
    preferences: str | None = None,
    model_name: str | None = None,
    executed_at: datetime | None = None,
) -> dict[str, Any]:
    """
    Build the research-sources payload for a finished session.

    Args:
        result: Session result
        depth: Depth the session was started with
        breadth: Breadth the session was started with
        budget_cap: Token budget the session was started with
        preferences: Source preferences the session was started with
        model_name: Model capability identifier
        executed_at: Timestamp to record (defaults to now, UTC)

    Returns:
        JSON-compatible dict

    Example output:
        {
            "research_session": {"query": "...", "total_sources": 12, ...},
            "raw_sources": [
                {
                    "id": "src_001",
                    "url": "https://example.org/report",
                    "reliability_assessment": {"score": 0.85, ...}
                },
                ...
            ],
            "research_coverage": {
                "average_reliability": 0.78,
                "high_reliability_sources": 9,
                ...
            }
        }
    """
    executed_at = executed_at or datetime.now(timezone.utc)
    budget = result.budget_summary
    stats = result.stats

    return {
        "research_session": {
            "query": result.query,
            "parameters": {
                "depth": depth,
                "breadth": breadth,
                "token_budget": budget_cap,
                "source_preferences": preferences,
            },
            "model_used": model_name or "auto",
            "execution_time": executed_at.isoformat(),
            "total_sources": len(result.visited_urls),
            "tokens_used": budget.total,
            "budget_exceeded": budget.exceeded,
            "stop_reason": stats.stop_reason.value if stats.stop_reason else None,
        },
        "raw_sources": [
            _serialize_source(source, i)
            for i, source in enumerate(result.source_metadata, 1)
        ],
        "learnings": [
            {
                "text": learning.text,
                "reliability": learning.reliability,
                "source_url": learning.source_url,
            }
            for learning in result.weighted_learnings
        ],
        "research_coverage": {
            "total_sources": len(result.visited_urls),
            "average_reliability": result.average_reliability,
            "reliability_defined": result.reliability_defined,
            "high_reliability_sources": sum(
                1
                for s in result.source_metadata
                if s.reliability_score >= HIGH_RELIABILITY_THRESHOLD
            ),
            "visited_urls": list(result.visited_urls),
        },
        "stats": {
            "queries_planned": stats.queries_planned,
            "queries_succeeded": stats.queries_succeeded,
            "queries_failed": stats.queries_failed,
            "sources_found": stats.sources_found,
            "sources_skipped": stats.sources_skipped,
            "sources_evaluated": stats.sources_evaluated,
            "sources_accepted": stats.sources_accepted,
            "sources_rejected": stats.sources_rejected,
            "sources_failed": stats.sources_failed,
            "levels_completed": stats.levels_completed,
            "errors": list(stats.errors),
        },
    }


def export_to_json(
    payload: dict[str, Any],
    output_path: str | Path,
    pretty: bool = True,
) -> None:
    """
    Write a research-sources payload to a JSON file.

    Args:
        payload: Output of to_research_sources()
        output_path: Output file path
        pretty: Pretty-print JSON with indentation
    """
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as f:
        if pretty:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        else:
            json.dump(payload, f, ensure_ascii=False)
