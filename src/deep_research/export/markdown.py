"""
Markdown export for research results.

Lists learnings and sources as-is; nothing is summarised or rewritten.
"""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..orchestrator.core import ResearchResult, SourceMetadata


def _format_reliability(score: float) -> str:
    """Format reliability as a labelled percentage."""
    if score >= 0.8:
        return f"high {score:.0%}"
    elif score >= 0.5:
        return f"medium {score:.0%}"
    else:
        return f"low {score:.0%}"


def _format_source(source: "SourceMetadata", index: int) -> str:
    title = source.title or source.url
    date_str = f" ({source.published_date})" if source.published_date else ""
    status = "" if source.used else " *(not used)*"
    line = (
        f"{index}. [{title}]({source.url}){date_str} "
        f"- {source.domain}, {_format_reliability(source.reliability_score)}{status}\n"
    )
    if source.preference_violation:
        line += f"   - Preference: {source.preference_violation}\n"
    return line


def render_markdown(result: "ResearchResult", include_rejected: bool = True) -> str:
    """
    Render a research result as markdown.

    Args:
        result: Session result
        include_rejected: Also list sources the evaluator rejected

    Returns:
        Markdown string
    """
    stats = result.stats
    budget = result.budget_summary

    lines = [f"# {result.query}\n\n"]

    lines.append("**Summary**\n")
    lines.append(f"- Sources visited: {len(result.visited_urls)}\n")
    if result.reliability_defined:
        lines.append(f"- Average reliability: {result.average_reliability:.0%}\n")
    else:
        lines.append("- Average reliability: n/a\n")
    lines.append(
        f"- Queries: {stats.queries_succeeded}/{stats.queries_planned} succeeded\n"
    )
    tokens = f"{budget.total}" if budget.cap is None else f"{budget.total}/{budget.cap}"
    lines.append(f"- Tokens: {tokens}\n")
    if stats.stop_reason:
        lines.append(f"- Stopped: {stats.stop_reason.value.replace('_', ' ')}\n")
    lines.append(f"- Exported: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")
    lines.append("---\n\n")

    lines.append("## Learnings\n\n")
    if result.weighted_learnings:
        ordered = sorted(
            result.weighted_learnings, key=lambda l: l.reliability, reverse=True
        )
        for learning in ordered:
            lines.append(
                f"- {learning.text} *({_format_reliability(learning.reliability)})*\n"
            )
    else:
        lines.append("*No learnings retained.*\n")
    lines.append("\n")

    sources = [
        s for s in result.source_metadata if include_rejected or s.used
    ]
    lines.append("## Sources\n\n")
    for i, source in enumerate(sources, 1):
        lines.append(_format_source(source, i))
    lines.append("\n")

    if result.directions:
        lines.append("## Open Directions\n\n")
        for direction in sorted(result.directions, key=lambda d: d.priority):
            lines.append(f"- (P{direction.priority}) {direction.question}\n")
        lines.append("\n")

    if stats.errors:
        lines.append("## Errors\n\n")
        for error in stats.errors:
            lines.append(f"- {error}\n")

    return "".join(lines)


def export_to_markdown(
    result: "ResearchResult",
    output_path: str | Path,
    include_rejected: bool = True,
) -> None:
    """Write render_markdown() output to a file."""
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(render_markdown(result, include_rejected), encoding="utf-8")
