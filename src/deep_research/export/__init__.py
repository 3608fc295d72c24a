"""Export functionality for research results."""

from .json_export import export_to_json, to_research_sources
from .markdown import export_to_markdown, render_markdown

__all__ = [
    "export_to_json",
    "to_research_sources",
    "export_to_markdown",
    "render_markdown",
]
