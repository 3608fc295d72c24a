"""
Deep Research - Recursive, budget-bounded research orchestration.

Plans search queries level by level, dispatches them through an adaptive
concurrency gate, scores every source for reliability and merges what it
learned before going deeper.

Example:
    import asyncio
    from pathlib import Path
    from deep_research import build_orchestrator, load_config

    async def main():
        config = load_config(Path("research.toml"))
        orchestrator = build_orchestrator(config)

        result = await orchestrator.conduct_research(
            "state of solid-state batteries",
            depth=2,
            breadth=3,
            budget_cap=50_000,
        )
        for learning in result.weighted_learnings:
            print(f"{learning.reliability:.2f} {learning.text}")

    asyncio.run(main())
"""

__version__ = "0.1.0"

# Core exports
from .builder import build_orchestrator
from .config import ResearchConfig, load_config
from .errors import ModelError, ResearchError, SearchError, ValidationError
from .orchestrator import ResearchOrchestrator, ResearchProgress, ResearchResult, StopReason
from .result import Err, Ok, Result

__all__ = [
    "__version__",
    "build_orchestrator",
    "load_config",
    "ResearchConfig",
    "ResearchOrchestrator",
    "ResearchProgress",
    "ResearchResult",
    "StopReason",
    "ResearchError",
    "ValidationError",
    "SearchError",
    "ModelError",
    "Result",
    "Ok",
    "Err",
]
