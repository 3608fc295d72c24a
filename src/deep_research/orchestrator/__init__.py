"""Research orchestration engine."""

from .budget import BudgetAccountant, BudgetSummary
from .core import (
    ResearchOrchestrator,
    ResearchProgress,
    ResearchResult,
    ResearchStats,
    SourceMetadata,
    StopReason,
)
from .evaluation import ReliabilityAssessment, ReliabilityEvaluator
from .planner import QueryPlanner, ResearchPlan
from .research_context import Learning, ResearchContext, ResearchDirection, TokenBudget

__all__ = [
    "BudgetAccountant",
    "BudgetSummary",
    "Learning",
    "QueryPlanner",
    "ReliabilityAssessment",
    "ReliabilityEvaluator",
    "ResearchContext",
    "ResearchDirection",
    "ResearchOrchestrator",
    "ResearchPlan",
    "ResearchProgress",
    "ResearchResult",
    "ResearchStats",
    "SourceMetadata",
    "StopReason",
    "TokenBudget",
]
