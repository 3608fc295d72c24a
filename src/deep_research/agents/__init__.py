"""Model adapter layer for multi-LLM support."""

from .protocol import ModelAdapter, StructuredResponse, TokenUsage

__all__ = [
    "ModelAdapter",
    "StructuredResponse",
    "TokenUsage",
]
