"""LLM provider adapters."""

from .anthropic import AnthropicAdapter
from .base import BaseAdapter, extract_json_from_text
from .openrouter import OpenRouterAdapter

__all__ = [
    "AnthropicAdapter",
    "BaseAdapter",
    "OpenRouterAdapter",
    "extract_json_from_text",
]
