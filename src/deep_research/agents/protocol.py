"""
Protocol definitions for model adapters.

This module defines the interface every LLM adapter must implement so the
research engine can request structured output from any provider.
"""

from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass
class TokenUsage:
    """Tokens consumed by one model call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class StructuredResponse(Generic[SchemaT]):
    """Validated structured reply plus usage accounting."""

    data: SchemaT
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""


@runtime_checkable
class ModelAdapter(Protocol):
    """
    Protocol for LLM model adapters.

    Any provider that can return JSON matching a schema can back the
    planner and the reliability evaluator by implementing this protocol.
    """

    @property
    def name(self) -> str:
        """Human-readable model name (e.g., 'anthropic:claude-sonnet-4-20250514')."""
        ...

    async def verify(self) -> None:
        """
        Verify that the adapter's API key is valid.

        Raises:
            AgentAuthenticationError: If credentials are invalid
        """
        ...

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: type[SchemaT],
    ) -> StructuredResponse[SchemaT]:
        """
        Generate a reply validated against ``schema``.

        Args:
            system_prompt: System-level instructions
            user_prompt: Task description
            schema: Pydantic model describing the expected output

        Returns:
            StructuredResponse holding the validated object and token usage

        Raises:
            ModelError: On timeout, provider error or malformed reply
        """
        ...
