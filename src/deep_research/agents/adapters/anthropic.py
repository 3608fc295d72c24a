"""
Anthropic Claude adapter.

Structured output is obtained by forcing a single tool call whose input
schema is the requested pydantic model's JSON schema.
"""

import logging
from typing import Any, TypeVar

import anthropic
from pydantic import BaseModel

from ...errors import AgentAuthenticationError, ModelError
from ..protocol import StructuredResponse, TokenUsage
from .base import BaseAdapter, validate_structured

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_STRUCTURED_TOOL_NAME = "submit_result"


class AnthropicAdapter(BaseAdapter):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        timeout: int = 120,
        max_retries: int = 3,
        max_tokens: int = 4096,
    ):
        """
        Initialize Anthropic adapter.

        Args:
            model: Model identifier
            api_key: API key
            timeout: Request timeout in seconds
            max_retries: Attempts for transient failures
            max_tokens: Output token ceiling per call
        """
        super().__init__(model, api_key, max_retries=max_retries)

        if not api_key:
            raise ValueError("api_key required for AnthropicAdapter")

        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.timeout = timeout
        self.max_tokens = max_tokens

    @property
    def name(self) -> str:
        """Human-readable model name."""
        return f"anthropic:{self.model}"

    async def verify(self) -> None:
        """Verify API key with a minimal request."""
        try:
            await self.client.messages.create(
                model=self.model,
                max_tokens=1,
                messages=[{"role": "user", "content": "hi"}],
                timeout=10,
            )
        except anthropic.AuthenticationError as e:
            raise AgentAuthenticationError(
                provider="Anthropic", api_key_env="ANTHROPIC_API_KEY"
            ) from e

    def _schema_tool(self, schema: type[BaseModel]) -> dict[str, Any]:
        """Build the forced tool definition for a schema."""
        return {
            "name": _STRUCTURED_TOOL_NAME,
            "description": f"Submit the {schema.__name__} result.",
            "input_schema": schema.model_json_schema(),
        }

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: type[SchemaT],
    ) -> StructuredResponse[SchemaT]:
        """
        Ask Claude for output matching ``schema``.

        Args:
            system_prompt: System instructions
            user_prompt: Task description
            schema: Expected output model

        Returns:
            StructuredResponse with validated data and token usage

        Raises:
            ModelError: On provider failure or malformed reply
        """
        try:
            response = await self._with_retry(
                self.client.messages.create,
                model=self.model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                tools=[self._schema_tool(schema)],
                tool_choice={"type": "tool", "name": _STRUCTURED_TOOL_NAME},
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                retry_on=(anthropic.APIConnectionError, anthropic.APITimeoutError),
            )
        except anthropic.AuthenticationError as e:
            raise AgentAuthenticationError(
                provider="Anthropic", api_key_env="ANTHROPIC_API_KEY"
            ) from e
        except anthropic.APIError as e:
            raise ModelError(f"Anthropic request failed: {e}", cause=e) from e

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        logger.debug(
            f"[{self.name}] {schema.__name__}: "
            f"{usage.input_tokens} in / {usage.output_tokens} out"
        )

        payload = None
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == _STRUCTURED_TOOL_NAME:
                payload = block.input
                break

        try:
            data = validate_structured(schema, payload, self.name)
        except ModelError as e:
            e.tokens_used = usage.total_tokens
            raise

        return StructuredResponse(data=data, usage=usage, model=self.model)
