"""
OpenRouter adapter for deep research.

OpenRouter provides unified access to many LLM models through a single API.
Uses the OpenAI-compatible chat completions format with JSON output.

Models proxied through OpenRouter do not all honour ``response_format``, so
the reply text is parsed leniently (fenced blocks, surrounding prose) before
being validated against the requested schema.
"""

import json
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...errors import AgentAuthenticationError, ModelError
from ..protocol import StructuredResponse, TokenUsage
from .base import extract_json_from_text, validate_structured

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def _message_text(message: dict[str, Any]) -> str:
    """Flatten assistant content into plain text (string or content parts)."""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") for part in content if isinstance(part, dict)
        )
    return ""


def parse_json_reply(text: str) -> dict[str, Any] | None:
    """
    Decode a JSON object from a model reply.

    Handles:
    - Plain JSON: '{"score": 0.8}'
    - Markdown fenced JSON
    - JSON embedded in prose
    """
    stripped = text.strip()
    if not stripped:
        return None
    try:
        parsed = json.loads(stripped)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        return extract_json_from_text(stripped)


class OpenRouterAdapter:
    """
    Adapter for OpenRouter API.

    OpenRouter provides access to many models (Claude, GPT-4, Llama, Qwen, etc.)
    through a unified OpenAI-compatible API.
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        timeout: int = 120,
        max_retries: int = 3,
        base_url: str = "https://openrouter.ai/api/v1",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_url = base_url
        self._transport = transport

    @property
    def name(self) -> str:
        return f"openrouter:{self.model}"

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    async def verify(self) -> None:
        """Verify API key with a minimal request."""
        try:
            async with self._client(timeout=10) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": "hi"}],
                        "max_tokens": 1,
                    },
                )
                if response.status_code in (401, 403):
                    raise AgentAuthenticationError(
                        provider="OpenRouter", api_key_env="OPENROUTER_API_KEY"
                    )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                raise AgentAuthenticationError(
                    provider="OpenRouter", api_key_env="OPENROUTER_API_KEY"
                ) from e
            raise

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": "Deep Research Engine",
        }

    async def _post_completion(self, payload: dict[str, Any]) -> dict[str, Any]:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            reraise=True,
        ):
            with attempt:
                return await self._request_completion(payload)

        raise RuntimeError("Retry logic failed unexpectedly")

    async def _request_completion(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json=payload,
            )

        if response.status_code in (401, 403):
            raise AgentAuthenticationError(
                provider="OpenRouter", api_key_env="OPENROUTER_API_KEY"
            )
        if response.status_code != 200:
            raise ModelError(
                f"OpenRouter API error ({response.status_code}): {response.text[:500]}"
            )

        return response.json()

    async def generate_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: type[SchemaT],
    ) -> StructuredResponse[SchemaT]:
        schema_json = json.dumps(schema.model_json_schema())
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        f"{system_prompt}\n\n"
                        "Respond with a single JSON object matching this JSON schema:\n"
                        f"{schema_json}"
                    ),
                },
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0.2,
        }

        try:
            result = await self._post_completion(payload)
        except httpx.HTTPError as e:
            raise ModelError(f"OpenRouter request failed: {e}", cause=e) from e

        usage_raw = result.get("usage") or {}
        usage = TokenUsage(
            input_tokens=usage_raw.get("prompt_tokens", 0),
            output_tokens=usage_raw.get("completion_tokens", 0),
        )

        choices = result.get("choices") or []
        try:
            if not choices:
                raise ModelError(f"{self.name} returned no choices")

            text = _message_text(choices[0].get("message") or {})
            data = validate_structured(schema, parse_json_reply(text), self.name)
        except ModelError as e:
            e.tokens_used = usage.total_tokens
            raise

        return StructuredResponse(data=data, usage=usage, model=self.model)
