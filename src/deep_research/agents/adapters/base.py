"""
Base adapter utilities shared across all LLM adapters.

Provides:
- Retry logic with exponential backoff
- JSON extraction from free-form replies
- Schema validation of structured replies
"""

import json
import logging
import re
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...errors import ModelError

logger = logging.getLogger(__name__)

T = TypeVar("T")
SchemaT = TypeVar("SchemaT", bound=BaseModel)


class BaseAdapter:
    """Base class with shared adapter utilities."""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        max_retries: int = 3,
    ):
        """
        Initialize base adapter.

        Args:
            model: Model identifier
            api_key: API key for authentication
            max_retries: Attempts for transient connection/timeout failures
        """
        self.model = model
        self.api_key = api_key
        self.max_retries = max_retries

    async def _with_retry(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        retry_on: tuple[type[BaseException], ...] = (ConnectionError, TimeoutError),
        **kwargs: Any,
    ) -> T:
        """
        Execute function with exponential backoff retry.

        Args:
            func: Async function to execute
            retry_on: Exception types considered transient
            *args, **kwargs: Arguments for func

        Returns:
            Result from func

        Raises:
            Last exception if all retries fail
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(retry_on),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            reraise=True,
        ):
            with attempt:
                logger.debug(
                    f"Attempt {attempt.retry_state.attempt_number}/{self.max_retries}"
                )
                return await func(*args, **kwargs)

        # This should never be reached due to reraise=True, but satisfies type checker
        raise RuntimeError("Retry logic failed unexpectedly")


def extract_json_from_text(text: str) -> dict[str, Any] | None:
    """
    Extract JSON object from text (handles markdown code blocks).

    Args:
        text: Text potentially containing JSON

    Returns:
        Parsed JSON dict or None if not found
    """
    # Try to find JSON in markdown code block
    json_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group(1))
        except json.JSONDecodeError:
            pass

    # Try to find raw JSON
    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group(0))
        except json.JSONDecodeError:
            pass

    return None


def validate_structured(schema: type[SchemaT], payload: Any, source: str) -> SchemaT:
    """
    Validate a decoded reply against the requested schema.

    Raises:
        ModelError: If the payload is missing or does not match the schema
    """
    if payload is None:
        raise ModelError(f"{source} returned no structured output")

    try:
        return schema.model_validate(payload)
    except SchemaValidationError as e:
        raise ModelError(
            f"{source} reply did not match {schema.__name__}: {e.error_count()} error(s)",
            cause=e,
        ) from e
