"""
Error taxonomy for deep research sessions.

Only ValidationError escapes a research session. Search and model errors are
recorded against the query or source that produced them, and cache errors are
downgraded to misses wherever the cache is read or written.
"""


class ResearchError(Exception):
    """Base class for all research errors."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ValidationError(ResearchError):
    """Raised for invalid session parameters before any external call."""


class SearchError(ResearchError):
    """A search provider failed for one query."""

    def __init__(
        self,
        message: str,
        query: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause)
        self.query = query


class ModelError(ResearchError):
    """
    The model capability failed (timeout, provider error, malformed reply).

    ``tokens_used`` holds what the provider billed before the failure, e.g. a
    reply that arrived but did not match the schema.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        tokens_used: int = 0,
    ):
        super().__init__(message, cause)
        self.tokens_used = tokens_used


class PlanError(ModelError):
    """The query planner could not produce a plan."""


class CacheError(ResearchError):
    """A cache backend failed. Callers downgrade it to a miss."""


class AgentAuthenticationError(ModelError):
    """Raised when a model provider rejects the configured API key."""

    def __init__(self, provider: str, api_key_env: str):
        self.provider = provider
        self.api_key_env = api_key_env
        super().__init__(
            f"{provider} authentication failed. "
            f"Check that {api_key_env} is set to a valid API key."
        )
