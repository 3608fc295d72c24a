"""
Configuration loading and validation for deep research.

Loads research.toml files and validates settings using Pydantic.
API keys are never stored in the file, only the names of the environment
variables that hold them.
"""

import os
import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ModelConfig(BaseModel):
    """Model capability used for planning and evaluation."""

    provider: Literal["anthropic", "openrouter"] = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key_env: str = "ANTHROPIC_API_KEY"
    timeout_seconds: int = Field(default=120, ge=1)
    max_retries: int = Field(default=3, ge=1)


class SearchProviderConfig(BaseModel):
    """Configuration for a search provider."""

    name: Literal["tavily", "brave", "serper", "firecrawl"]
    api_key_env: str | None = None  # Self-hosted Firecrawl needs no key
    base_url: str | None = None
    priority: int = 1  # Higher priority = tried first
    enabled: bool = True

    def get_api_key(self) -> str | None:
        """API key from the environment, or None if the provider needs none."""
        if self.api_key_env is None:
            return None
        api_key = os.environ.get(self.api_key_env)
        if not api_key:
            raise ValueError(
                f"API key not found in environment: {self.api_key_env} "
                f"(required for search provider {self.name})"
            )
        return api_key


class SearchConfig(BaseModel):
    """Multi-provider search configuration."""

    providers: list[SearchProviderConfig] = Field(
        default_factory=lambda: [
            SearchProviderConfig(name="tavily", api_key_env="TAVILY_API_KEY")
        ]
    )
    fallback_enabled: bool = True
    results_per_query: int = Field(default=5, ge=1, le=50)
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("providers")
    @classmethod
    def validate_at_least_one_provider(
        cls, v: list[SearchProviderConfig]
    ) -> list[SearchProviderConfig]:
        """Ensure at least one provider is enabled."""
        if not v or all(not p.enabled for p in v):
            raise ValueError("At least one search provider must be enabled")
        return v

    def ordered_providers(self) -> list[SearchProviderConfig]:
        """Enabled providers, highest priority first."""
        enabled = [p for p in self.providers if p.enabled]
        return sorted(enabled, key=lambda p: p.priority, reverse=True)


class DispatcherConfig(BaseModel):
    """Adaptive search concurrency settings."""

    min_concurrency: int = Field(default=1, ge=1)
    max_concurrency: int = Field(default=10, ge=1)
    initial_concurrency: int = Field(default=3, ge=1)
    adjustment_interval_seconds: float = Field(default=5.0, gt=0)
    min_samples: int = Field(default=5, ge=1)
    low_latency_seconds: float = Field(default=2.0, gt=0)
    high_latency_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "DispatcherConfig":
        if self.max_concurrency < self.min_concurrency:
            raise ValueError("max_concurrency must be >= min_concurrency")
        if self.high_latency_seconds < self.low_latency_seconds:
            raise ValueError("high_latency_seconds must be >= low_latency_seconds")
        return self


class CacheConfig(BaseModel):
    """Result cache settings."""

    enabled: bool = True
    memory_max_entries: int = Field(default=1000, ge=1)
    memory_sweep_threshold: int | None = None
    memory_max_ttl_seconds: float = Field(default=60.0, gt=0)
    redis_url: str | None = None  # e.g. "redis://localhost:6379/0"
    key_prefix: str = "deep_research"
    evaluation_ttl_seconds: float = Field(default=300.0, gt=0)
    search_ttl_seconds: float = Field(default=900.0, gt=0)


class ResearchLimits(BaseModel):
    """Bounds and tuning for research sessions."""

    max_depth: int = Field(default=5, ge=1)
    max_breadth: int = Field(default=5, ge=1)
    max_content_chars: int = Field(default=25_000, ge=500)
    evaluation_concurrency: int = Field(default=5, ge=1)


class ResearchConfig(BaseModel):
    """Complete configuration."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    research: ResearchLimits = Field(default_factory=ResearchLimits)

    def get_model_api_key(self) -> str:
        """
        Get the model API key from the environment.

        Raises:
            ValueError: If the key is missing
        """
        api_key = os.environ.get(self.model.api_key_env)
        if not api_key:
            raise ValueError(
                f"API key not found in environment: {self.model.api_key_env} "
                f"(required for {self.model.provider}:{self.model.model})"
            )
        return api_key


def load_config(config_path: Path) -> ResearchConfig:
    """
    Load configuration from a TOML file.

    Args:
        config_path: Path to research.toml

    Returns:
        Validated ResearchConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        config_data = tomllib.load(f)

    try:
        config = ResearchConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return config


DEFAULT_CONFIG_TEMPLATE = '''[model]
provider = "{provider}"  # anthropic | openrouter
model = "{model}"
api_key_env = "{api_key_env}"
timeout_seconds = 120
max_retries = 3

[search]
fallback_enabled = true  # Automatic fallback to next provider on failure
results_per_query = 5
timeout_seconds = 30

[[search.providers]]
name = "tavily"
api_key_env = "TAVILY_API_KEY"
priority = 2

# Self-hosted Firecrawl first, cloud as fallback:
# [[search.providers]]
# name = "firecrawl"
# base_url = "http://localhost:3002"
# priority = 3

[dispatcher]
min_concurrency = 1
max_concurrency = 10
initial_concurrency = 3
adjustment_interval_seconds = 5
min_samples = 5
low_latency_seconds = 2
high_latency_seconds = 10

[cache]
enabled = true
memory_max_entries = 1000
memory_max_ttl_seconds = 60
# redis_url = "redis://localhost:6379/0"
evaluation_ttl_seconds = 300
search_ttl_seconds = 900

[research]
max_depth = 5
max_breadth = 5
max_content_chars = 25000
evaluation_concurrency = 5
'''


def create_default_config(
    output_path: Path,
    provider: str = "anthropic",
    model: str = "claude-sonnet-4-20250514",
) -> None:
    """
    Write a research.toml template.

    Args:
        output_path: Where to write research.toml
        provider: Model provider
        model: Model identifier
    """
    api_key_env = {
        "anthropic": "ANTHROPIC_API_KEY",
        "openrouter": "OPENROUTER_API_KEY",
    }.get(provider, "API_KEY")

    output_path.write_text(
        DEFAULT_CONFIG_TEMPLATE.format(
            provider=provider, model=model, api_key_env=api_key_env
        ),
        encoding="utf-8",
    )
