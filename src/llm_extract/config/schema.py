"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces configuration
values from the environment, project files and programmatic overrides into the
correct types with proper defaults.
"""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from llm_extract.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MAX_TURNS,
    DEFAULT_VALIDATOR_SHELL,
)

ENV_PREFIX = "LLM_EXTRACT_"


class ExtractSettings(BaseSettings):
    """Pydantic settings schema for extraction defaults.

    Integrates with environment variables using the LLM_EXTRACT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=None,
        case_sensitive=False,
        extra="ignore",
    )

    max_turns: int = Field(
        default=DEFAULT_MAX_TURNS,
        description="Default maximum number of turns per extraction",
        ge=1,
    )

    max_output_tokens: int = Field(
        default=DEFAULT_MAX_OUTPUT_TOKENS,
        description="Cap on output tokens requested per turn",
        ge=1,
    )

    cache_ttl_seconds: float | None = Field(
        default=None,
        description="Default maximum age of cache entries; None disables expiry",
        gt=0,
    )

    cache_max_size: int = Field(
        default=DEFAULT_CACHE_MAX_SIZE,
        description="Capacity of the default in-memory cache",
        ge=1,
    )

    cache_dir: Path | None = Field(
        default=None,
        description="Directory for the default cache; memory cache when unset",
    )

    validator_shell: str = Field(
        default=DEFAULT_VALIDATOR_SHELL,
        description="Shell used to run validate_command",
        min_length=1,
    )

    http_timeout_seconds: float = Field(
        default=DEFAULT_HTTP_TIMEOUT,
        description="Timeout for HTTP validator requests",
        gt=0,
    )

    @field_validator("cache_ttl_seconds", "cache_dir", mode="before")
    @classmethod
    def empty_as_none(cls, v: Any) -> Any:
        """Treat empty strings from the environment as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary of field values."""
        return {name: getattr(self, name) for name in type(self).model_fields}


FIELD_NAMES: tuple[str, ...] = tuple(ExtractSettings.model_fields)
