"""Configuration for the extraction engine.

Values are resolved once per extraction from programmatic overrides,
``LLM_EXTRACT_*`` environment variables, ``[tool.llm_extract]`` in the nearest
pyproject.toml and built-in defaults, in that order, then frozen.

Example:
    config = resolve_config({"max_turns": 5})
    config.max_turns  # 5
"""

from pathlib import Path
from typing import Any

from .file_loader import ConfigFileError
from .resolver import ConfigResolver
from .schema import ExtractSettings
from .types import FrozenConfig, ResolvedConfig


def resolve_config_with_origins(
    overrides: dict[str, Any] | None = None,
    *,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration and report where each value came from."""
    return ConfigResolver().resolve(overrides, project_root=project_root)


def resolve_config(
    overrides: dict[str, Any] | None = None,
    *,
    project_root: Path | None = None,
) -> FrozenConfig:
    """Resolve configuration into its immutable form.

    Raises:
        ValueError: If a value fails validation.
        ConfigFileError: If pyproject.toml cannot be parsed.
    """
    return resolve_config_with_origins(overrides, project_root=project_root).config


__all__ = [
    "ConfigFileError",
    "ExtractSettings",
    "FrozenConfig",
    "ResolvedConfig",
    "resolve_config",
    "resolve_config_with_origins",
]
