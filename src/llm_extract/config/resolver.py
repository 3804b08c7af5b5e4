"""Configuration resolution with precedence handling.

Merges configuration from every source according to the documented order:
Programmatic > Environment > Project file > Defaults
"""

import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .file_loader import FileConfigLoader
from .schema import ENV_PREFIX, FIELD_NAMES, ExtractSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig


class ConfigResolver:
    """Resolves configuration from multiple sources with proper precedence."""

    def __init__(self) -> None:
        """Initialize the configuration resolver."""
        self.file_loader = FileConfigLoader()

    def resolve(
        self,
        overrides: dict[str, Any] | None = None,
        *,
        project_root: Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources.

        Args:
            overrides: Programmatic values (highest precedence). Unknown keys
                are ignored.
            project_root: Directory to search for pyproject.toml.

        Returns:
            ResolvedConfig with merged values and per-field origins.

        Raises:
            ValueError: If the merged values fail validation.
            ConfigFileError: If pyproject.toml exists but is malformed.
        """
        merged: dict[str, Any] = {}
        origin: dict[str, ConfigOrigin] = dict.fromkeys(FIELD_NAMES, "default")

        # Step 1: project file
        for field, value in self.file_loader.load_project_config(project_root).items():
            if field in origin:
                merged[field] = value
                origin[field] = "file"

        # Step 2: environment variables
        for field in FIELD_NAMES:
            env_var = f"{ENV_PREFIX}{field.upper()}"
            if env_var in os.environ:
                merged[field] = os.environ[env_var]
                origin[field] = "env"

        # Step 3: programmatic overrides
        for field, value in (overrides or {}).items():
            if field in origin:
                merged[field] = value
                origin[field] = "programmatic"

        # Step 4: validate. Environment reading is disabled here because the
        # environment was already merged above with the correct precedence.
        try:
            settings = ExtractSettings.model_validate(merged)
        except ValidationError as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        values = settings.to_dict()
        return ResolvedConfig(config=FrozenConfig(**values), origin=origin)
