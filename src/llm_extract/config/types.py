"""Configuration data types, following the resolve-once, freeze-then-flow pattern."""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, NamedTuple

ConfigOrigin = Literal["programmatic", "env", "file", "default"]
SourceMap = Mapping[str, ConfigOrigin]


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration consumed by the extraction loop.

    Handlers read fields as attributes; any attempt to modify raises.
    """

    max_turns: int
    max_output_tokens: int
    cache_ttl_seconds: float | None
    cache_max_size: int
    cache_dir: Path | None
    validator_shell: str
    http_timeout_seconds: float


class ResolvedConfig(NamedTuple):
    """Configuration after merging all sources, with per-field origins."""

    config: FrozenConfig
    origin: SourceMap

    def audit(self) -> str:
        """Render one `field: origin:value` line per field."""
        lines = []
        for field, origin in self.origin.items():
            value = getattr(self.config, field)
            if origin == "env":
                lines.append(f"{field}: env:LLM_EXTRACT_{field.upper()}={value}")
            else:
                lines.append(f"{field}: {origin}:{value}")
        return "\n".join(lines)
