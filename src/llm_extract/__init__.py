"""Structured data extraction from language model conversations."""

import importlib.metadata
import logging

from llm_extract.cache import (
    CacheEntry,
    CacheOptions,
    CacheStore,
    FileCache,
    MemoryCache,
    compute_cache_key,
)
from llm_extract.config import FrozenConfig, resolve_config
from llm_extract.core.cancellation import CancellationToken
from llm_extract.core.exceptions import (
    AbortError,
    CommandValidationError,
    ExtractError,
    HttpValidationError,
    MaxTurnsError,
    SchemaValidationError,
    ValidationErrorDetail,
)
from llm_extract.core.stream import EventStream, ExtractStream
from llm_extract.core.types import (
    AssistantMessage,
    Context,
    Done,
    ExtractionRequest,
    ExtractResult,
    GenerationError,
    GenerationOptions,
    ImageContent,
    ModelInfo,
    TextContent,
    TextDelta,
    ThinkingContent,
    ThinkingDelta,
    Tool,
    ToolCall,
    ToolResultMessage,
    Usage,
    UserMessage,
)
from llm_extract.frontdoor import extract, extract_data, warm_cache
from llm_extract.pipeline.loop import ExtractionLoop
from llm_extract.schema.normalize import normalize_tool_schema
from llm_extract.telemetry import TelemetryContext, TelemetryReporter

try:
    __version__ = importlib.metadata.version("llm-extract")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Library logging stays silent unless the application configures handlers.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Entry points
    "extract",
    "extract_data",
    "warm_cache",
    "ExtractionLoop",
    "ExtractStream",
    "EventStream",
    "CancellationToken",
    # Requests and results
    "ExtractionRequest",
    "ExtractResult",
    "Usage",
    # Generation service contract
    "AssistantMessage",
    "Context",
    "Done",
    "GenerationError",
    "GenerationOptions",
    "ImageContent",
    "ModelInfo",
    "TextContent",
    "TextDelta",
    "ThinkingContent",
    "ThinkingDelta",
    "Tool",
    "ToolCall",
    "ToolResultMessage",
    "UserMessage",
    # Caching
    "CacheEntry",
    "CacheOptions",
    "CacheStore",
    "FileCache",
    "MemoryCache",
    "compute_cache_key",
    # Schema
    "normalize_tool_schema",
    # Configuration
    "FrozenConfig",
    "resolve_config",
    # Telemetry
    "TelemetryContext",
    "TelemetryReporter",
    # Exceptions
    "AbortError",
    "CommandValidationError",
    "ExtractError",
    "HttpValidationError",
    "MaxTurnsError",
    "SchemaValidationError",
    "ValidationErrorDetail",
]
