"""
Project-wide constants for the structured extraction engine
"""  # noqa: D200, D212, D415

# ==============================================================================
# Tool Definition
# ==============================================================================

RESPOND_TOOL_NAME = "respond"
RESPOND_TOOL_DESCRIPTION = "Return structured data that matches the schema."
FALLBACK_TOOL_CALL_ID = "respond_fallback"

# Field name used when a non-object schema is wrapped for object-root providers
WRAPPED_VALUE_KEY = "value"

# ==============================================================================
# Extraction Loop Defaults
# ==============================================================================

DEFAULT_MAX_TURNS = 3
DEFAULT_MAX_OUTPUT_TOKENS = 32_000  # upper bound on per-turn output tokens

# ==============================================================================
# Caching Configuration
# ==============================================================================

DEFAULT_CACHE_MAX_SIZE = 1000  # entries in the process-wide memory cache
CACHE_SHARD_PREFIX_LENGTH = 2  # key characters used for file cache sharding

# ==============================================================================
# External Validators
# ==============================================================================

DEFAULT_VALIDATOR_SHELL = "sh"
DEFAULT_HTTP_TIMEOUT = 30.0  # seconds

# ==============================================================================
# Provider Error Diagnostics
# ==============================================================================

# Provider messages that carry no useful detail on their own
GENERIC_ERROR_PATTERNS = (
    r"unknown error occurred",
    r"unkown error ocurred",
    r"^llm error$",
)

# Provider phrasings that indicate the input exceeded the context window
CONTEXT_OVERFLOW_PATTERNS = (
    r"context[_ ]length[_ ]exceeded",
    r"maximum context length",
    r"context window",
    r"prompt is too long",
    r"input is too long",
    r"too many tokens",
    r"exceeds the (?:maximum|max) (?:number of )?(?:input )?tokens",
    r"request too large",
)
