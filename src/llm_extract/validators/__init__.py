"""Validation layers applied to shape-valid candidates."""

from llm_extract.validators.command import run_command_validator
from llm_extract.validators.http import default_client_factory, run_http_validator
from llm_extract.validators.pipeline import (
    ValidationEmitter,
    ValidatorSettings,
    error_message,
    run_validators,
)

__all__ = [
    "ValidationEmitter",
    "ValidatorSettings",
    "default_client_factory",
    "error_message",
    "run_command_validator",
    "run_http_validator",
    "run_validators",
]
