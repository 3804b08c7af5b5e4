"""Configuration resolution: precedence, validation and origins."""

from pathlib import Path

import pytest

from llm_extract.config import (
    ConfigFileError,
    FrozenConfig,
    resolve_config,
    resolve_config_with_origins,
)

pytestmark = pytest.mark.unit


def _write_pyproject(directory: Path, body: str) -> None:
    (directory / "pyproject.toml").write_text(body, encoding="utf-8")


def test_defaults():
    config = resolve_config()
    assert isinstance(config, FrozenConfig)
    assert config.max_turns == 3
    assert config.max_output_tokens == 32_000
    assert config.cache_ttl_seconds is None
    assert config.cache_max_size == 1000
    assert config.cache_dir is None
    assert config.validator_shell == "sh"
    assert config.http_timeout_seconds == 30.0


def test_frozen_config_is_immutable():
    config = resolve_config()
    with pytest.raises(AttributeError):
        config.max_turns = 9  # type: ignore[misc]


def test_precedence_programmatic_over_env_over_file(tmp_path, monkeypatch):
    _write_pyproject(
        tmp_path,
        "[tool.llm_extract]\nmax_turns = 4\ncache_max_size = 10\nvalidator_shell = 'bash'\n",
    )
    monkeypatch.setenv("LLM_EXTRACT_MAX_TURNS", "6")
    monkeypatch.setenv("LLM_EXTRACT_CACHE_MAX_SIZE", "20")

    resolved = resolve_config_with_origins({"max_turns": 8}, project_root=tmp_path)
    config = resolved.config

    assert config.max_turns == 8
    assert config.cache_max_size == 20
    assert config.validator_shell == "bash"
    assert resolved.origin["max_turns"] == "programmatic"
    assert resolved.origin["cache_max_size"] == "env"
    assert resolved.origin["validator_shell"] == "file"
    assert resolved.origin["http_timeout_seconds"] == "default"
    assert "cache_max_size: env:LLM_EXTRACT_CACHE_MAX_SIZE=20" in resolved.audit()


def test_pyproject_is_found_in_parent_directories(tmp_path):
    _write_pyproject(tmp_path, "[tool.llm_extract]\nmax_output_tokens = 1024\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert resolve_config(project_root=nested).max_output_tokens == 1024


def test_unknown_keys_are_ignored(tmp_path):
    _write_pyproject(tmp_path, "[tool.llm_extract]\nflavor = 'vanilla'\n")
    config = resolve_config({"colour": "blue"}, project_root=tmp_path)
    assert config.max_turns == 3


def test_empty_env_values_mean_unset(monkeypatch):
    monkeypatch.setenv("LLM_EXTRACT_CACHE_TTL_SECONDS", "")
    assert resolve_config().cache_ttl_seconds is None


def test_invalid_values_are_rejected(monkeypatch):
    monkeypatch.setenv("LLM_EXTRACT_MAX_TURNS", "0")
    with pytest.raises(ValueError, match="Configuration validation failed"):
        resolve_config()


def test_malformed_pyproject_raises(tmp_path):
    _write_pyproject(tmp_path, "[tool.llm_extract\nbroken")
    with pytest.raises(ConfigFileError, match="Failed to parse TOML"):
        resolve_config(project_root=tmp_path)


def test_cache_dir_is_coerced_to_path(monkeypatch, tmp_path):
    monkeypatch.setenv("LLM_EXTRACT_CACHE_DIR", str(tmp_path / "c"))
    assert resolve_config().cache_dir == tmp_path / "c"
