"""
Global test configuration.
"""

import os

import pytest

from llm_extract.cache.defaults import default_cache_store


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_llm_extract_env(request, monkeypatch):
    """Ensure a clean LLM_EXTRACT_* environment for each test.

    Escape hatch: mark a test with @pytest.mark.allow_env_pollution to keep
    the current environment.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("LLM_EXTRACT_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def neutral_project_dir(monkeypatch, tmp_path):
    """Run from an empty directory so no real pyproject.toml is discovered."""
    workdir = tmp_path / "project"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture(autouse=True)
def fresh_default_cache():
    """Give every test its own process-wide default cache."""
    default_cache_store.cache_clear()
    yield
    default_cache_store.cache_clear()
