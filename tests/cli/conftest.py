"""Fixtures for CLI tests."""

import os

import pytest

from src.cli.config import ENV_PREFIX, LEGACY_ENV_VARS


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run with no bridge env vars, an empty cwd, and a throwaway HOME."""
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX) or name in LEGACY_ENV_VARS or name == "DATABASE_URL":
            monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return tmp_path
