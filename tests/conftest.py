"""
Pytest config.

Pins the repo root on sys.path so `import portal` works when a global `pytest`
entrypoint is used without installing the package.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

_CONFIG_ENV_VARS = (
    "DISCORD_CLIENT_ID",
    "DISCORD_CLIENT_SECRET",
    "DISCORD_REDIRECT_URI",
    "SESSION_SECRET",
    "SESSION_TTL_SECONDS",
    "COOKIE_SECURE",
    "PTERO_API_KEY",
    "PTERO_PANEL_URL",
    "PTERO_EGG_ID",
    "PTERO_DOCKER_IMAGE",
)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """
    Configuration is cached per process; start every test from an empty environment.

    Tests set what they need with `monkeypatch.setenv` and then read config through
    the loaders (or call `cache_clear()` themselves after changing env mid-test).
    """
    from portal.auth.config import load_auth_config
    from portal.panel.config import load_panel_config

    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    load_auth_config.cache_clear()
    load_panel_config.cache_clear()
    yield
    load_auth_config.cache_clear()
    load_panel_config.cache_clear()


@pytest.fixture
def discord_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISCORD_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("DISCORD_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("DISCORD_REDIRECT_URI", "http://localhost:8080/api/auth/discord/callback")
    monkeypatch.setenv("SESSION_SECRET", "test-secret-key-for-testing-purposes-only")


@pytest.fixture
def panel_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PTERO_API_KEY", "ptla_test_key")
    monkeypatch.setenv("PTERO_PANEL_URL", "https://panel.example.com/")
