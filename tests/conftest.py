"""
Shared pytest fixtures and utilities for the subground test suite.
"""

from pathlib import Path
from typing import Dict, Any, Callable, Optional

import pytest
import pytest_asyncio
import yaml

from subground.api import client as client_module
from subground.api.client import ApiClient
from subground.auth.navigation import RecordingNavigator
from subground.auth.session import SessionStore
from subground.config.loader import _merge

BASE_URL = "http://api.test"
SECRET = "k1"


@pytest.fixture
def base_config() -> Dict[str, Any]:
    """
    Minimal in-memory configuration pointing at the mocked API origin.
    """
    return {
        "api": {"base_url": BASE_URL, "request_timeout": 5},
        "security": {"encryption_key": SECRET},
        "runtime": {"environment": "development"},
        "logging": {"level": "INFO", "console": False},
    }


@pytest.fixture
def session() -> SessionStore:
    return SessionStore()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest_asyncio.fixture
async def api_client(base_config, session, navigator):
    """
    ApiClient wired to the shared session and recording navigator.
    """
    client = ApiClient(base_config, session, navigator=navigator)
    yield client
    await client.aclose()


@pytest.fixture
def fresh_singleton(monkeypatch):
    """
    Forget the process-wide client for the duration of one test.
    """
    monkeypatch.setattr(client_module, "_instance", None)


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path):
    """
    Run in an empty directory without SUBGROUND_* overrides.
    """
    for name in ("SUBGROUND_API_BASE_URL", "SUBGROUND_ENCRYPTION_KEY", "SUBGROUND_ENV"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[[Dict[str, Any]], Path]:
    """
    Create a minimal config.yaml in a temp directory.

    Usage:
        path = make_config({"runtime": {"environment": "production"}})
    """

    def _builder(overrides: Optional[Dict[str, Any]] = None) -> Path:
        base = {
            "api": {"base_url": BASE_URL},
            "security": {"encryption_key": SECRET},
            "logging": {"console": False},
        }
        if overrides:
            base = _merge(base, overrides)

        cfg_path = tmp_path / "config.yaml"
        cfg_path.write_text(yaml.safe_dump(base))
        return cfg_path

    return _builder
