"""Shared pytest fixtures for Tallr tests."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from tallr.core.config import GlobalConfig
from tallr.core.models import ProjectIn, TaskIn
from tallr.core.state_store import StateStore

TEST_TOKEN = "test-token-0123456789abcdef"


class FakeClock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for testing.

    Yields:
        Path to temporary directory that will be cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch):
    """Clear TALLR_* variables that would leak into GlobalConfig."""
    for var in [
        "TALLR_TOKEN",
        "TALLR_DATA_DIR",
        "TALLR_HOST",
        "TALLR_PORT",
        "TALLR_LOG_LEVEL",
        "TALLR_LOG_FILE",
        "TALLR_DEBUG",
        "TALLR_URL",
        "TALLR_CLEANUP_INTERVAL_SECONDS",
        "TALLR_NOTIFICATIONS_ENABLED",
    ]:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> StateStore:
    return StateStore(clock=clock)


@pytest.fixture
def tracing_store(clock) -> StateStore:
    return StateStore(clock=clock, trace_transitions=True)


@pytest.fixture
def make_report():
    """Factory for (ProjectIn, TaskIn) pairs as the wrapper would send them."""

    def _make(
        task_id: str = "task-1",
        state: str = "WORKING",
        repo_path: str = "/src/api",
        name: str = "api",
        agent: str = "claude",
        title: str = "Refactor auth",
        details: str | None = None,
    ):
        project = ProjectIn(name=name, repo_path=repo_path)
        task = TaskIn(id=task_id, agent=agent, title=title, state=state, details=details)
        return project, task

    return _make


@pytest.fixture
def config(temp_dir, clean_env) -> GlobalConfig:
    """Config rooted in a temp dir with background work disabled."""
    return GlobalConfig(
        data_dir=temp_dir,
        notifications_enabled=False,
        cleanup_interval_seconds=0,
        cli_install_path=temp_dir / "bin" / "tallr",
    )


@pytest.fixture
def test_token() -> str:
    return TEST_TOKEN


@pytest.fixture
def auth_headers(test_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {test_token}"}


@pytest.fixture
def client(config, clean_env) -> Generator[TestClient, None, None]:
    """Gateway test client with the shared secret taken from TALLR_TOKEN."""
    from tallr.ui.server import create_app

    clean_env.setenv("TALLR_TOKEN", TEST_TOKEN)
    with TestClient(create_app(config)) as test_client:
        yield test_client


@pytest.fixture
def debug_client(config, clean_env) -> Generator[TestClient, None, None]:
    """Gateway test client running in debug mode."""
    from tallr.ui.server import create_app

    config.debug = True
    clean_env.setenv("TALLR_TOKEN", TEST_TOKEN)
    with TestClient(create_app(config)) as test_client:
        yield test_client


@pytest.fixture
def upsert_body():
    """Factory for /v1/tasks/upsert request bodies."""

    def _make(task_id: str = "task-1", state: str = "WORKING", repo_path: str = "/src/api", name: str = "api"):
        return {
            "project": {"name": name, "repoPath": repo_path},
            "task": {"id": task_id, "agent": "claude", "title": "Refactor auth", "state": state},
        }

    return _make
