"""Shared fixtures for the snapshot_changelog test suite."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from snapshot_helpers import fake_engine_commands, write_snapshot

from SnapshotChangelog import settings as settings_module
from SnapshotChangelog.logging_utils import LOGGER_NAME
from SnapshotChangelog.settings import EngineSettings, HttpSettings, Settings

_ENV_VARS = (
    "LLM_ENDPOINT",
    "LLM_API_KEY",
    "LLM_MODEL",
    "WEBHOOK_URL",
    "WEBHOOK_TOKEN",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Clear pipeline env vars, cached settings, and CLI-installed log handlers."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    settings_module.reset_settings()
    yield
    settings_module.reset_settings()
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_snaplog_managed", False):
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(**fake_engine_commands())


@pytest.fixture
def test_settings(engine_settings: EngineSettings) -> Settings:
    return Settings(engine=engine_settings, http=HttpSettings(retry_total=0))


@pytest.fixture
def fake_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Point ``SNAPLOG_ENGINE__*`` at the fake engine for CLI runs."""

    for key, value in fake_engine_commands().items():
        monkeypatch.setenv(f"SNAPLOG_ENGINE__{key.upper()}", value)


@pytest.fixture
def snapshot_dir(tmp_path: Path) -> Path:
    """The v1 / v1-fix / v2 layout: a fix on v1 that must carry over to v2."""

    base = tmp_path / "snapshots"
    write_snapshot(base, "20250101T000000Z-v1.json", {"name": "demo", "count": 1})
    write_snapshot(base, "20250102T000000Z-v1-fix.json", {"name": "Demo", "count": 1})
    write_snapshot(base, "20250103T000000Z-v2.json", {"name": "demo", "count": 2, "tags": ["x"]})
    return base
