"""Shared fixtures for flow tests."""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Ensure the project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from flow import config
from flow.models import Session


@pytest.fixture
def isolate_config(tmp_path, monkeypatch):
    """Redirect all config paths to a temp directory."""
    monkeypatch.setattr(config, "FLOW_DIR", tmp_path)
    monkeypatch.setattr(config, "SESSIONS_DIR", tmp_path / "sessions")
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json")
    return tmp_path


def at(seconds: int) -> datetime:
    """UTC datetime for a Unix timestamp."""
    return datetime.fromtimestamp(seconds, UTC)


def make_session(**overrides) -> Session:
    defaults = {
        "id": "abc123",
        "start_time": datetime(2024, 4, 13, 17, 20, tzinfo=UTC),
        "project": "Flow",
        "tags": ["start"],
    }
    defaults.update(overrides)
    return Session(**defaults)
