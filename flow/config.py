"""Paths and user settings.

Everything lives under ``FLOW_DIR`` (``$FLOW_HOME`` or ``~/.flow``).
Session files go in ``sessions/``; ``config.json`` sits next to it so the
sessions directory only ever holds session files.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from .jsonfile import atomic_write_json, safe_read_json
from .models import InvalidEntryPolicy
from .validation import validate_port

logger = logging.getLogger(__name__)

FLOW_DIR = Path(os.environ.get("FLOW_HOME", Path.home() / ".flow"))
SESSIONS_DIR = FLOW_DIR / "sessions"
CONFIG_PATH = FLOW_DIR / "config.json"


@dataclass
class FlowSettings:
    invalid_entry_policy: InvalidEntryPolicy = InvalidEntryPolicy.FAIL
    web_port: int = 9000

    def __post_init__(self) -> None:
        self.invalid_entry_policy = InvalidEntryPolicy(self.invalid_entry_policy)
        validate_port(self.web_port)


def load_settings() -> FlowSettings:
    FLOW_DIR.mkdir(parents=True, exist_ok=True)
    if not CONFIG_PATH.exists():
        settings = FlowSettings()
        save_settings(settings)
        return settings
    return read_settings()


def read_settings() -> FlowSettings:
    """Like load_settings, but never touches the disk: defaults if no file."""
    if not CONFIG_PATH.exists():
        return FlowSettings()

    data = safe_read_json(CONFIG_PATH)
    known = {k: v for k, v in data.items() if k in FlowSettings.__dataclass_fields__}
    if len(known) != len(data):
        logger.warning(
            "Ignoring unknown settings keys: %s", sorted(set(data) - set(known))
        )
    return FlowSettings(**known)


def save_settings(settings: FlowSettings) -> None:
    FLOW_DIR.mkdir(parents=True, exist_ok=True)
    atomic_write_json(CONFIG_PATH, asdict(settings))
