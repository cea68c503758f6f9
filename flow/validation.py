"""Input validation for CLI arguments and store operations.

Centralised validation rules so the CLI, the web app and the store
layer share the same constraints.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# String length limits
# ---------------------------------------------------------------------------

MAX_PROJECT_NAME = 100
MAX_TAG = 50
MAX_TAGS = 20
MAX_SESSION_ID = 64

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# No '-' (filename delimiter), no path separators, no leading dot.
_SESSION_ID_RE = re.compile(r"[A-Za-z0-9_]+")


# ---------------------------------------------------------------------------
# Validators — all raise ValueError on failure
# ---------------------------------------------------------------------------


def validate_string_length(value: str, field: str, max_len: int) -> str:
    """Validate string is non-empty and within length limit."""
    if not value or not value.strip():
        raise ValueError(f"{field} cannot be empty")
    stripped = value.strip()
    if len(stripped) > max_len:
        raise ValueError(f"{field} too long ({len(stripped)} chars, max {max_len})")
    return stripped


def validate_session_id(session_id: str) -> str:
    """Reject IDs that would break the filename scheme or escape the directory."""
    if not session_id:
        raise ValueError("Session ID cannot be empty")
    if len(session_id) > MAX_SESSION_ID:
        raise ValueError(f"Session ID too long ({len(session_id)} chars, max {MAX_SESSION_ID})")
    if not _SESSION_ID_RE.fullmatch(session_id):
        raise ValueError(
            f"Invalid session ID: '{session_id}'. "
            "Must contain only letters, digits and underscores."
        )
    return session_id


def validate_project_name(project: str) -> str:
    return validate_string_length(project, "project", MAX_PROJECT_NAME)


def validate_tags(tags: list[str] | None) -> list[str]:
    """Validate tag list — order and duplicates are kept."""
    if tags is None:
        return []
    if len(tags) > MAX_TAGS:
        raise ValueError(f"Too many tags ({len(tags)}, max {MAX_TAGS})")
    return [validate_string_length(tag, "tag", MAX_TAG) for tag in tags]


def validate_positive_int(value: int, field: str, max_val: int | None = None) -> int:
    """Validate integer is positive (> 0), optionally with upper bound."""
    if value < 1:
        raise ValueError(f"{field} must be positive (got {value})")
    if max_val is not None and value > max_val:
        raise ValueError(f"{field} too large ({value}, max {max_val})")
    return value


def validate_port(port: int) -> int:
    """Validate TCP port number."""
    if port < 1 or port > 65535:
        raise ValueError(f"Port must be 1-65535 (got {port})")
    return port
