"""JSON file helpers shared by the session store and the settings file.

Writes are atomic (temp file + os.replace) so a reader never sees a
half-written file. Temp files are dot-prefixed and therefore invisible
to the directory index.
"""

from __future__ import annotations

import errno
import json
import os
import tempfile
from pathlib import Path

MAX_JSON_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


def atomic_write_json(path: Path, data: dict) -> None:
    """Write JSON atomically via temp file + rename."""
    tmp_fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def safe_read_json(path: Path) -> dict:
    """Read and parse a JSON file with size limit and symlink rejection.

    Uses O_NOFOLLOW to atomically reject symlinks (no TOCTOU race).

    Raises:
        ValueError: if file is a symlink or exceeds size limit.
        json.JSONDecodeError: if file contains invalid JSON.
        OSError: if the file cannot be opened.
    """
    try:
        fd = os.open(path, os.O_RDONLY | os.O_NOFOLLOW)
    except OSError as e:
        if e.errno in (errno.ELOOP, errno.EMLINK):
            raise ValueError(f"Refusing to read symlink: {path.name}") from e
        raise
    size = os.fstat(fd).st_size
    if size > MAX_JSON_FILE_SIZE:
        os.close(fd)
        raise ValueError(
            f"File too large: {path.name} ({size} bytes, max {MAX_JSON_FILE_SIZE})"
        )
    with os.fdopen(fd, encoding="utf-8") as f:
        return json.load(f)
