"""Directory index — the sessions directory used as a metadata index.

Listing and filtering only look at file names (decoded by the filename
codec), so their cost grows with the number of files rather than with
the bytes stored. Session bodies are never opened here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .errors import InvalidFilenameError, StorageUnavailableError
from .filename import SessionFilename, sanitize_project
from .models import InvalidEntryPolicy, TimeRange

logger = logging.getLogger(__name__)


class DirectoryIndex:
    def __init__(
        self,
        root: Path,
        invalid_entry_policy: InvalidEntryPolicy = InvalidEntryPolicy.FAIL,
    ) -> None:
        self.root = Path(root)
        self.invalid_entry_policy = InvalidEntryPolicy(invalid_entry_policy)

    def list_entries(self) -> list[Path]:
        """Return every non-directory entry, sorted by name.

        Dot-files (the lock file, in-flight temp files) belong to the store
        and are not part of the index.
        """
        try:
            entries = [
                path
                for path in self.root.iterdir()
                if not path.name.startswith(".") and not path.is_dir()
            ]
        except OSError as exc:
            raise StorageUnavailableError(
                f"Cannot list session directory {self.root}: {exc}"
            ) from exc
        entries.sort(key=lambda p: p.name)
        return entries

    def decode(self, entry: Path) -> SessionFilename | None:
        """Decode one entry's name, applying the invalid-entry policy."""
        try:
            return SessionFilename.parse(entry.name)
        except InvalidFilenameError as exc:
            if self.invalid_entry_policy == InvalidEntryPolicy.SKIP:
                logger.warning("Skipping invalid session file %s: %s", entry.name, exc)
                return None
            raise

    def decode_entries(
        self, entries: Iterable[Path]
    ) -> list[tuple[Path, SessionFilename]]:
        decoded = []
        for entry in entries:
            record = self.decode(entry)
            if record is not None:
                decoded.append((entry, record))
        return decoded

    def filter_by_project(self, entries: Iterable[Path], project: str) -> list[Path]:
        wanted = sanitize_project(project)
        return [
            entry
            for entry, record in self.decode_entries(entries)
            if record.project == wanted
        ]

    def filter_by_time_range(
        self, entries: Iterable[Path], time_range: TimeRange
    ) -> list[Path]:
        decoded = self.decode_entries(entries)
        if time_range.is_zero():
            return [entry for entry, _ in decoded]
        return [
            entry
            for entry, record in decoded
            if time_range.contains(record.start_time)
        ]
