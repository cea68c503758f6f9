"""Session store — CRUD and queries over one JSON file per session.

The sessions directory doubles as the index: file names carry id,
sanitized project and start time (see ``filename.py``), so filters run on
names and only the surviving files are read. There is no cache; every
query reflects what is on disk.
"""

from __future__ import annotations

import abc
import fcntl
import json
import logging
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path

from . import config
from .errors import (
    ReadError,
    SessionNotFoundError,
    StorageUnavailableError,
    WriteError,
)
from .filename import encode_filename
from .index import DirectoryIndex
from .jsonfile import atomic_write_json, safe_read_json
from .models import InvalidEntryPolicy, Session, SessionsFilters, TimeRange
from .validation import validate_session_id

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".lock"


class SessionStore(abc.ABC):
    """Persistence contract used by the lifecycle guard, the CLI and the web app."""

    @abc.abstractmethod
    def save(self, session: Session) -> None: ...

    @abc.abstractmethod
    def find_by_id(self, session_id: str) -> Session | None: ...

    @abc.abstractmethod
    def delete(self, session_id: str) -> None: ...

    @abc.abstractmethod
    def find_all(self, filters: SessionsFilters | None = None) -> list[Session]: ...

    @abc.abstractmethod
    def find_last(self) -> Session | None: ...

    @abc.abstractmethod
    def lock(self) -> AbstractContextManager[None]:
        """Scoped critical section around a check-then-write sequence."""

    def find_all_projects(self) -> list[str]:
        """Distinct project names in first-seen order (loads every session)."""
        projects: list[str] = []
        for session in self.find_all(None):
            if session.project not in projects:
                projects.append(session.project)
        return projects

    def find_all_project_tags(self, project: str) -> list[str]:
        """Distinct tags used by one project, in first-seen order."""
        tags: list[str] = []
        for session in self.find_all(SessionsFilters(project=project)):
            for tag in session.tags:
                if tag not in tags:
                    tags.append(tag)
        return tags


class FileSystemSessionStore(SessionStore):
    def __init__(
        self,
        root: Path,
        invalid_entry_policy: InvalidEntryPolicy = InvalidEntryPolicy.FAIL,
    ) -> None:
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(
                f"Cannot create session directory {self.root}: {exc}"
            ) from exc
        self.index = DirectoryIndex(self.root, invalid_entry_policy)

    def __repr__(self) -> str:
        return f"FileSystemSessionStore(root={str(self.root)!r})"

    # ------------------------------------------------------------------
    # File I/O
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> Session:
        try:
            data = safe_read_json(path)
        except OSError as exc:
            raise ReadError(f"Error while reading file {path.name}: {exc}") from exc
        except (json.JSONDecodeError, ValueError) as exc:
            raise ReadError(f"Invalid session data in file {path.name}: {exc}") from exc
        try:
            return Session.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ReadError(f"Invalid session data in file {path.name}: {exc}") from exc

    def _find_entry(self, session_id: str) -> Path | None:
        for entry in self.index.list_entries():
            record = self.index.decode(entry)
            if record is not None and record.id == session_id:
                return entry
        return None

    # ------------------------------------------------------------------
    # SessionStore
    # ------------------------------------------------------------------

    def save(self, session: Session) -> None:
        """Write the session, silently replacing a file with the same name."""
        validate_session_id(session.id)
        if session.start_time.timestamp() < 0:
            raise ValueError(f"Start time before the Unix epoch: {session.start_time}")
        path = self.root / encode_filename(session)
        try:
            atomic_write_json(path, session.to_dict())
        except OSError as exc:
            raise WriteError(f"Error while writing file {path.name}: {exc}") from exc

    def find_by_id(self, session_id: str) -> Session | None:
        entry = self._find_entry(session_id)
        if entry is None:
            return None
        return self._read(entry)

    def delete(self, session_id: str) -> None:
        entry = self._find_entry(session_id)
        if entry is None:
            raise SessionNotFoundError(session_id)
        try:
            entry.unlink()
        except OSError as exc:
            raise WriteError(f"Error while deleting file {entry.name}: {exc}") from exc
        logger.info("Deleted session %s", session_id)

    def find_all(self, filters: SessionsFilters | None = None) -> list[Session]:
        """Sessions matching the filters, oldest first."""
        entries = self.index.list_entries()
        time_range = TimeRange()
        if filters is not None:
            if filters.project:
                entries = self.index.filter_by_project(entries, filters.project)
            if filters.time_range is not None:
                time_range = filters.time_range
        # Unfiltered listings are decoded too so invalid names follow the policy.
        entries = self.index.filter_by_time_range(entries, time_range)

        sessions = [self._read(entry) for entry in entries]
        sessions.sort(key=lambda s: s.start_time)
        return sessions

    def find_last(self) -> Session | None:
        """Most recently started session. Reads a single file."""
        decoded = self.index.decode_entries(self.index.list_entries())
        if not decoded:
            return None
        entry, _ = max(decoded, key=lambda item: (item[1].start_time, item[0].name))
        return self._read(entry)

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Exclusive advisory lock on the storage root for check-then-write."""
        lock_path = self.root / LOCK_FILENAME
        try:
            lock_fd = open(lock_path, "w")
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot open lock file {lock_path}: {exc}") from exc
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(lock_fd, fcntl.LOCK_UN)
            lock_fd.close()


def open_store(settings: config.FlowSettings | None = None) -> FileSystemSessionStore:
    """Build the store on the configured sessions directory."""
    if settings is None:
        settings = config.load_settings()
    return FileSystemSessionStore(config.SESSIONS_DIR, settings.invalid_entry_policy)
