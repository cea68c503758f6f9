"""Session filename codec.

A session file is named ``<id>-<sanitizedProject>-<unixSeconds>.json``.
The name carries enough metadata to filter sessions by id, project and
start time without opening the file. The project part is lossy: only
ASCII letters and digits survive, so it can be compared against another
sanitized name but never shown to a user.

A ``-`` inside the id breaks the three-way split; generated ids are hex
and ``validate_session_id`` rejects the delimiter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from .errors import InvalidFilenameError
from .models import Session

DELIMITER = "-"
SUFFIX = ".json"

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]+")
_EPOCH_RE = re.compile(r"[0-9]+")


def sanitize_project(project: str) -> str:
    return _NON_ALNUM_RE.sub("", project)


@dataclass(frozen=True)
class SessionFilename:
    id: str
    project: str
    start_time: datetime

    @property
    def sanitized_project(self) -> str:
        return sanitize_project(self.project)

    @property
    def epoch_seconds(self) -> int:
        return int(self.start_time.timestamp())

    def to_filename(self) -> str:
        return (
            f"{self.id}{DELIMITER}{self.sanitized_project}"
            f"{DELIMITER}{self.epoch_seconds}{SUFFIX}"
        )

    def __str__(self) -> str:
        return self.to_filename()

    @classmethod
    def parse(cls, filename: str) -> SessionFilename:
        """Decode a filename. The returned project is the sanitized form."""
        parts = filename.split(DELIMITER)
        if len(parts) != 3:
            raise InvalidFilenameError(
                filename, f"expected 3 '{DELIMITER}'-separated parts, got {len(parts)}"
            )
        session_id, project, raw_time = parts
        raw_time = raw_time.removesuffix(SUFFIX)
        if not _EPOCH_RE.fullmatch(raw_time):
            raise InvalidFilenameError(filename, f"bad timestamp '{raw_time}'")
        seconds = int(raw_time)
        try:
            start_time = datetime.fromtimestamp(seconds, UTC)
        except (OverflowError, OSError, ValueError) as exc:
            raise InvalidFilenameError(filename, f"timestamp out of range: {seconds}") from exc
        return cls(id=session_id, project=project, start_time=start_time)


def encode_filename(session: Session) -> str:
    return SessionFilename(
        id=session.id,
        project=session.project,
        start_time=session.start_time,
    ).to_filename()


def decode_filename(filename: str) -> SessionFilename:
    return SessionFilename.parse(filename)
