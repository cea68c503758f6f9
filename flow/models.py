"""Flow data models — pure stdlib, no external dependencies."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class InvalidEntryPolicy(StrEnum):
    """What a directory listing does with a file whose name cannot be decoded."""

    FAIL = "fail"
    SKIP = "skip"


def as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat()


def _parse_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return as_aware(datetime.fromisoformat(value))


def _parse_tags(value: object) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise TypeError(f"tags must be a list of strings, got {value!r}")
    return list(value)


@dataclass
class Session:
    """One tracked span of work — stored as a JSON file in sessions/."""

    id: str
    start_time: datetime
    project: str
    tags: list[str] = field(default_factory=list)
    end_time: datetime | None = None

    def __post_init__(self) -> None:
        self.start_time = as_aware(self.start_time)
        if self.end_time is not None:
            self.end_time = as_aware(self.end_time)

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict:
        """On-disk representation. Times are truncated to whole seconds."""
        return {
            "id": self.id,
            "startTime": _format_time(self.start_time),
            "endTime": _format_time(self.end_time),
            "project": self.project,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        return cls(
            id=data["id"],
            start_time=_parse_time(data["startTime"]),
            project=data["project"],
            tags=_parse_tags(data.get("tags")),
            end_time=_parse_time(data.get("endTime")),
        )


@dataclass
class TimeRange:
    """Optional since/until bounds. Both bounds are exclusive."""

    since: datetime | None = None
    until: datetime | None = None

    def __post_init__(self) -> None:
        if self.since is not None:
            self.since = as_aware(self.since)
        if self.until is not None:
            self.until = as_aware(self.until)

    def is_zero(self) -> bool:
        return self.since is None and self.until is None

    def just_since(self) -> bool:
        return self.since is not None and self.until is None

    def just_until(self) -> bool:
        return self.since is None and self.until is not None

    def since_and_until(self) -> bool:
        return self.since is not None and self.until is not None

    def contains(self, moment: datetime) -> bool:
        moment = as_aware(moment)
        if self.just_since():
            return moment > self.since
        if self.just_until():
            return moment < self.until
        if self.since_and_until():
            return self.since < moment < self.until
        return True


@dataclass
class SessionsFilters:
    project: str | None = None
    time_range: TimeRange | None = None


def generate_session_id() -> str:
    """Generate a unique session ID: 32 hex chars, never containing '-'."""
    return uuid.uuid4().hex
