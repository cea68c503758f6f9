"""Error codes and exception classes for the session store."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Session


class ErrorCode(StrEnum):
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INVALID_FILENAME = "INVALID_FILENAME"
    READ_ERROR = "READ_ERROR"
    WRITE_ERROR = "WRITE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    SESSION_ALREADY_STARTED = "SESSION_ALREADY_STARTED"
    NO_ACTIVE_SESSION = "NO_ACTIVE_SESSION"


class FlowError(Exception):
    """Base class for all store and lifecycle errors."""

    code: ErrorCode

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StorageUnavailableError(FlowError):
    code = ErrorCode.STORAGE_UNAVAILABLE


class InvalidFilenameError(FlowError):
    code = ErrorCode.INVALID_FILENAME

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"Invalid session file name '{filename}': {reason}")
        self.filename = filename


class ReadError(FlowError):
    code = ErrorCode.READ_ERROR


class WriteError(FlowError):
    code = ErrorCode.WRITE_ERROR


class SessionNotFoundError(FlowError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session with id {session_id} not found")
        self.session_id = session_id


class SessionAlreadyStartedError(FlowError):
    code = ErrorCode.SESSION_ALREADY_STARTED

    def __init__(self, active: Session) -> None:
        super().__init__(
            f"A session is already running for project '{active.project}'"
        )
        self.active = active


class NoActiveSessionError(FlowError):
    code = ErrorCode.NO_ACTIVE_SESSION

    def __init__(self) -> None:
        super().__init__("No session is currently running")
