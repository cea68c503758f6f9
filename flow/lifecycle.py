"""Session lifecycle — start, stop and abort with at most one active session.

The active session is derived, not stored: it is the most recently
started session if it has no end time. Every check-then-write sequence
runs inside ``store.lock()`` so two invocations cannot both observe
"nothing running" and both write a session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .errors import NoActiveSessionError, SessionAlreadyStartedError
from .models import Session, as_aware, generate_session_id
from .store import SessionStore
from .validation import validate_project_name, validate_tags

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class StartSessionCommand:
    project: str
    tags: list[str] = field(default_factory=list)


class SessionLifecycle:
    def __init__(
        self,
        store: SessionStore,
        clock: Callable[[], datetime] | None = None,
        id_generator: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or _utc_now
        self.id_generator = id_generator or generate_session_id

    def _now(self) -> datetime:
        return as_aware(self.clock().replace(microsecond=0))

    def _active(self) -> Session | None:
        last = self.store.find_last()
        if last is not None and last.is_active:
            return last
        return None

    def status(self) -> Session | None:
        """Return the running session, or None."""
        return self._active()

    def start(self, command: StartSessionCommand) -> Session:
        """Start a new session. Fails if another one is still running."""
        project = validate_project_name(command.project)
        tags = validate_tags(command.tags)

        with self.store.lock():
            active = self._active()
            if active is not None:
                raise SessionAlreadyStartedError(active)

            session = Session(
                id=self.id_generator(),
                start_time=self._now(),
                project=project,
                tags=tags,
            )
            self.store.save(session)

        logger.info("Started session %s for project %s", session.id, session.project)
        return session

    def stop(self) -> Session:
        """Record an end time on the running session."""
        with self.store.lock():
            session = self._active()
            if session is None:
                raise NoActiveSessionError()
            # Clock skew must not produce a negative duration.
            session.end_time = max(self._now(), session.start_time)
            self.store.save(session)

        logger.info("Stopped session %s", session.id)
        return session

    def abort(self) -> Session:
        """Discard the running session entirely."""
        with self.store.lock():
            session = self._active()
            if session is None:
                raise NoActiveSessionError()
            self.store.delete(session.id)

        logger.info("Aborted session %s", session.id)
        return session
