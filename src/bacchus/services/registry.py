"""In-memory session registry: one active session per profile plus history."""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from uuid import UUID

from bacchus.domain.models import Session

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_HOURS = 12.0


class SessionRegistry:
    """Owns every session known to the process.

    Sessions are immutable values; updates replace the stored value so a
    reader always sees a consistent ledger and derived fields. The registry
    only guards its own containers; callers serialize read-modify-write
    sequences per profile.
    """

    def __init__(self) -> None:
        self._active: dict[UUID, Session] = {}
        self._history: list[Session] = []
        self._lock = threading.RLock()

    def start_session(self, profile_id: UUID, now: datetime) -> Session:
        """Return the active session for a profile, creating one if needed."""
        with self._lock:
            existing = self._active.get(profile_id)
            if existing is not None:
                logger.info(
                    "Reusing active session",
                    extra={
                        "profile_id": str(profile_id),
                        "session_id": str(existing.id),
                    },
                )
                return existing
            session = Session(profile_id=profile_id, started_at=now, updated_at=now)
            self._active[profile_id] = session
            logger.info(
                "Started session",
                extra={"profile_id": str(profile_id), "session_id": str(session.id)},
            )
            return session

    def get_active(self, profile_id: UUID) -> Session | None:
        """Return the active session for a profile, if any."""
        with self._lock:
            return self._active.get(profile_id)

    def get_history(self, profile_id: UUID) -> list[Session]:
        """Return ended sessions for a profile, newest first."""
        with self._lock:
            sessions = [s for s in self._history if s.profile_id == profile_id]
        return sorted(sessions, key=_history_key, reverse=True)

    def find(self, session_id: UUID) -> Session | None:
        """Look a session up by id in the active slots and history."""
        with self._lock:
            for session in self._active.values():
                if session.id == session_id:
                    return session
            for session in self._history:
                if session.id == session_id:
                    return session
        return None

    def replace_active(self, session: Session) -> Session:
        """Store an updated version of the profile's active session."""
        with self._lock:
            current = self._active.get(session.profile_id)
            if current is None or current.id != session.id:
                raise KeyError(f"Session {session.id} is not active")
            self._active[session.profile_id] = session
            return session

    def end_session(self, profile_id: UUID, now: datetime) -> Session | None:
        """Move the active session to history, freezing its last BAC."""
        with self._lock:
            session = self._active.pop(profile_id, None)
            if session is None:
                return None
            ended = replace(session, active=False, ended_at=now, updated_at=now)
            self._history.append(ended)
        logger.info(
            "Ended session",
            extra={
                "profile_id": str(profile_id),
                "session_id": str(ended.id),
                "final_bac": ended.current_bac,
            },
        )
        return ended

    def delete_session(self, session_id: UUID) -> bool:
        """Remove a session from the active slots or history."""
        with self._lock:
            for profile_id, session in list(self._active.items()):
                if session.id == session_id:
                    del self._active[profile_id]
                    return True
            for index, session in enumerate(self._history):
                if session.id == session_id:
                    del self._history[index]
                    return True
        return False

    def stale_profile_ids(
        self, now: datetime, threshold_hours: float = DEFAULT_INACTIVITY_HOURS
    ) -> list[UUID]:
        """Profiles whose active session has been idle past the threshold."""
        cutoff = now - timedelta(hours=threshold_hours)
        with self._lock:
            return [
                profile_id
                for profile_id, session in self._active.items()
                if session.last_event_at < cutoff
            ]

    def auto_terminate_stale(
        self,
        now: datetime,
        threshold_hours: float = DEFAULT_INACTIVITY_HOURS,
        profile_ids: list[UUID] | None = None,
    ) -> list[Session]:
        """End every stale active session, optionally limited to some profiles."""
        with self._lock:
            stale = self.stale_profile_ids(now, threshold_hours)
            if profile_ids is not None:
                stale = [pid for pid in stale if pid in profile_ids]
            ended = [self.end_session(profile_id, now) for profile_id in stale]
        return [session for session in ended if session is not None]

    def restore(self, active: Session | None, history: list[Session]) -> None:
        """Load persisted sessions without breaking the one-active rule."""
        with self._lock:
            known = {s.id for s in self._history}
            known.update(s.id for s in self._active.values())
            for session in history:
                if session.id in known:
                    continue
                if session.active:
                    session = replace(session, active=False)
                self._history.append(session)
                known.add(session.id)
            if active is None or active.id in known:
                return
            if active.profile_id in self._active:
                logger.warning(
                    "Persisted active session conflicts with in-memory one",
                    extra={
                        "profile_id": str(active.profile_id),
                        "session_id": str(active.id),
                    },
                )
                self._history.append(
                    replace(active, active=False, ended_at=active.last_event_at)
                )
                return
            self._active[active.profile_id] = replace(active, active=True)


def _history_key(session: Session) -> datetime:
    return session.ended_at or session.started_at
