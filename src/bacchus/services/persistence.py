"""Collaborator interfaces and fire-and-forget persistence dispatch."""

import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from bacchus.domain.models import Profile, Session

logger = logging.getLogger(__name__)


class ProfileStore(Protocol):
    """Read-only access to profile attributes."""

    def get(self, profile_id: UUID) -> Profile | None:
        """Return a profile by id, if present."""


class PersistenceGateway(Protocol):
    """Durable storage for sessions."""

    def save(self, session: Session, is_active: bool) -> None:
        """Persist a session, raising on failure."""

    def load_active(self, profile_id: UUID) -> Session | None:
        """Return the stored active session for a profile, if present."""

    def load_history(self, profile_id: UUID) -> list[Session]:
        """Return the stored ended sessions for a profile."""

    def load(self, session_id: UUID) -> Session | None:
        """Return a stored session by id, active or ended."""

    def delete(self, session_id: UUID) -> None:
        """Remove a stored session."""


@dataclass(frozen=True)
class PersistenceOutcome:
    """Result of one dispatched persistence call."""

    session_id: UUID
    action: str
    ok: bool
    finished_at: datetime
    error: str | None = None


@dataclass(frozen=True)
class _Call:
    future: Future[PersistenceOutcome]
    session_id: UUID
    action: str
    call: Callable[[], None]


@dataclass
class PersistenceDispatcher:
    """Sends persistence calls off the mutation path.

    With an executor, calls for one profile run one at a time in submission
    order while different profiles proceed in parallel. Without one each
    call runs inline and the returned future is already resolved. Failures
    never propagate: they are logged and reported through the future and
    ``recent_outcomes``.
    """

    gateway: PersistenceGateway
    executor: Executor | None = None
    history_size: int = 100
    _outcomes: deque[PersistenceOutcome] = field(init=False, default_factory=deque)
    _pending: dict[UUID, deque[_Call]] = field(init=False, default_factory=dict)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)

    def __post_init__(self) -> None:
        self._outcomes = deque(maxlen=self.history_size)

    def submit_save(
        self, session: Session, is_active: bool
    ) -> Future[PersistenceOutcome]:
        """Persist a session in the background."""
        return self._submit(
            session.profile_id,
            session.id,
            "save",
            lambda: self.gateway.save(session, is_active),
        )

    def submit_delete(
        self, session_id: UUID, profile_id: UUID | None = None
    ) -> Future[PersistenceOutcome]:
        """Delete a stored session in the background.

        Without ``profile_id`` the delete is ordered only against other calls
        keyed by the session id.
        """
        return self._submit(
            profile_id or session_id,
            session_id,
            "delete",
            lambda: self.gateway.delete(session_id),
        )

    @property
    def recent_outcomes(self) -> list[PersistenceOutcome]:
        """Most recent outcomes, oldest first."""
        with self._lock:
            return list(self._outcomes)

    @property
    def failures(self) -> list[PersistenceOutcome]:
        """Recent outcomes that failed."""
        return [outcome for outcome in self.recent_outcomes if not outcome.ok]

    def _submit(
        self, key: UUID, session_id: UUID, action: str, call: Callable[[], None]
    ) -> Future[PersistenceOutcome]:
        future: Future[PersistenceOutcome] = Future()
        if self.executor is None:
            future.set_result(self._run(session_id, action, call))
            return future
        item = _Call(future, session_id, action, call)
        with self._lock:
            queue = self._pending.get(key)
            if queue is not None:
                queue.append(item)
                return future
            self._pending[key] = deque([item])
        self.executor.submit(self._drain, key)
        return future

    def _drain(self, key: UUID) -> None:
        while True:
            with self._lock:
                queue = self._pending[key]
                if not queue:
                    del self._pending[key]
                    return
                item = queue.popleft()
            item.future.set_result(self._run(item.session_id, item.action, item.call))

    def _run(
        self, session_id: UUID, action: str, call: Callable[[], None]
    ) -> PersistenceOutcome:
        try:
            call()
        except Exception as exc:
            logger.exception(
                "Session persistence failed",
                extra={"session_id": str(session_id), "action": action},
            )
            outcome = PersistenceOutcome(
                session_id=session_id,
                action=action,
                ok=False,
                finished_at=datetime.now(tz=UTC),
                error=f"{type(exc).__name__}: {exc}",
            )
        else:
            outcome = PersistenceOutcome(
                session_id=session_id,
                action=action,
                ok=True,
                finished_at=datetime.now(tz=UTC),
            )
        with self._lock:
            self._outcomes.append(outcome)
        return outcome
