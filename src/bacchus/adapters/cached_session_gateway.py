"""Session gateway writing the local cache first and the remote store second."""

import logging
from dataclasses import dataclass
from uuid import UUID

from bacchus.adapters.local_session_cache import LocalSessionCache
from bacchus.domain.models import Session
from bacchus.services.persistence import PersistenceGateway

logger = logging.getLogger(__name__)


@dataclass
class CachedSessionGateway(PersistenceGateway):
    """Local cache is authoritative; the remote store is best effort.

    Local failures propagate to the caller. Remote failures are logged and
    dropped once the local write has succeeded.
    """

    local: LocalSessionCache
    remote: PersistenceGateway | None = None

    def save(self, session: Session, is_active: bool) -> None:
        self.local.save(session, is_active)
        if self.remote is None:
            return
        try:
            self.remote.save(session, is_active)
        except Exception:
            logger.exception(
                "Remote session sync failed", extra={"session_id": str(session.id)}
            )

    def load_active(self, profile_id: UUID) -> Session | None:
        local = self.local.load_active(profile_id)
        if local is not None or self.remote is None:
            return local
        remote = self._remote_call("load_active", profile_id)
        if remote is not None:
            self.local.save(remote, is_active=True)
        return remote

    def load_history(self, profile_id: UUID) -> list[Session]:
        local = self.local.load_history(profile_id)
        if self.remote is None:
            return local
        remote = self._remote_call("load_history", profile_id) or []
        known = {session.id for session in local}
        missing = [session for session in remote if session.id not in known]
        for session in missing:
            self.local.save(session, is_active=False)
        if not missing:
            return local
        return self.local.load_history(profile_id)

    def load(self, session_id: UUID) -> Session | None:
        local = self.local.load(session_id)
        if local is not None or self.remote is None:
            return local
        try:
            return self.remote.load(session_id)
        except Exception:
            logger.exception(
                "Remote session load failed", extra={"session_id": str(session_id)}
            )
            return None

    def delete(self, session_id: UUID) -> None:
        self.local.delete(session_id)
        if self.remote is None:
            return
        try:
            self.remote.delete(session_id)
        except Exception:
            logger.exception(
                "Remote session delete failed", extra={"session_id": str(session_id)}
            )

    def _remote_call(
        self, name: str, profile_id: UUID
    ) -> Session | list[Session] | None:
        try:
            return getattr(self.remote, name)(profile_id)
        except Exception:
            logger.exception(
                "Remote session load failed",
                extra={"profile_id": str(profile_id), "call": name},
            )
            return None
