"""Supabase-backed session storage."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from bacchus.adapters.session_rows import session_from_row, session_to_row
from bacchus.domain.models import Session
from bacchus.services.persistence import PersistenceGateway

_COLUMNS = "id, profile_id, is_active, updated_at, data"


@dataclass
class SupabaseSessionGateway(PersistenceGateway):
    """Supabase implementation for drinking sessions."""

    client: Client
    table: str = "sessions"

    def save(self, session: Session, is_active: bool) -> None:
        """Upsert a session row."""
        self.client.table(self.table).upsert(
            session_to_row(session, is_active), on_conflict="id"
        ).execute()

    def load_active(self, profile_id: UUID) -> Session | None:
        """Return the most recently updated active session for a profile."""
        response = (
            self.client.table(self.table)
            .select(_COLUMNS)
            .eq("profile_id", str(profile_id))
            .eq("is_active", True)
            .order("updated_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return session_from_row(response.data[0])

    def load_history(self, profile_id: UUID) -> list[Session]:
        """Return ended sessions for a profile, newest first."""
        response = (
            self.client.table(self.table)
            .select(_COLUMNS)
            .eq("profile_id", str(profile_id))
            .eq("is_active", False)
            .order("updated_at", desc=True)
            .execute()
        )
        sessions = [session_from_row(row) for row in response.data or []]
        return [session for session in sessions if session is not None]

    def load(self, session_id: UUID) -> Session | None:
        """Return a session row by id, active or ended."""
        response = (
            self.client.table(self.table)
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return session_from_row(response.data[0])

    def delete(self, session_id: UUID) -> None:
        """Delete a session row."""
        self.client.table(self.table).delete().eq("id", str(session_id)).execute()
