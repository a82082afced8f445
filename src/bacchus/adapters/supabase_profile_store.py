"""Supabase repository for profile attributes."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from bacchus.adapters.session_rows import profile_from_row
from bacchus.domain.models import Profile
from bacchus.services.persistence import ProfileStore


@dataclass
class SupabaseProfileStore(ProfileStore):
    """Read-only Supabase implementation for profiles."""

    client: Client

    def get(self, profile_id: UUID) -> Profile | None:
        """Return the profile for an id, if present."""
        response = (
            self.client.table("profiles")
            .select("id, gender, weight_kg, age, height, drinking_frequency")
            .eq("id", str(profile_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return profile_from_row(response.data[0])
