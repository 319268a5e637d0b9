"""Supabase implementation for user profiles."""

from dataclasses import dataclass

from supabase import Client

from photo_unlock.domain.users import Profile
from photo_unlock.services.auth import ProfileRepository


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase-backed profile lookups."""

    client: Client

    def get_profile(self, user_id: str) -> Profile | None:
        """Return a profile by user id, if present."""
        response = (
            self.client.table("profiles")
            .select("id, display_name, username, is_admin, user_type")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Profile(
            id=str(row["id"]),
            display_name=row.get("display_name"),
            username=row.get("username"),
            is_admin=row.get("is_admin") is True or row.get("user_type") == "admin",
        )
