"""Domain models for users."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthenticatedUser:
    """The user behind a verified bearer token."""

    id: str
    email: str | None = None


@dataclass(frozen=True)
class Profile:
    """Public profile of a user."""

    id: str
    display_name: str | None
    username: str | None
    is_admin: bool = False

    @property
    def name(self) -> str:
        """Return the best available display name."""
        return self.display_name or self.username or "Unknown"
