"""Bearer-token verification and admin checks."""

from dataclasses import dataclass
from typing import Protocol

from photo_unlock.domain.users import AuthenticatedUser, Profile
from photo_unlock.errors import AuthenticationError

BEARER_PREFIX = "Bearer "


class AuthClient(Protocol):
    """Interface for the external authentication service."""

    def get_user(self, access_token: str) -> AuthenticatedUser | None:
        """Return the user for a valid token, or None."""


class ProfileRepository(Protocol):
    """Persistence interface for user profiles."""

    def get_profile(self, user_id: str) -> Profile | None:
        """Return a user's profile, if present."""


@dataclass
class AuthService:
    """Resolve callers from their Authorization header."""

    auth_client: AuthClient
    profile_repository: ProfileRepository

    def authenticate(self, authorization: str | None) -> AuthenticatedUser:
        """Return the user behind a bearer token or raise."""
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise AuthenticationError("Missing or invalid authorization header")
        token = authorization[len(BEARER_PREFIX) :].strip()
        if not token:
            raise AuthenticationError("Missing or invalid authorization header")
        user = self.auth_client.get_user(token)
        if user is None:
            raise AuthenticationError()
        return user

    def is_admin(self, user_id: str) -> bool:
        """Return true when the user's profile grants admin rights."""
        profile = self.profile_repository.get_profile(user_id)
        return profile is not None and profile.is_admin
