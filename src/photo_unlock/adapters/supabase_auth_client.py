"""Bearer-token verification through Supabase Auth."""

import logging
from dataclasses import dataclass

from supabase import Client

from photo_unlock.domain.users import AuthenticatedUser
from photo_unlock.services.auth import AuthClient

logger = logging.getLogger(__name__)


@dataclass
class SupabaseAuthClient(AuthClient):
    """Resolve access tokens to users with the Supabase auth API."""

    client: Client

    def get_user(self, access_token: str) -> AuthenticatedUser | None:
        """Return the token's user, or None when the token is rejected."""
        try:
            response = self.client.auth.get_user(access_token)
        except Exception:
            logger.warning("Token verification failed", exc_info=True)
            return None
        user = getattr(response, "user", None) if response is not None else None
        if user is None:
            return None
        return AuthenticatedUser(id=str(user.id), email=getattr(user, "email", None))
