"""Request dependencies shared by the routers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Header, Request

from photo_unlock.domain.users import AuthenticatedUser  # noqa: TC001

if TYPE_CHECKING:
    from photo_unlock.containers import AppContainer


def get_container(request: Request) -> AppContainer:
    """Return the dependency container attached to the app."""
    return request.app.state.container


def client_key(request: Request) -> str:
    """Return the rate-limit key for the calling client."""
    return request.client.host if request.client else "unknown"


def require_user(
    request: Request, authorization: str | None = Header(default=None)
) -> AuthenticatedUser:
    """Resolve the caller from the bearer token or raise 401."""
    return get_container(request).auth_service.authenticate(authorization)


async def general_rate_limit(request: Request) -> None:
    """Apply the general request budget."""
    get_container(request).rate_limits.general.hit(client_key(request))


async def payment_rate_limit(request: Request) -> None:
    """Apply the payment initiation budget."""
    get_container(request).rate_limits.payments.hit(client_key(request))


async def upload_rate_limit(request: Request) -> None:
    """Apply the image upload budget."""
    get_container(request).rate_limits.uploads.hit(client_key(request))
