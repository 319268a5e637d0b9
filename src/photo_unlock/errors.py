"""Application error taxonomy.

Every error carries the HTTP status it maps to and a short ``kind`` used in
logs. The API layer turns these into ``{"success": false, "error": ...}``
responses; services raise them and never format responses themselves.
"""

from typing import ClassVar


class AppError(Exception):
    """Base class for errors raised by the application."""

    status_code: ClassVar[int] = 500
    kind: ClassVar[str] = "internal_error"

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed or out-of-range client input."""

    status_code = 400
    kind = "validation_error"


class AuthenticationError(AppError):
    """Missing, invalid or expired bearer token."""

    status_code = 401
    kind = "authentication_error"

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class GatewayAuthenticationError(AppError):
    """The payment gateway refused to issue an access token."""

    status_code = 500
    kind = "authentication_failed"

    def __init__(self, message: str = "Payment gateway authentication failed") -> None:
        super().__init__(message)


class AuthorizationError(AppError):
    """Caller is authenticated but does not own the resource."""

    status_code = 403
    kind = "authorization_error"


class NotFoundError(AppError):
    """Requested resource does not exist."""

    status_code = 404
    kind = "not_found"

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class DependencyError(AppError):
    """A call to the data store, the CDN or the payment gateway failed."""

    status_code = 500
    kind = "dependency_error"


class DataInconsistencyError(AppError):
    """Stored state does not match what a completed payment expects."""

    status_code = 500
    kind = "data_inconsistency"


class RateLimitExceededError(AppError):
    """Client exceeded the request budget for a route group."""

    status_code = 429
    kind = "rate_limit_exceeded"

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        self.retry_after = retry_after
