from __future__ import annotations

from typing import Any


class UserVaultError(Exception):
    """Base class for every failure raised by the uservault client."""

    pass


class NetworkFailure(UserVaultError):
    """
    Raised when no HTTP response was received at all (DNS failure, refused
    connection, reset, timeout). Timeouts and connection errors are marked
    transient and are retried by the FlightController.
    """

    def __init__(self, message: str, transient: bool = True) -> None:
        super().__init__(message)
        self.transient = transient


class ApiError(UserVaultError):
    """Raised for any non-2xx response that is not handled elsewhere."""

    def __init__(
        self,
        status: int,
        message: str | None = None,
        *,
        endpoint: str | None = None,
        body_text: str | None = None,
        content_type: str = "",
        retry_after: float | None = None,
    ) -> None:
        self.status = status
        self.message = message or f"API error: {status}"
        self.endpoint = endpoint
        self.body_text = body_text
        self.content_type = content_type
        self.retry_after = retry_after
        super().__init__(self.message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401


class RateLimited(UserVaultError):
    """Raised when 429 responses persist after every retry attempt."""

    def __init__(self, message: str, attempts: int, last_delay: float) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_delay = last_delay


class NotAuthenticated(UserVaultError):
    """Raised client-side, before dispatch, when a call needs a bearer token and none is held."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class ExtractionFailure(UserVaultError):
    """Raised when a form page does not yield a usable CSRF token or component snapshot."""

    def __init__(self, message: str, url: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.details = details or {}


class ValidationError(UserVaultError):
    """Server-side field validation error reported by a form component."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class SessionExpired(UserVaultError):
    """The form session or CSRF token went stale between page fetch and submission."""

    def __init__(self, message: str = "Session expired. Please try again.") -> None:
        super().__init__(message)


class IdentityResolutionError(UserVaultError):
    """Raised when no endpoint in the identity cascade yields a username."""

    pass


class FlowStateError(UserVaultError):
    """Raised when a registration or password-reset flow step is called out of order."""

    def __init__(self, message: str, state: str | None = None) -> None:
        super().__init__(message)
        self.state = state
