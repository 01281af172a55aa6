from dataclasses import dataclass
from typing import ClassVar, Union


PENDING_EMAIL_VERIFICATION = "pending_email_verification"


@dataclass(frozen=True)
class Success:
    """The component redirected to its success page; the path carries the flow token."""
    verification_token: str


@dataclass(frozen=True)
class ValidationFailed:
    message: str
    field: str | None = None


@dataclass(frozen=True)
class SessionExpiredOutcome:
    message: str = "Session expired. Please try again."


@dataclass(frozen=True)
class Unrecognized:
    """
    A 2xx response with neither a success redirect nor errors. The email is
    presumed sent; nothing in the response proves it.
    """
    token: str = PENDING_EMAIL_VERIFICATION
    optimistic: ClassVar[bool] = True


FormOutcome = Union[Success, ValidationFailed, SessionExpiredOutcome, Unrecognized]
