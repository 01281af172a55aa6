from typing import Any, Literal
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, field_validator

from uservault.auth.identity import Identity


@dataclass(frozen=True)
class AuthResult:
    """Outcome of login, registration or password reset."""
    token: str
    identity: Identity
    user: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class EmailDispatch:
    """
    Result of a send-verification / send-reset email request.
    `confirmed` is False when the server neither redirected nor reported
    errors and the email is only presumed sent.
    """
    token: str
    email: str
    message: str
    confirmed: bool = True


class RegistrationProfile(BaseModel):
    """Profile data that completes a registration, sent with the flow token."""
    token: str = Field(min_length=1)
    username: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    birth_day: int = Field(ge=1, le=31)
    birth_month: int = Field(ge=1, le=12)
    birth_year: int = Field(ge=1900)
    gender: Literal["male", "female", "not-specified"] = "not-specified"
    country: str = Field(min_length=1)
    city: str | None = None

    @field_validator("username")
    @classmethod
    def strip_at(cls, v: str) -> str:
        return v.strip().lstrip("@")

    def to_query(self, device_name: str) -> dict[str, Any]:
        """Query parameters for the verify call, in the order the server documents; empty optionals are dropped."""
        params = self.model_dump()
        params["device_name"] = device_name
        return {k: v for k, v in params.items() if v not in (None, "")}
