from uservault.auth import (
    Identity,
    JsonFileSessionStore,
    MemorySessionStore,
    SessionSnapshot,
    SessionState,
    SessionStore,
)
from uservault.clients import AuthResult, EmailDispatch, RegistrationProfile, UserVaultClient
from uservault.config import ClientConfig, ConfigLoader
from uservault.core import (
    ApiError,
    ExtractionFailure,
    FlowStateError,
    IdentityResolutionError,
    NetworkFailure,
    NotAuthenticated,
    RateLimited,
    SessionExpired,
    UserVaultError,
    ValidationError,
    configure_logging,
)
from uservault.livewire import (
    FlowState,
    PasswordResetFlow,
    RegistrationFlow,
    SessionExpiredOutcome,
    Success,
    Unrecognized,
    ValidationFailed,
)

__version__ = "0.1.0"

__all__ = [
    "Identity",
    "JsonFileSessionStore",
    "MemorySessionStore",
    "SessionSnapshot",
    "SessionState",
    "SessionStore",
    "AuthResult",
    "EmailDispatch",
    "RegistrationProfile",
    "UserVaultClient",
    "ClientConfig",
    "ConfigLoader",
    "ApiError",
    "ExtractionFailure",
    "FlowStateError",
    "IdentityResolutionError",
    "NetworkFailure",
    "NotAuthenticated",
    "RateLimited",
    "SessionExpired",
    "UserVaultError",
    "ValidationError",
    "configure_logging",
    "FlowState",
    "PasswordResetFlow",
    "RegistrationFlow",
    "SessionExpiredOutcome",
    "Success",
    "Unrecognized",
    "ValidationFailed",
]
