from uservault.core.abstract_factory import TypeAbstractFactory
from uservault.core.exceptions import (
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
)
from uservault.core.logging import configure_logging, mask_token, quiet_library_loggers

__all__ = [
    "TypeAbstractFactory",
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
    "mask_token",
    "quiet_library_loggers",
]
