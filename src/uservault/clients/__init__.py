from uservault.clients.models import AuthResult, EmailDispatch, RegistrationProfile
from uservault.clients.social import SocialEndpoints
from uservault.clients.uservault import UserVaultClient

__all__ = [
    "AuthResult",
    "EmailDispatch",
    "RegistrationProfile",
    "SocialEndpoints",
    "UserVaultClient",
]
