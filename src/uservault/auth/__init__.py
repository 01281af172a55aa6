from uservault.auth.session import SessionSnapshot, SessionState
from uservault.auth.store import JsonFileSessionStore, MemorySessionStore, SessionStore
from uservault.auth.identity import Identity, IdentityResolver, locate_user_record

__all__ = [
    "SessionSnapshot",
    "SessionState",
    "SessionStore",
    "MemorySessionStore",
    "JsonFileSessionStore",
    "Identity",
    "IdentityResolver",
    "locate_user_record",
]
