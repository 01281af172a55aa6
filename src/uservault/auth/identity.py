import logging
from dataclasses import dataclass, field
from typing import Any

from uservault.auth.session import SessionState
from uservault.core.exceptions import (
    ApiError,
    IdentityResolutionError,
    NetworkFailure,
    NotAuthenticated,
)
from uservault.request_execution.flight import FlightController
from uservault.utils.common import coerce_positive_int, dig, first_present, non_empty_str


PROFILE_ENDPOINT = "profile/profile"
BOOTSTRAP_ENDPOINT = "bootstrap/bootstrap"
AUTH_USER_ENDPOINT = "auth/user"

# Where a user record may sit inside a response, in probing order.
RECORD_PATHS = ("", "data", "user", "profile", "data.user", "data.profile")
ID_KEYS = ("id", "user_id", "userId")
USERNAME_KEYS = ("username", "user_name", "handle")


@dataclass(frozen=True)
class Identity:
    """
    Canonical "who am I". `temporary` marks a locally synthesised
    placeholder that has not been confirmed by the server.
    """
    id: int | None
    username: str
    temporary: bool = False
    record: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def placeholder(cls, login_hint: str, user_id: int | None = None) -> "Identity":
        username = login_hint.split("@", 1)[0] if login_hint else ""
        return cls(id=user_id, username=username or "user", temporary=True)

    @classmethod
    def from_record(cls, record: Any, fallback_username: str | None = None) -> "Identity | None":
        """Build a confirmed identity from a user record, or None when id or username is missing."""
        if not isinstance(record, dict):
            return None

        user_id = coerce_positive_int(first_present(record, ID_KEYS, accept=coerce_positive_int))
        username = first_present(record, USERNAME_KEYS, accept=non_empty_str) or fallback_username
        if user_id is None or not username:
            return None
        return cls(id=user_id, username=username, record=record)


def locate_user_record(payload: Any, paths=RECORD_PATHS) -> dict[str, Any] | None:
    """First mapping along `paths` that looks like a user record."""
    for path in paths:
        candidate = dig(payload, path)
        if not isinstance(candidate, dict):
            continue
        if any(key in candidate for key in ID_KEYS + USERNAME_KEYS):
            return candidate
    return None


class IdentityResolver:
    """
    Resolves the canonical (id, username) for the bearer token in
    SessionState through a cascade of endpoints:

      1. cached username -> profile-by-username (authoritative)
      2. otherwise bootstrap `data.auth.user`, then `auth/user`
      3. a username learned in step 2 is confirmed through step 1

    A failed step 1 falls through to step 2, so a stale cached username heals
    itself. Results are written back into SessionState only if the session
    generation did not change while the cascade was running.
    """

    def __init__(self, flight: FlightController, session: SessionState, logger: logging.Logger | None = None) -> None:
        self._flight = flight
        self._session = session
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._current: Identity | None = None
        self._current_generation: int | None = None

    @property
    def current(self) -> Identity | None:
        """The last accepted identity, provided the session it belongs to is still alive."""
        if self._current_generation is None or not self._session.is_current(self._current_generation):
            return None
        return self._current

    async def resolve(self) -> Identity:
        if not self._session.token:
            raise NotAuthenticated("Cannot resolve identity without a session token")

        generation = self._session.generation
        probed_username: str | None = None

        cached = self._session.username
        if cached:
            probed_username = cached
            identity = await self._probe_profile(cached)
            if identity is not None:
                return self._commit(identity, generation)
            self._logger.info(f"Cached username {cached!r} did not resolve, falling back to bootstrap")

        hint = await self._probe_bootstrap()
        if hint is None:
            hint = await self._probe_auth_user()
        if hint is None or not hint.username:
            raise IdentityResolutionError("No endpoint returned the current user")

        if hint.username != probed_username:
            identity = await self._probe_profile(hint.username)
            if identity is not None:
                return self._commit(identity, generation)

        if hint.id is None:
            raise IdentityResolutionError(f"Could not resolve a user id for {hint.username!r}")
        return self._commit(hint, generation)

    async def user_id_for_posts(self) -> int:
        """Cached user id, resolving the identity first when nothing is cached."""
        if self._session.user_id is not None:
            return self._session.user_id

        identity = await self.resolve()
        if identity.id is None:
            raise IdentityResolutionError("Resolved identity has no user id")
        return identity.id

    def accept(self, identity: Identity, generation: int | None = None) -> Identity:
        """
        Record an identity as current. A temporary identity never replaces a
        confirmed one whose id disagrees, and is never written to SessionState.
        """
        if generation is not None and not self._session.is_current(generation):
            raise NotAuthenticated("Session ended while resolving identity")

        current = self.current
        if identity.temporary:
            if current is not None and not current.temporary:
                if identity.id is None or identity.id != current.id:
                    self._logger.debug("Ignoring placeholder identity; a confirmed identity is held")
                    return current
        else:
            self._session.set_identity(identity.id, identity.username)

        self._current = identity
        self._current_generation = self._session.generation
        return identity

    def forget(self) -> None:
        self._current = None
        self._current_generation = None

    def _commit(self, identity: Identity, generation: int) -> Identity:
        if not self._session.is_current(generation):
            self._logger.info("Session changed during identity resolution; discarding result")
        accepted = self.accept(identity, generation)
        self._logger.info(f"Resolved identity: id={accepted.id} username={accepted.username}")
        return accepted

    async def _probe_profile(self, username: str) -> Identity | None:
        try:
            body = await self._flight.get(PROFILE_ENDPOINT, params={"id": username})
        except (ApiError, NetworkFailure) as exc:
            self._logger.warning(f"Profile lookup for {username!r} failed: {exc}")
            return None
        return Identity.from_record(locate_user_record(body), fallback_username=username)

    async def _probe_bootstrap(self) -> Identity | None:
        try:
            body = await self._flight.get(BOOTSTRAP_ENDPOINT)
        except (ApiError, NetworkFailure) as exc:
            self._logger.warning(f"Bootstrap lookup failed: {exc}")
            return None
        return self._hint_from(dig(body, "data.auth.user"))

    async def _probe_auth_user(self) -> Identity | None:
        try:
            body = await self._flight.get(AUTH_USER_ENDPOINT)
        except (ApiError, NetworkFailure) as exc:
            self._logger.warning(f"auth/user lookup failed: {exc}")
            return None
        return self._hint_from(locate_user_record(body, ("data", "")))

    @staticmethod
    def _hint_from(record: Any) -> Identity | None:
        """A partial identity: the username is what the cascade needs, the id is a bonus."""
        if not isinstance(record, dict):
            return None
        username = first_present(record, USERNAME_KEYS, accept=non_empty_str)
        if not username:
            return None
        user_id = coerce_positive_int(first_present(record, ID_KEYS, accept=coerce_positive_int))
        return Identity(id=user_id, username=username, record=record)
