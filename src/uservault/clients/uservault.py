import inspect
import json
import logging
from types import TracebackType
from typing import Any, Awaitable, Callable
from typing_extensions import Self

from uservault.auth.identity import PROFILE_ENDPOINT, Identity, IdentityResolver, locate_user_record
from uservault.auth.session import SessionSnapshot, SessionState
from uservault.auth.store import SessionStore
from uservault.clients.models import AuthResult, EmailDispatch, RegistrationProfile
from uservault.clients.social import SocialEndpoints
from uservault.config.factories import MiddlewareRuntimeFactory, TransportRuntimeFactory
from uservault.config.models.client import ClientConfig
from uservault.config.models.livewire import FormFlowConfig
from uservault.core.exceptions import (
    ApiError,
    IdentityResolutionError,
    NetworkFailure,
    NotAuthenticated,
    SessionExpired,
    UserVaultError,
    ValidationError,
)
from uservault.livewire.bridge import LivewireBridge, first_error
from uservault.livewire.flows import PasswordResetFlow, RegistrationFlow
from uservault.livewire.outcomes import SessionExpiredOutcome, Success, ValidationFailed
from uservault.request_execution.api_transport import ApiTransport, UnauthorizedEvent, UnauthorizedHandler
from uservault.request_execution.executor import RequestExecutor
from uservault.request_execution.flight import FlightController
from uservault.request_execution.middleware import (
    BearerTokenMiddleware,
    DefaultHeadersMiddleware,
    JsonResponseMiddleware,
)
from uservault.request_execution.models import RequestType
from uservault.request_execution.transport.base import TransportEngine
from uservault.utils.common import coerce_positive_int, dig, first_present, non_empty_str


TOKEN_ENDPOINT = "sanctum/token"
LOGOUT_ENDPOINT = "auth/logout"
REGISTER_VERIFY_ENDPOINT = "register/verify"
PASSWORD_RESET_ENDPOINT = "password/reset"
PROFILE_POSTS_ENDPOINT = "profile/profile/posts"

MIN_TOKEN_LENGTH = 10


class UserVaultClient(SocialEndpoints):
    """
    Entry point of the library. One instance owns one HTTP engine (and its
    cookie jar), one session and one set of pacing state; nothing is shared
    between instances.

        async with UserVaultClient(ClientConfig()) as client:
            result = await client.login("me@example.com", "secret")
            feed = await client.get_timeline_feed()

    A SessionStore, when given, is loaded on enter and written whenever the
    session changes.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        store: SessionStore | None = None,
        engine: TransportEngine | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or ClientConfig.from_env()
        self._store = store
        self._logger = logger or logging.getLogger(self.__class__.__name__)

        self._engine = engine or TransportRuntimeFactory.build_factory(
            self._config.transport, user_agent=self._config.livewire.user_agent
        )()

        self.session = SessionState()

        middleware_factories = [
            lambda: DefaultHeadersMiddleware(),
            lambda: BearerTokenMiddleware(self.session),
            *MiddlewareRuntimeFactory.get_factories(self._config.middleware),
            lambda: JsonResponseMiddleware(),
        ]
        self._executor = RequestExecutor(self._engine, middleware_factories)
        self._transport = ApiTransport(
            self._executor,
            self._config.base_url,
            default_timeout=self._config.transport.base_timeout,
        )
        self._transport.set_unauthorized_handler(self._on_unauthorized)

        flight_kwargs = {"sleep": sleep} if sleep is not None else {}
        self._flight = FlightController(
            self._transport,
            self._config.flight,
            auth_scope=lambda: self.session.generation,
            **flight_kwargs,
        )
        self._identity = IdentityResolver(self._flight, self.session)
        self._bridge = LivewireBridge(self._flight, self._config.livewire, cookie_source=self._engine.cookie)
        self._unauthorized_handler: UnauthorizedHandler | None = None

    async def __aenter__(self) -> Self:
        await self._engine.__aenter__()
        if self._store is not None:
            snapshot = await self._store.load()
            if snapshot is not None:
                self.session.restore(snapshot)
                self._logger.info("Session restored from store")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._flight.close()
        await self._engine.__aexit__(exc_type, exc_val, exc_tb)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def flight(self) -> FlightController:
        return self._flight

    @property
    def identity(self) -> IdentityResolver:
        return self._identity

    @property
    def bridge(self) -> LivewireBridge:
        return self._bridge

    @property
    def is_authenticated(self) -> bool:
        if not self.session.token:
            return False
        return self.session.has_identity or self._identity.current is not None

    def set_unauthorized_handler(self, handler: UnauthorizedHandler | None) -> None:
        """Replace the default 401 policy. None restores the default."""
        self._unauthorized_handler = handler

    def snapshot(self, pending_verification_token: str | None = None) -> SessionSnapshot:
        return self.session.snapshot(pending_verification_token)

    def restore(self, snapshot: SessionSnapshot) -> None:
        self._identity.forget()
        self.session.restore(snapshot)

    # Authentication

    async def login(self, login: str, password: str) -> AuthResult:
        raw = await self._flight.post(
            TOKEN_ENDPOINT,
            body={"email": login, "password": password, "device_name": self._config.device_name},
            skip_auth=True,
            coalesce=False,
        )
        token = self._parse_token(raw)

        self._identity.forget()
        self.session.clear()
        self.session.token = token

        try:
            identity = await self._identity.resolve()
        except (IdentityResolutionError, ApiError, NetworkFailure) as exc:
            self._logger.warning(f"Could not resolve identity after login, using a placeholder: {exc}")
            identity = self._identity.accept(Identity.placeholder(login, self.session.user_id))

        await self._persist()
        return AuthResult(token=token, identity=identity, user=identity.record)

    async def logout(self) -> None:
        if self.session.token:
            try:
                await self._flight.post(LOGOUT_ENDPOINT, coalesce=False)
            except UserVaultError as exc:
                self._logger.info(f"Logout call failed, clearing locally: {exc}")
        await self._clear_session()
        self._logger.info("Logged out")

    async def register_send_code(self, email: str) -> EmailDispatch:
        return await self._send_email(self._config.livewire.signup, email)

    async def forgot_password_send_code(self, email: str) -> EmailDispatch:
        return await self._send_email(self._config.livewire.forgot_password, email)

    def registration_flow(self) -> RegistrationFlow:
        return RegistrationFlow(self._bridge, self._config.livewire.signup, self.session, self._store)

    def password_reset_flow(self) -> PasswordResetFlow:
        return PasswordResetFlow(self._bridge, self._config.livewire.forgot_password, self.session, self._store)

    async def register_verify(self, profile: RegistrationProfile) -> AuthResult:
        try:
            body = await self._flight.get(
                REGISTER_VERIFY_ENDPOINT,
                params=profile.to_query(self._config.device_name),
                headers={"Authorization": f"Bearer {profile.token}"},
                skip_auth=True,
                coalesce=False,
            )
        except ApiError as exc:
            raise self._flow_error(exc, "Registration failed") from exc

        return await self._adopt_credentials(body, "registration")

    async def reset_password(self, token: str, password: str, confirmation: str) -> AuthResult:
        if password != confirmation:
            raise ValidationError("Passwords do not match", field="password_confirmation")

        try:
            body = await self._flight.post(
                PASSWORD_RESET_ENDPOINT,
                body={
                    "token": token,
                    "password": password,
                    "password_confirmation": confirmation,
                    "device_name": self._config.device_name,
                },
                skip_auth=True,
                coalesce=False,
            )
        except ApiError as exc:
            raise self._flow_error(exc, "Password reset failed") from exc

        return await self._adopt_credentials(body, "password reset")

    # Identity and profiles

    async def current_user(self) -> Identity:
        self._require_token()
        identity = await self._identity.resolve()
        await self._persist()
        return identity

    async def get_profile(self, username: str) -> Any:
        self._require_token()
        body = await self._flight.get(PROFILE_ENDPOINT, params={"id": username})

        # Refresh our own id when this is our own profile; other profiles never touch the session.
        if username == self.session.username:
            identity = Identity.from_record(locate_user_record(body), fallback_username=username)
            if identity is not None:
                self._identity.accept(identity)
        return body

    async def get_profile_by_id(self, user_id: int) -> Any:
        self._require_token()
        if self.session.username and self.session.user_id == user_id:
            return await self.get_profile(self.session.username)

        identity = await self._identity.resolve()
        if identity.id == user_id:
            return await self.get_profile(identity.username)
        raise IdentityResolutionError(f"Could not resolve username for user ID: {user_id}")

    async def get_profile_posts(self, user_id: int, cursor: int = 0, post_type: str = "posts") -> Any:
        self._require_token()
        if coerce_positive_int(user_id) is None:
            raise ValueError("Valid user ID required for posts")
        return await self._flight.get(
            PROFILE_POSTS_ENDPOINT,
            params={"id": user_id, "filter": {"type": post_type, "cursor": cursor}},
        )

    async def get_profile_posts_by_username(self, username: str, cursor: int = 0, post_type: str = "posts") -> Any:
        body = await self.get_profile(username)
        user_id = coerce_positive_int(first_present(body, ("data.id", "id")))
        if user_id is None:
            raise IdentityResolutionError(f"Could not resolve user ID from profile {username!r}")
        return await self.get_profile_posts(user_id, cursor, post_type)

    async def get_current_user_posts(self, cursor: int = 0, post_type: str = "posts") -> Any:
        self._require_token()
        user_id = await self._identity.user_id_for_posts()
        return await self.get_profile_posts(user_id, cursor, post_type)

    # Internals

    async def _authed(
        self,
        endpoint: str,
        method: RequestType = RequestType.GET,
        params: dict[str, Any] | None = None,
        body: Any | None = None,
        coalesce: bool = True,
    ) -> Any:
        self._require_token()
        return await self._flight.request(endpoint, method, params=params, body=body, coalesce=coalesce)

    def _require_token(self) -> str:
        token = self.session.token
        if not token:
            raise NotAuthenticated()
        return token

    @staticmethod
    def _parse_token(raw: Any) -> str:
        if isinstance(raw, dict):
            raw = first_present(raw, ("token", "plainTextToken", "data.token"), accept=non_empty_str) or ""
        token = str(raw or "").strip()
        if len(token) >= 2 and token[0] == token[-1] == '"':
            token = token[1:-1]

        if len(token) < MIN_TOKEN_LENGTH:
            raise ApiError(200, "No valid token in response", endpoint=TOKEN_ENDPOINT)
        return token

    async def _send_email(self, flow: FormFlowConfig, email: str) -> EmailDispatch:
        email = (email or "").strip()
        if "@" not in email:
            raise ValidationError("Please enter a valid email address", field=flow.field)

        outcome = await self._bridge.send(flow, email)

        if isinstance(outcome, ValidationFailed):
            raise ValidationError(outcome.message, field=outcome.field)
        if isinstance(outcome, SessionExpiredOutcome):
            raise SessionExpired(outcome.message)
        if isinstance(outcome, Success):
            return EmailDispatch(outcome.verification_token, email, flow.sent_message, confirmed=True)
        return EmailDispatch(outcome.token, email, flow.sent_message, confirmed=False)

    async def _adopt_credentials(self, body: Any, action: str) -> AuthResult:
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError:
                body = {}

        token = dig(body, "data.token")
        if not non_empty_str(token):
            raise ApiError(200, f"No token received from {action}")
        user = dig(body, "data.user")

        self._identity.forget()
        self.session.clear()
        self.session.token = token

        identity = Identity.from_record(user)
        if identity is not None:
            identity = self._identity.accept(identity)
        else:
            try:
                identity = await self._identity.resolve()
            except (IdentityResolutionError, ApiError, NetworkFailure) as exc:
                self._logger.warning(f"Could not resolve identity after {action}: {exc}")
                hint = first_present(user, ("username", "email"), accept=non_empty_str) or ""
                identity = self._identity.accept(Identity.placeholder(hint))

        await self._persist()
        return AuthResult(token=token, identity=identity, user=user if isinstance(user, dict) else {})

    @staticmethod
    def _flow_error(exc: ApiError, default: str) -> ApiError:
        """message, then error, then the first validation error, then the raw body."""
        message = None
        try:
            parsed = json.loads(exc.body_text or "")
        except ValueError:
            message = exc.body_text or None
        else:
            if isinstance(parsed, dict):
                message = first_present(parsed, ("message", "error"), accept=non_empty_str)
                if not message:
                    _, message = first_error(parsed.get("errors"))

        return ApiError(
            exc.status,
            message or default,
            endpoint=exc.endpoint,
            body_text=exc.body_text,
            content_type=exc.content_type,
            retry_after=exc.retry_after,
        )

    async def _on_unauthorized(self, event: UnauthorizedEvent) -> None:
        if self._unauthorized_handler is not None:
            outcome = self._unauthorized_handler(event)
            if inspect.isawaitable(outcome):
                await outcome
            return

        endpoint = "/" + event.endpoint.lstrip("/")
        if self._config.profile_probe_marker in endpoint:
            self._logger.info(f"401 from profile probe {event.endpoint}; keeping session")
            return

        self._logger.warning(f"401 from {event.endpoint}; clearing session")
        await self._clear_session()

    async def _clear_session(self) -> None:
        self._identity.forget()
        self.session.clear()
        if self._store is not None:
            await self._store.clear()

    async def _persist(self) -> None:
        if self._store is None:
            return
        pending_token = None
        pending_flow = None
        existing = await self._store.load()
        if existing is not None:
            pending_token = existing.pending_verification_token
            pending_flow = existing.pending_flow
        await self._store.save(self.session.snapshot(pending_token, pending_flow))
