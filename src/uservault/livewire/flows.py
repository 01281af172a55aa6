import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from uservault.auth.session import SessionState
from uservault.auth.store import SessionStore
from uservault.config.models.livewire import FormFlowConfig
from uservault.core.exceptions import FlowStateError
from uservault.livewire.bridge import LivewireBridge
from uservault.livewire.outcomes import (
    FormOutcome,
    SessionExpiredOutcome,
    Success,
    ValidationFailed,
)


T = TypeVar("T")


class FlowState(str, Enum):
    IDLE = "idle"
    EMAIL_SUBMITTED = "email_submitted"
    AWAITING_EXTERNAL_VERIFICATION = "awaiting_external_verification"
    TOKEN_RECEIVED = "token_received"
    PROFILE_COMPLETION = "profile_completion"
    REGISTERED = "registered"
    PASSWORD_RESET = "password_reset"


class EmailTokenFlow:
    """
    State machine for a flow that sends an email through a form, waits for
    the user to follow the emailed link, then completes with the token the
    link carries:

      IDLE -> EMAIL_SUBMITTED -> IDLE (validation failed / session expired)
                              -> AWAITING_EXTERNAL_VERIFICATION
      AWAITING_EXTERNAL_VERIFICATION -> TOKEN_RECEIVED -> PROFILE_COMPLETION -> final

    The pending token is handed to the SessionStore so the flow can be
    resumed after a cold start.
    """

    kind: str = ""
    final_state: FlowState = FlowState.REGISTERED

    def __init__(
        self,
        bridge: LivewireBridge,
        form: FormFlowConfig,
        session: SessionState,
        store: SessionStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._bridge = bridge
        self._form = form
        self._session = session
        self._store = store
        self._clock = clock
        self._sleep = sleep
        self._logger = logging.getLogger(self.__class__.__name__)

        self.state = FlowState.IDLE
        self.email: str | None = None
        self.pending_token: str | None = None
        self.last_outcome: FormOutcome | None = None

    def _require(self, *allowed: FlowState) -> None:
        if self.state not in allowed:
            raise FlowStateError(
                f"{self.__class__.__name__} cannot do this from state {self.state.value}",
                state=self.state.value,
            )

    def _move(self, state: FlowState) -> None:
        self._logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    async def submit_email(self, email: str) -> FormOutcome:
        self._require(FlowState.IDLE, FlowState.AWAITING_EXTERNAL_VERIFICATION)
        self.email = email
        self._move(FlowState.EMAIL_SUBMITTED)

        try:
            outcome = await self._bridge.send(self._form, email)
        except Exception:
            self._move(FlowState.IDLE)
            raise

        self.last_outcome = outcome
        if isinstance(outcome, (ValidationFailed, SessionExpiredOutcome)):
            self._move(FlowState.IDLE)
            return outcome

        if isinstance(outcome, Success):
            self.pending_token = outcome.verification_token
            await self._persist()
        self._move(FlowState.AWAITING_EXTERNAL_VERIFICATION)
        return outcome

    async def receive_token(self, token: str) -> None:
        """The token arrived out of band (deep link, pasted by the user)."""
        self._require(
            FlowState.IDLE,
            FlowState.AWAITING_EXTERNAL_VERIFICATION,
            FlowState.TOKEN_RECEIVED,
        )
        if not token:
            raise ValueError("token must be non-empty")
        self.pending_token = token
        await self._persist()
        self._move(FlowState.TOKEN_RECEIVED)

    async def resume(self) -> bool:
        """Restore a pending token from the store. Returns True when one was found."""
        if self._store is None:
            return False
        snapshot = await self._store.load()
        if snapshot is None or not snapshot.pending_verification_token:
            return False
        if snapshot.pending_flow not in (None, self.kind):
            return False

        self.pending_token = snapshot.pending_verification_token
        self._move(FlowState.AWAITING_EXTERNAL_VERIFICATION)
        return True

    async def await_verification(
        self,
        poll: Callable[[], Awaitable[str | None]],
        interval: float = 2.0,
        timeout: float = 300.0,
    ) -> str | None:
        """
        Poll until the out-of-band token shows up. On timeout the flow stays
        in AWAITING_EXTERNAL_VERIFICATION with its pending token intact and
        None is returned.
        """
        self._require(FlowState.AWAITING_EXTERNAL_VERIFICATION)
        deadline = self._clock() + timeout

        while True:
            token = await poll()
            if token:
                await self.receive_token(token)
                return token
            if self._clock() >= deadline:
                self._logger.info(f"No verification after {timeout}s; still waiting")
                return None
            await self._sleep(interval)

    async def complete(self, step: Callable[[str], Awaitable[T]]) -> T:
        """Run the completion call with the received token and finish the flow."""
        self._require(FlowState.TOKEN_RECEIVED)
        token = self.pending_token
        self._move(FlowState.PROFILE_COMPLETION)

        try:
            result = await step(token)
        except Exception:
            self._move(FlowState.TOKEN_RECEIVED)
            raise

        self.pending_token = None
        await self._persist()
        self._move(self.final_state)
        return result

    async def _persist(self) -> None:
        if self._store is None:
            return
        pending_flow = self.kind if self.pending_token else None
        await self._store.save(self._session.snapshot(self.pending_token, pending_flow))


class RegistrationFlow(EmailTokenFlow):
    kind = "signup"
    final_state = FlowState.REGISTERED


class PasswordResetFlow(EmailTokenFlow):
    kind = "password_reset"
    final_state = FlowState.PASSWORD_RESET
