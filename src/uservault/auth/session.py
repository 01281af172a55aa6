import logging
from typing import Literal
from pydantic import BaseModel, Field

from uservault.core.logging import mask_token


class SessionSnapshot(BaseModel):
    """
    Everything the embedding application must persist to resume a session
    after a restart. The client itself keeps nothing across restarts.
    """
    token: str | None = None
    user_id: int | None = Field(default=None, gt=0)
    username: str | None = None
    pending_verification_token: str | None = None
    pending_flow: Literal["signup", "password_reset"] | None = None

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not any((self.token, self.user_id, self.username, self.pending_verification_token))


class SessionState:
    """
    In-memory holder of the bearer token, the resolved numeric user id and the
    resolved username.

    Every token change and every clear() bumps `generation`. Code that learns
    identity fields asynchronously captures the generation before it starts
    and checks `is_current()` before writing back, so a logout in the middle
    of a resolution is terminal.
    """

    def __init__(self) -> None:
        self._token: str | None = None
        self._user_id: int | None = None
        self._username: str | None = None
        self._generation = 0
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    @property
    def token(self) -> str | None:
        return self._token

    @token.setter
    def token(self, token: str | None) -> None:
        if token == self._token:
            return
        self._token = token
        self._generation += 1
        self._logger.info(f"auth token {'set' if token else 'cleared'}: {mask_token(token)}")

    @property
    def user_id(self) -> int | None:
        return self._user_id

    @user_id.setter
    def user_id(self, user_id: int | None) -> None:
        if user_id is not None and user_id <= 0:
            raise ValueError(f"user id must be positive, got {user_id}")
        self._user_id = user_id
        self._logger.debug(f"user id set to {user_id}")

    @property
    def username(self) -> str | None:
        return self._username

    @username.setter
    def username(self, username: str | None) -> None:
        self._username = username or None
        self._logger.debug(f"username set to {username}")

    @property
    def has_identity(self) -> bool:
        return self._user_id is not None or self._username is not None

    def set_identity(self, user_id: int | None = None, username: str | None = None) -> None:
        """
        Set id and/or username while keeping the pair consistent: learning a
        different username without an id drops the cached id (it belonged to
        another account), and vice versa.
        """
        if username and username != self._username and user_id is None:
            self.user_id = None
        if user_id is not None and user_id != self._user_id and not username:
            self.username = None

        if user_id is not None:
            self.user_id = user_id
        if username:
            self.username = username

    def clear(self) -> None:
        self._token = None
        self._user_id = None
        self._username = None
        self._generation += 1
        self._logger.info("session cleared")

    def snapshot(
        self,
        pending_verification_token: str | None = None,
        pending_flow: str | None = None,
    ) -> SessionSnapshot:
        return SessionSnapshot(
            token=self._token,
            user_id=self._user_id,
            username=self._username,
            pending_verification_token=pending_verification_token,
            pending_flow=pending_flow,
        )

    def restore(self, snapshot: SessionSnapshot) -> None:
        self.token = snapshot.token
        self._user_id = snapshot.user_id
        self._username = snapshot.username
