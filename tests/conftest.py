import pytest

from uservault.auth.session import SessionState
from uservault.auth.store import MemorySessionStore
from .fixtures.transport import FakeClock, ScriptedEngine


@pytest.fixture
def engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture
def session() -> SessionState:
    return SessionState()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def token() -> str:
    return "42|p7Qx2LmN8vR4tY6wZ1aB3cD5"
