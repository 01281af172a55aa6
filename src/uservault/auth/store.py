import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

from uservault.auth.session import SessionSnapshot


class SessionStore(Protocol):
    """
    Caller-supplied persistence for SessionSnapshot. Implementations decide
    where the snapshot lives (keychain, preferences, file); the client only
    calls these three coroutines.
    """

    async def load(self) -> SessionSnapshot | None: ...

    async def save(self, snapshot: SessionSnapshot) -> None: ...

    async def clear(self) -> None: ...


class MemorySessionStore:
    def __init__(self, snapshot: SessionSnapshot | None = None) -> None:
        self.snapshot = snapshot
        self.saves = 0

    async def load(self) -> SessionSnapshot | None:
        return self.snapshot

    async def save(self, snapshot: SessionSnapshot) -> None:
        self.snapshot = snapshot
        self.saves += 1

    async def clear(self) -> None:
        self.snapshot = None


class JsonFileSessionStore:
    """
    Stores the snapshot as JSON on disk. File I/O runs in a worker thread so
    the event loop is never blocked.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> SessionSnapshot | None:
        def _read() -> SessionSnapshot | None:
            if not self._path.exists():
                return None
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return SessionSnapshot.model_validate(raw)

        return await asyncio.to_thread(_read)

    async def save(self, snapshot: SessionSnapshot) -> None:
        def _write() -> None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(snapshot.model_dump_json(), encoding="utf-8")
            tmp.replace(self._path)

        await asyncio.to_thread(_write)
        self._logger.debug(f"session snapshot written to {self._path}")

    async def clear(self) -> None:
        await asyncio.to_thread(self._path.unlink, True)
