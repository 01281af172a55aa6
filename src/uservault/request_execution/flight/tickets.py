import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable


class TicketRegistry:
    """
    In-flight request registry. One task per key; concurrent callers with the
    same key share that task and therefore its value or its exception.

    The lookup and the insert happen without an await in between, so the
    check-and-insert is atomic on the event loop. A finished ticket stays in
    the registry for `linger` seconds so a burst of near-simultaneous callers
    still coalesces.
    """

    def __init__(self, linger: float = 1.0) -> None:
        self._linger = max(0.0, linger)
        self._tickets: dict[Hashable, asyncio.Future] = {}
        self._release_handles: dict[Hashable, asyncio.TimerHandle] = {}
        self._logger = logging.getLogger(self.__class__.__name__)

    def __len__(self) -> int:
        return len(self._tickets)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._tickets

    def get_or_create(
        self,
        key: Hashable,
        factory: Callable[[], Awaitable[Any]],
    ) -> tuple[asyncio.Future, bool]:
        existing = self._tickets.get(key)
        if existing is not None:
            return existing, False

        task = asyncio.ensure_future(factory())
        self._tickets[key] = task
        task.add_done_callback(lambda t: self._on_done(key, t))
        return task, True

    def _on_done(self, key: Hashable, task: asyncio.Future) -> None:
        # Mark the exception as retrieved; callers still awaiting the ticket receive it regardless.
        if not task.cancelled():
            task.exception()

        if self._linger == 0:
            self._release(key, task)
            return

        loop = asyncio.get_running_loop()
        self._release_handles[key] = loop.call_later(self._linger, self._release, key, task)

    def _release(self, key: Hashable, task: asyncio.Future) -> None:
        if self._tickets.get(key) is task:
            del self._tickets[key]
            self._release_handles.pop(key, None)

    def clear(self) -> None:
        for handle in self._release_handles.values():
            handle.cancel()
        self._release_handles.clear()
        self._tickets.clear()
