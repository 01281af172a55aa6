import asyncio
import logging
import time
from typing import Awaitable, Callable


class AdaptiveRateLimiter:
    """
    Shared pacing state for every physical call made by one client:
    the currently mandated delay and the time of the last dispatch.

    • acquire() serializes dispatch starts behind an asyncio.Lock and waits
      until `now - last_request >= max(mandated_delay, min_spacing)`. The wait
      is re-evaluated after every sleep so a delay raised by a 429 arriving
      mid-wait is still honoured.
    • penalize() raises the mandated delay after a 429 and bumps the epoch.
    • relax() decays the delay by a fixed step after a non-429 response,
      but only if no 429 was recorded since the caller's dispatch (epoch
      unchanged), so a slow success never undoes a fresher penalty.

    penalize() and relax() never await, which makes them atomic with respect
    to other coroutines on the same loop.
    """

    def __init__(
        self,
        min_spacing: float = 0.1,
        decay_step: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._min_spacing = max(0.0, min_spacing)
        self._decay_step = max(0.0, decay_step)
        self._clock = clock
        self._sleep = sleep
        self._delay = 0.0
        self._last_request: float | None = None
        self._epoch = 0
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def mandated_delay(self) -> float:
        return self._delay

    @property
    def last_request(self) -> float | None:
        return self._last_request

    @property
    def epoch(self) -> int:
        return self._epoch

    def required_wait(self) -> float:
        if self._last_request is None:
            return 0.0
        spacing = max(self._delay, self._min_spacing)
        return spacing - (self._clock() - self._last_request)

    async def acquire(self) -> int:
        """
        Wait for a dispatch slot. Returns the epoch observed at dispatch,
        to be handed back to relax().
        """
        async with self._lock:
            while True:
                wait = self.required_wait()
                if wait <= 0:
                    break
                if self._delay > 0:
                    self._logger.info(f"Rate limit: waiting {wait:.3f}s")
                await self._sleep(wait)

            self._last_request = self._clock()
            return self._epoch

    def penalize(self, delay: float) -> float:
        self._delay = max(self._delay, max(0.0, delay))
        self._epoch += 1
        return self._delay

    def relax(self, epoch: int) -> bool:
        if epoch != self._epoch:
            return False
        self._delay = max(0.0, self._delay - self._decay_step)
        return True

    def reset(self) -> None:
        self._delay = 0.0
        self._epoch += 1
