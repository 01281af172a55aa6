import asyncio
import dataclasses
import logging
from typing import Any, Awaitable, Callable, Hashable

from uservault.config.models.flight import FlightConfig
from uservault.core.exceptions import ApiError, NetworkFailure, RateLimited
from uservault.request_execution.api_transport import ApiTransport, QueryParams
from uservault.request_execution.flight.rate_limiter import AdaptiveRateLimiter
from uservault.request_execution.flight.tickets import TicketRegistry
from uservault.request_execution.models import RequestContext, RequestType
from uservault.utils.common import async_exponential_backoff


class FlightController:
    """
    Every typed call goes through FlightController.request(). It wraps the
    ApiTransport with three policies:

    • Coalescing: identical requests (method, fully-resolved URL, body digest
      and, for authenticated calls, the `auth_scope` value at call time) in
      flight at the same time share one physical call and one outcome.
      Multipart bodies are never shared.
    • Pacing: each physical call waits for the AdaptiveRateLimiter slot, which
      enforces the minimum spacing and any mandated delay.
    • Retry: a 429 sets the mandated delay (Retry-After or bounded exponential
      backoff), sleeps it out and retries up to max_attempts before raising
      RateLimited. Transient NetworkFailure (timeouts, dropped connections)
      is retried on its own budget. Anything else surfaces immediately.

    FlightController never reads or writes session state.
    """

    def __init__(
        self,
        transport: ApiTransport,
        config: FlightConfig | None = None,
        limiter: AdaptiveRateLimiter | None = None,
        tickets: TicketRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
        auth_scope: Callable[[], Hashable] | None = None,
    ) -> None:
        self._transport = transport
        self._auth_scope = auth_scope
        self._config = config or FlightConfig()
        self._limiter = limiter or AdaptiveRateLimiter(
            min_spacing=self._config.min_spacing,
            decay_step=self._config.decay_step,
        )
        self._tickets = tickets or TicketRegistry(linger=self._config.ticket_linger)
        self._sleep = sleep
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def transport(self) -> ApiTransport:
        return self._transport

    @property
    def limiter(self) -> AdaptiveRateLimiter:
        return self._limiter

    @property
    def tickets(self) -> TicketRegistry:
        return self._tickets

    async def request(
        self,
        endpoint: str,
        method: RequestType | str = RequestType.GET,
        params: QueryParams | None = None,
        body: Any | None = None,
        headers: dict[str, str] | None = None,
        skip_auth: bool = False,
        timeout: float | None = None,
        coalesce: bool = True,
    ) -> Any:
        context = self._transport.build_context(
            endpoint, method, params, body, headers, skip_auth, timeout
        )

        if not coalesce or not context.coalescable:
            return await self._execute(context)

        ticket, created = self._tickets.get_or_create(self._ticket_key(context), lambda: self._execute(context))
        if not created:
            self._logger.debug(f"Deduplicating request: {context.method.value} {context.url}")

        # shield: one caller giving up must not cancel the shared call for the others
        return await asyncio.shield(ticket)

    async def get(self, endpoint: str, params: QueryParams | None = None, **kwargs) -> Any:
        return await self.request(endpoint, RequestType.GET, params=params, **kwargs)

    async def post(self, endpoint: str, body: Any | None = None, **kwargs) -> Any:
        return await self.request(endpoint, RequestType.POST, body=body, **kwargs)

    async def put(self, endpoint: str, body: Any | None = None, **kwargs) -> Any:
        return await self.request(endpoint, RequestType.PUT, body=body, **kwargs)

    async def delete(self, endpoint: str, body: Any | None = None, **kwargs) -> Any:
        return await self.request(endpoint, RequestType.DELETE, body=body, **kwargs)

    def _ticket_key(self, context: RequestContext) -> Hashable:
        if context.skip_auth or self._auth_scope is None:
            return context.key
        return (*context.key, self._auth_scope())

    def backoff_delay(self, attempt: int) -> float:
        """Delay mandated after the `attempt`-th (0-based) consecutive 429 without a Retry-After hint."""
        return min(self._config.base_delay * (2 ** attempt), self._config.max_delay)

    async def _execute(self, context: RequestContext) -> Any:
        rate_limited = 0
        network_failures = 0

        while True:
            epoch = await self._limiter.acquire()
            attempt_context = dataclasses.replace(
                context, headers=dict(context.headers), metadata={}
            )
            retry_note = ""
            if rate_limited or network_failures:
                retry_note = f" (retry {rate_limited + network_failures})"
            self._logger.info(f"{context.method.value} {context.url}{retry_note}")

            try:
                result = await self._transport.dispatch(attempt_context)

            except ApiError as exc:
                if exc.status != 429:
                    self._limiter.relax(epoch)
                    raise

                delay = exc.retry_after if exc.retry_after is not None else self.backoff_delay(rate_limited)
                self._limiter.penalize(delay)
                rate_limited += 1

                if rate_limited >= self._config.max_attempts:
                    self._logger.error(
                        f"Rate limit persisted after {rate_limited} attempts: "
                        f"{context.method.value} {context.url}"
                    )
                    raise RateLimited(
                        "Rate limit exceeded. Please wait a moment and try again.",
                        attempts=rate_limited,
                        last_delay=delay,
                    ) from exc

                self._logger.warning(
                    f"Rate limited on {context.url}; waiting {delay:.2f}s "
                    f"(attempt {rate_limited}/{self._config.max_attempts})"
                )
                await self._sleep(delay)
                continue

            except NetworkFailure as exc:
                network_failures += 1
                if not exc.transient or network_failures >= self._config.network_max_attempts:
                    self._logger.error(f"Request failed: {context.method.value} {context.url}: {exc}")
                    raise

                self._logger.warning(
                    f"Transient network failure on attempt {network_failures}/"
                    f"{self._config.network_max_attempts}: {exc}"
                )
                await async_exponential_backoff(
                    self._config.network_base_delay,
                    network_failures,
                    self._config.network_max_delay,
                )
                continue

            self._limiter.relax(epoch)
            return result

    def close(self) -> None:
        self._tickets.clear()
