from enum import Enum
from typing import Awaitable, Callable, Protocol

from uservault.request_execution.models import RequestExchange
from uservault.core.abstract_factory import TypeAbstractFactory


NEXT_CALL = Callable[[RequestExchange], Awaitable[RequestExchange]]
MIDDLEWARE_FUNC = Callable[[RequestExchange, NEXT_CALL], Awaitable[RequestExchange]]


class MiddlewareType(str, Enum):
    BEARER = "bearer"
    DEFAULT_HEADERS = "default_headers"
    LOGGING = "logging"
    TIMING = "timing"
    JSON_BODY = "json_body"


class Middleware(Protocol):
    """
    Middleware transforms the RequestExchange before it reaches transport and
    inspects it on the way back. Uses a chain pattern: each middleware receives
    the exchange and the "next" function in the chain. It can transform the
    exchange, then call next or short-circuit.
    """

    async def __call__(
        self,
        request_exchange: RequestExchange,
        next_call: NEXT_CALL
    ) -> RequestExchange:
        """
        Transform the exchange and pass it to the next middleware.
        Args:
            request_exchange: Current request exchange.
            next_call: Function to call next middleware in the chain.

        Returns:
            The RequestExchange produced by the rest of the chain.
        """
        ...


class MiddlewareFactory(TypeAbstractFactory[MiddlewareType, Middleware]):
    """Registry for Middleware components"""
    ...


class MiddlewarePipeline:
    """
    Middleware interceptor pipeline. The nested call structure of the wrapper
    model lets every middleware act both before and after the terminal
    handler, while the RequestExchange container carries request and response
    state between the stages.
    """

    def __init__(self, middleware: list[MIDDLEWARE_FUNC] | None = None) -> None:
        self._middleware_list: list[MIDDLEWARE_FUNC] = list(middleware or [])

    def add(self, middleware: MIDDLEWARE_FUNC) -> None:
        self._middleware_list.append(middleware)

    def __len__(self) -> int:
        return len(self._middleware_list)

    async def execute(
        self,
        initial: RequestExchange,
        terminal_handler: NEXT_CALL,
    ) -> RequestExchange:
        """
        Nests the middleware by index in the order defined in _middleware_list.
        """

        async def _run(index: int, req: RequestExchange) -> RequestExchange:
            if index < len(self._middleware_list):
                mw = self._middleware_list[index]

                async def next_step(r: RequestExchange) -> RequestExchange:
                    return await _run(index + 1, r)

                return await mw(req, next_step)
            else:
                return await terminal_handler(req)

        return await _run(0, initial)
