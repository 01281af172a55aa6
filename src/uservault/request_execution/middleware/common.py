# Standard middleware - these middleware objects mutate requests
from typing import Protocol
from aiohttp import FormData

from uservault.request_execution.models import RequestExchange
from uservault.request_execution.middleware.pipeline import (
    NEXT_CALL,
    Middleware,
    MiddlewareFactory,
    MiddlewareType,
)


class TokenSource(Protocol):
    @property
    def token(self) -> str | None: ...


@MiddlewareFactory.register(MiddlewareType.DEFAULT_HEADERS)
class DefaultHeadersMiddleware(Middleware):
    """
    Attach the JSON API defaults. Headers already present on the request
    (set by the caller) win over the defaults.
    """

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self.headers = headers or {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def __call__(self, request_exchange: RequestExchange, next_call: NEXT_CALL) -> RequestExchange:
        headers = dict(self.headers)
        if isinstance(request_exchange.context.data, FormData):
            # aiohttp writes the multipart boundary itself
            headers.pop("Content-Type", None)
        request_exchange.context.with_headers(headers, overwrite=False)
        return await next_call(request_exchange)


@MiddlewareFactory.register(MiddlewareType.BEARER)
class BearerTokenMiddleware(Middleware):
    """
    Inject the current session's bearer token into the Authorization header.
    The token is read at dispatch time, so a retry after a session change
    carries the new token. Requests marked skip_auth are left untouched, as
    are requests whose caller already supplied an Authorization header.
    """

    def __init__(self, session: TokenSource) -> None:
        self.session = session

    async def __call__(self, request_exchange: RequestExchange, next_call: NEXT_CALL) -> RequestExchange:
        ctx = request_exchange.context
        token = self.session.token

        if ctx.skip_auth or not token:
            request_exchange.metadata["auth"] = "none"
            return await next_call(request_exchange)

        if any(name.lower() == "authorization" for name in ctx.headers):
            request_exchange.metadata["auth"] = "caller"
            return await next_call(request_exchange)

        ctx.with_headers({"Authorization": f"Bearer {token}"})
        request_exchange.metadata["auth"] = "bearer"

        return await next_call(request_exchange)
