import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import quote

import aiohttp

from uservault.core.exceptions import ApiError, NetworkFailure
from uservault.request_execution.executor import RequestExecutor
from uservault.request_execution.models import RequestContext, RequestExchange, RequestType


QueryValue = str | int | float | bool | None
QueryParams = Mapping[str, QueryValue | Mapping[str, QueryValue]]


@dataclass(frozen=True)
class UnauthorizedEvent:
    endpoint: str
    status: int
    body_text: str | None = None


UnauthorizedHandler = Callable[[UnauthorizedEvent], None | Awaitable[None]]


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe="")


def encode_query(params: QueryParams | None) -> str:
    """
    Serialize query parameters. Record-valued params are flattened to
    bracket notation (filter[cursor]=0); None values are dropped.
    """
    if not params:
        return ""

    parts: list[str] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            for sub_key, sub_value in value.items():
                if sub_value is None:
                    continue
                parts.append(f"{_encode(key)}[{_encode(sub_key)}]={_encode(sub_value)}")
        else:
            parts.append(f"{_encode(key)}={_encode(value)}")

    return "&".join(parts)


class ApiTransport:
    """
    Builds URLs, runs one request through the RequestExecutor and classifies
    the outcome:
      • 2xx with a JSON content type -> parsed JSON
      • 2xx with any other content type -> raw text (plain-text tokens, HTML pages)
      • non-2xx -> ApiError with the server's `message`/`error` when present
      • no response at all -> NetworkFailure

    A 401 additionally notifies the registered unauthorized handler; the
    transport itself never clears session state.
    """

    TRANSIENT_EXCEPTIONS = (
        aiohttp.ClientConnectionError,
        aiohttp.ClientPayloadError,
        aiohttp.ServerTimeoutError,
        asyncio.TimeoutError,
    )

    def __init__(
        self,
        executor: RequestExecutor,
        base_url: str,
        default_timeout: float | None = 20.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._executor = executor
        self._base_url = base_url
        self._default_timeout = default_timeout
        self._unauthorized_handler: UnauthorizedHandler | None = None
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def engine(self):
        return self._executor.transport

    def set_unauthorized_handler(self, handler: UnauthorizedHandler | None) -> None:
        self._unauthorized_handler = handler

    def build_url(self, endpoint: str, params: QueryParams | None = None) -> str:
        if endpoint.startswith(("http://", "https://")):
            url = endpoint
        else:
            base = self._base_url if self._base_url.endswith("/") else f"{self._base_url}/"
            url = base + endpoint.lstrip("/")

        query = encode_query(params)
        if query:
            url += ("&" if "?" in url else "?") + query
        return url

    def build_context(
        self,
        endpoint: str,
        method: RequestType | str = RequestType.GET,
        params: QueryParams | None = None,
        body: Any | None = None,
        headers: dict[str, str] | None = None,
        skip_auth: bool = False,
        timeout: float | None = None,
    ) -> RequestContext:
        method = RequestType(method.upper()) if isinstance(method, str) else method

        json_body = None
        data = None
        if isinstance(body, (str, bytes, aiohttp.FormData)):
            data = body
        elif body is not None:
            json_body = body

        return RequestContext(
            method=method,
            url=self.build_url(endpoint, params),
            endpoint=endpoint,
            headers=dict(headers or {}),
            json=json_body,
            data=data,
            timeout=timeout if timeout is not None else self._default_timeout,
            skip_auth=skip_auth,
        )

    async def execute(
        self,
        endpoint: str,
        method: RequestType | str = RequestType.GET,
        params: QueryParams | None = None,
        body: Any | None = None,
        headers: dict[str, str] | None = None,
        skip_auth: bool = False,
        timeout: float | None = None,
    ) -> Any:
        context = self.build_context(endpoint, method, params, body, headers, skip_auth, timeout)
        return await self.dispatch(context)

    async def dispatch(self, context: RequestContext) -> Any:
        """Perform exactly one physical call for an already-built context."""
        exchange = await self._executor.send(context)
        return await self.classify(exchange)

    async def classify(self, exchange: RequestExchange) -> Any:
        ctx = exchange.context

        if exchange.status_code is None:
            raise NetworkFailure(
                exchange.error_message or f"No response from {ctx.url}",
                transient=self._is_transient(exchange),
            )

        if exchange.ok:
            if exchange.is_json and exchange.json_body is not None:
                return exchange.json_body
            return exchange.body_text if exchange.body_text is not None else ""

        body_text = exchange.body_text or ""
        if exchange.status_code == 401 and not ctx.skip_auth:
            await self._notify_unauthorized(UnauthorizedEvent(ctx.endpoint, 401, body_text))

        raise ApiError(
            exchange.status_code,
            self._error_message(exchange.status_code, body_text),
            endpoint=ctx.endpoint,
            body_text=body_text,
            content_type=exchange.content_type,
            retry_after=self._retry_after(exchange.header("Retry-After")),
        )

    def _is_transient(self, exchange: RequestExchange) -> bool:
        return exchange.timed_out or isinstance(exchange.exception, self.TRANSIENT_EXCEPTIONS)

    @staticmethod
    def _error_message(status: int, body_text: str) -> str:
        try:
            parsed = json.loads(body_text)
        except (TypeError, ValueError):
            return f"API error: {status}"

        if isinstance(parsed, dict):
            for field in ("message", "error"):
                value = parsed.get(field)
                if isinstance(value, str) and value:
                    return value
        return f"API error: {status}"

    @staticmethod
    def _retry_after(value: str | None) -> float | None:
        if value is None:
            return None
        try:
            seconds = float(value.strip())
        except ValueError:
            return None
        return seconds if seconds >= 0 else None

    async def _notify_unauthorized(self, event: UnauthorizedEvent) -> None:
        handler = self._unauthorized_handler
        if handler is None:
            return

        self._logger.warning(f"Unauthorized response from {event.endpoint}")
        try:
            outcome = handler(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            self._logger.exception(f"Unauthorized handler failed for {event.endpoint}")
