import asyncio
import inspect
import json
from types import TracebackType
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit

from uservault.request_execution.models import TransportRequest, TransportResponse
from uservault.request_execution.transport.base import TransportEngine


Responder = TransportResponse | list[TransportResponse] | Callable[[TransportRequest], Any]


def json_response(payload: Any, status: int = 200, headers: dict[str, str] | None = None) -> TransportResponse:
    return TransportResponse(
        status=status,
        headers={"Content-Type": "application/json"} | (headers or {}),
        body=json.dumps(payload).encode(),
    )


def text_response(text: str, status: int = 200, content_type: str = "text/plain; charset=utf-8") -> TransportResponse:
    return TransportResponse(status=status, headers={"Content-Type": content_type}, body=text.encode())


def html_response(page: str, status: int = 200) -> TransportResponse:
    return text_response(page, status, "text/html; charset=utf-8")


def timeout_response() -> TransportResponse:
    return TransportResponse(
        status=None,
        headers={},
        body=None,
        error="TimeoutError: request timed out",
        exception=asyncio.TimeoutError(),
        timed_out=True,
    )


def broken_response() -> TransportResponse:
    return TransportResponse(
        status=None, headers={}, body=None, error="ValueError: bad request", exception=ValueError("bad request")
    )


class ScriptedEngine(TransportEngine):
    """
    TransportEngine double. Routes are matched on method and URL path suffix;
    a list responder is consumed in order and its last entry repeats.
    Unmatched requests get a 404.
    """

    def __init__(self) -> None:
        self.requests: list[TransportRequest] = []
        self.cookies: dict[str, str] = {}
        self.entered = False
        self.exited = False
        self._routes: list[tuple[str, str, Responder]] = []

    def route(self, method: str, path_suffix: str, responder: Responder) -> "ScriptedEngine":
        self._routes.append((method.upper(), "/" + path_suffix.strip("/"), responder))
        return self

    async def __aenter__(self) -> "ScriptedEngine":
        self.entered = True
        return self

    async def __aexit__(
        self,
        exc_type: BaseException | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.exited = True

    def cookie(self, name: str) -> str | None:
        return self.cookies.get(name)

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        path = urlsplit(request.url).path.rstrip("/")

        for method, suffix, responder in self._routes:
            if method != request.method or not path.endswith(suffix):
                continue
            if isinstance(responder, list):
                return responder.pop(0) if len(responder) > 1 else responder[0]
            if isinstance(responder, TransportResponse):
                return responder
            outcome = responder(request)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome

        return json_response({"message": "Not Found"}, status=404)

    def calls_to(self, path_suffix: str, method: str | None = None) -> list[TransportRequest]:
        suffix = "/" + path_suffix.strip("/")
        return [
            r for r in self.requests
            if urlsplit(r.url).path.rstrip("/").endswith(suffix) and (method is None or r.method == method)
        ]


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)


async def no_sleep(_: float) -> None:
    await asyncio.sleep(0)


def gated(response: TransportResponse, gate: asyncio.Event) -> Callable[[TransportRequest], Awaitable[TransportResponse]]:
    async def respond(_: TransportRequest) -> TransportResponse:
        await gate.wait()
        return response
    return respond
