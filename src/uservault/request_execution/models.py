from __future__ import annotations
import hashlib
import json
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Mapping


class RequestType(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass
class RequestContext:
    """
    A container to hold metadata for a HTTP request.
    • method: HTTP request type - GET, POST, etc
    • url: fully-qualified URL, query string included
    • endpoint: the logical endpoint the caller asked for (used for 401 reporting)
    • headers: Request headers
    • json: Payload in JSON format
    • data: Payload sent as raw data
    • timeout: per-call timeout in seconds, None uses the engine default
    • skip_auth: do not attach the bearer token and do not report 401s
    • metadata: Metadata associated with the HTTP request
    """
    method: RequestType
    url: str
    endpoint: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    json: Any | None = None
    data: Any | None = None
    timeout: float | None = None
    skip_auth: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def with_headers(self, new_headers: dict[str, str], overwrite: bool = True) -> "RequestContext":
        """Return context with headers added. Existing headers win when overwrite is False."""
        if overwrite:
            self.headers = self.headers | new_headers
        else:
            self.headers = new_headers | self.headers
        return self

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the request for in-flight coalescing: method, URL and body digest."""
        return (self.method.value, self.url, self.body_digest)

    @property
    def body_digest(self) -> str:
        if self.json is not None:
            raw = json.dumps(self.json, sort_keys=True, separators=(",", ":"), default=str).encode()
        elif isinstance(self.data, str):
            raw = self.data.encode()
        elif isinstance(self.data, bytes):
            raw = self.data
        else:
            return ""
        return hashlib.sha256(raw).hexdigest()

    @property
    def coalescable(self) -> bool:
        """Multipart and other streamed bodies are single-use and never shared."""
        return self.data is None or isinstance(self.data, (str, bytes))


@dataclass
class RequestExchange:
    """
    High-level data container of a single HTTP request as it travels
    through the middleware pipeline.
    • context: original RequestContext, possibly modified by middleware
    • status_code: HTTP status response code, None if nothing was received
    • headers: response headers
    • body: raw response body (bytes), if any
    • body_text: decoded response body
    • json_body: parsed JSON body when the response declared a JSON content type
    • success: semantic success flag
    • error_message: error description
    • exception: the transport-level exception when no response was received
    • timed_out: the transport gave up waiting for a response
    • attempts: how many times the request was attempted
    • metadata: logs, timing and other diagnostics
    """
    context: RequestContext
    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    body_text: str | None = None
    json_body: Any | None = None
    success: bool = True
    error_message: str | None = None
    exception: BaseException | None = None
    timed_out: bool = False
    attempts: int = 1
    metadata: dict = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""

    @property
    def is_json(self) -> bool:
        return "application/json" in self.content_type.lower()

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass
class TransportRequest:
    """
    Wire-level HTTP request container for the Transport Layer.
    This data structure allows for the decoupling of the HTTP
    engine from the rest of the client.
    """
    method: str
    url: str
    headers: dict[str, str]
    params: dict[str, Any] | None = None
    json: Any | None = None
    data: Any | None = None
    timeout: float | None = None


@dataclass
class TransportResponse:
    """
    Wire-level HTTP response container for the Transport Layer.
    A response that never arrived carries status=None and the error.
    """
    status: int | None
    headers: Mapping[str, str] | None
    body: bytes | None
    error: str | None = None
    exception: BaseException | None = None
    timed_out: bool = False
