from uservault.request_execution.executor import RequestExecutor
from uservault.request_execution.api_transport import (
    ApiTransport,
    QueryParams,
    UnauthorizedEvent,
    UnauthorizedHandler,
    encode_query,
)
from uservault.request_execution.models import (
    RequestContext,
    RequestExchange,
    RequestType,
    TransportRequest,
    TransportResponse,
)
from uservault.request_execution.middleware import (
    MIDDLEWARE_FUNC,
    NEXT_CALL,
    BearerTokenMiddleware,
    DefaultHeadersMiddleware,
    JsonResponseMiddleware,
    LoggingMiddleware,
    Middleware,
    MiddlewareFactory,
    MiddlewarePipeline,
    MiddlewareType,
    TimingMiddleware,
)
from uservault.request_execution.flight import (
    AdaptiveRateLimiter,
    FlightController,
    TicketRegistry,
)

__all__ = [
    "RequestExecutor",
    "ApiTransport",
    "QueryParams",
    "UnauthorizedEvent",
    "UnauthorizedHandler",
    "encode_query",
    "RequestContext",
    "RequestExchange",
    "RequestType",
    "TransportRequest",
    "TransportResponse",
    "MIDDLEWARE_FUNC",
    "NEXT_CALL",
    "BearerTokenMiddleware",
    "DefaultHeadersMiddleware",
    "JsonResponseMiddleware",
    "LoggingMiddleware",
    "Middleware",
    "MiddlewareFactory",
    "MiddlewarePipeline",
    "MiddlewareType",
    "TimingMiddleware",
    "AdaptiveRateLimiter",
    "FlightController",
    "TicketRegistry",
]
