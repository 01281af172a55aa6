from uservault.request_execution.middleware.pipeline import (
    MIDDLEWARE_FUNC,
    NEXT_CALL,
    Middleware,
    MiddlewareFactory,
    MiddlewarePipeline,
    MiddlewareType,
)
from uservault.request_execution.middleware.common import (
    BearerTokenMiddleware,
    DefaultHeadersMiddleware,
)
from uservault.request_execution.middleware.interceptors import JsonResponseMiddleware
from uservault.request_execution.middleware.listeners import LoggingMiddleware, TimingMiddleware

__all__ = [
    "MIDDLEWARE_FUNC",
    "NEXT_CALL",
    "Middleware",
    "MiddlewareFactory",
    "MiddlewarePipeline",
    "MiddlewareType",
    "BearerTokenMiddleware",
    "DefaultHeadersMiddleware",
    "JsonResponseMiddleware",
    "LoggingMiddleware",
    "TimingMiddleware",
]
