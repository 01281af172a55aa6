# Middleware components that observe but do not change the request or response
import logging
import time

from uservault.request_execution.models import RequestExchange
from uservault.request_execution.middleware.pipeline import (
    NEXT_CALL,
    Middleware,
    MiddlewareFactory,
    MiddlewareType
)


@MiddlewareFactory.register(MiddlewareType.LOGGING)
class LoggingMiddleware(Middleware):
    """
    Logs both directions of the pipeline. Lines go to the python logger and
    are also collected in RequestExchange.metadata["logs"].
    """

    def __init__(self, logger: logging.Logger | None = None, body_preview: int = 500) -> None:
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._body_preview = body_preview

    async def __call__(self, request_exchange: RequestExchange, next_call: NEXT_CALL) -> RequestExchange:
        logs = request_exchange.metadata.setdefault("logs", [])
        ctx = request_exchange.context
        line = f"-> {ctx.method.value} {ctx.url}"
        logs.append(line)
        self._logger.debug(line)

        result = await next_call(request_exchange)

        if result.status_code:
            line = f"<- {result.status_code} {result.context.url}"
            logs.append(line)
            if result.ok:
                self._logger.debug(line)
            else:
                preview = (result.body or b"")[: self._body_preview].decode("utf-8", errors="replace")
                self._logger.warning(f"{line} body={preview!r}")
        else:
            line = f"<- FAILED {result.context.url}: {result.error_message}"
            logs.append(line)
            self._logger.warning(line)

        return result


@MiddlewareFactory.register(MiddlewareType.TIMING)
class TimingMiddleware(Middleware):
    """
    Measure the elapsed time for the downstream pipeline and store
    the timing info in RequestExchange.metadata["timing"]
    """

    async def __call__(self, request_exchange: RequestExchange, next_call: NEXT_CALL) -> RequestExchange:
        start = time.monotonic()
        result: RequestExchange = await next_call(request_exchange)
        end = time.monotonic()
        duration = end - start

        timing = dict(result.metadata.get("timing", {}))
        timing["total_seconds"] = float(f"{duration:.3f}")
        result.metadata["timing"] = timing
        return result
