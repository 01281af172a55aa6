from typing import Callable

from uservault.request_execution.transport.base import TransportEngine
from uservault.request_execution.models import RequestContext, RequestExchange, TransportRequest
from uservault.request_execution.middleware.pipeline import MIDDLEWARE_FUNC, MiddlewarePipeline


class RequestExecutor:
    """
    Thin orchestration layer between the typed client calls and the
    Transport layer. RequestExecutor is responsible for the following:
    • Owns and runs the middleware pipeline.
    • Converts the semantic RequestContext into a wire-level TransportRequest.
    • Copies the TransportResponse back onto the RequestExchange.
    It never raises for HTTP-level failures; classification happens above it.
    """

    def __init__(
        self,
        transport: TransportEngine,
        middleware_factories: list[Callable[[], MIDDLEWARE_FUNC]],
    ) -> None:
        self.transport = transport
        self._middleware_factories = middleware_factories

    def _build_pipeline(self) -> MiddlewarePipeline:
        pipeline = MiddlewarePipeline()
        for factory in self._middleware_factories:
            pipeline.add(factory())
        return pipeline

    async def send(self, context: RequestContext) -> RequestExchange:
        """
        Execute a single HTTP request defined by the RequestContext through
        the interceptor middleware pipeline and underlying Transport layer.
        """

        pipeline = self._build_pipeline()

        async def terminal(req: RequestExchange) -> RequestExchange:
            transport_request = TransportRequest(
                method=req.context.method.value,
                url=req.context.url,
                headers=req.context.headers,
                json=req.context.json,
                data=req.context.data,
                timeout=req.context.timeout,
            )
            transport_response = await self.transport.send(transport_request)

            req.status_code = transport_response.status
            req.headers = dict(transport_response.headers or {})
            req.body = transport_response.body

            if transport_response.error:
                req.success = False
                req.error_message = transport_response.error
                req.exception = transport_response.exception
                req.timed_out = transport_response.timed_out
            else:
                req.success = req.ok

            return req

        initial = RequestExchange(context=context)
        return await pipeline.execute(initial, terminal)
