"""Unit tests for middleware components and the pipeline"""

import logging
import pytest
from aiohttp import FormData

from uservault.request_execution.middleware import (
    BearerTokenMiddleware,
    DefaultHeadersMiddleware,
    JsonResponseMiddleware,
    LoggingMiddleware,
    MiddlewarePipeline,
    TimingMiddleware,
)
from uservault.request_execution.models import RequestContext, RequestExchange, RequestType


def exchange(**context_kwargs) -> RequestExchange:
    context_kwargs.setdefault("method", RequestType.GET)
    context_kwargs.setdefault("url", "https://api.test/api/timeline/feed")
    return RequestExchange(context=RequestContext(**context_kwargs))


def responding(status=200, body=b"", content_type="application/json"):
    async def terminal(req: RequestExchange) -> RequestExchange:
        req.status_code = status
        req.headers = {"Content-Type": content_type}
        req.body = body
        return req
    return terminal


@pytest.mark.unit
@pytest.mark.middleware
@pytest.mark.asyncio
class TestPipeline:

    async def test_middleware_runs_in_order_around_terminal(self):
        """
        GIVEN two middleware recording entry and exit
        WHEN the pipeline executes
        THEN they nest in registration order around the terminal handler
        """
        trace = []

        def recorder(name):
            async def mw(req, next_call):
                trace.append(f"{name}:in")
                result = await next_call(req)
                trace.append(f"{name}:out")
                return result
            return mw

        async def terminal(req):
            trace.append("terminal")
            return req

        pipeline = MiddlewarePipeline([recorder("a")])
        pipeline.add(recorder("b"))
        await pipeline.execute(exchange(), terminal)

        assert len(pipeline) == 2
        assert trace == ["a:in", "b:in", "terminal", "b:out", "a:out"]


@pytest.mark.unit
@pytest.mark.middleware
@pytest.mark.asyncio
class TestHeaderMiddleware:

    async def test_defaults_do_not_override_caller_headers(self):
        req = exchange(headers={"Accept": "text/html"})

        result = await DefaultHeadersMiddleware()(req, responding())

        assert result.context.headers["Accept"] == "text/html"
        assert result.context.headers["Content-Type"] == "application/json"

    async def test_multipart_body_keeps_its_own_content_type(self):
        form = FormData()
        form.add_field("media_file", b"\x89PNG", filename="a.png", content_type="image/png")
        req = exchange(method=RequestType.POST, data=form)

        result = await DefaultHeadersMiddleware()(req, responding())

        assert "Content-Type" not in result.context.headers
        assert result.context.headers["Accept"] == "application/json"

    async def test_bearer_token_is_read_at_dispatch(self, session, token):
        middleware = BearerTokenMiddleware(session)
        session.token = token

        result = await middleware(exchange(), responding())

        assert result.context.headers["Authorization"] == f"Bearer {token}"
        assert result.metadata["auth"] == "bearer"

    async def test_bearer_skipped_without_token(self, session):
        result = await BearerTokenMiddleware(session)(exchange(), responding())

        assert "Authorization" not in result.context.headers
        assert result.metadata["auth"] == "none"

    async def test_bearer_skipped_for_skip_auth(self, session, token):
        session.token = token

        result = await BearerTokenMiddleware(session)(exchange(skip_auth=True), responding())

        assert "Authorization" not in result.context.headers

    async def test_caller_authorization_wins(self, session, token):
        session.token = token
        req = exchange(headers={"Authorization": "Bearer flow-token"})

        result = await BearerTokenMiddleware(session)(req, responding())

        assert result.context.headers["Authorization"] == "Bearer flow-token"
        assert result.metadata["auth"] == "caller"


@pytest.mark.unit
@pytest.mark.middleware
@pytest.mark.asyncio
class TestResponseMiddleware:

    async def test_json_body_is_parsed(self):
        result = await JsonResponseMiddleware()(exchange(), responding(body=b'{"ok": true}'))

        assert result.body_text == '{"ok": true}'
        assert result.json_body == {"ok": True}
        assert result.metadata["json"]["valid"] is True

    async def test_invalid_json_is_kept_as_text(self):
        result = await JsonResponseMiddleware()(exchange(), responding(body=b"{not json"))

        assert result.json_body is None
        assert result.body_text == "{not json"
        assert result.metadata["json"]["valid"] is False

    async def test_non_json_content_type_is_not_parsed(self):
        result = await JsonResponseMiddleware()(
            exchange(), responding(body=b"<html></html>", content_type="text/html")
        )

        assert result.json_body is None
        assert result.body_text == "<html></html>"

    async def test_missing_body(self):
        async def failed(req):
            req.error_message = "boom"
            return req

        result = await JsonResponseMiddleware()(exchange(), failed)

        assert result.body_text is None

    async def test_timing_records_duration(self):
        result = await TimingMiddleware()(exchange(), responding())

        assert result.metadata["timing"]["total_seconds"] >= 0

    async def test_logging_collects_lines(self, caplog):
        with caplog.at_level(logging.DEBUG):
            result = await LoggingMiddleware()(exchange(), responding(status=500, body=b'{"message":"x"}'))

        assert result.metadata["logs"] == [
            "-> GET https://api.test/api/timeline/feed",
            "<- 500 https://api.test/api/timeline/feed",
        ]
        assert any("body=" in record.getMessage() for record in caplog.records)

    async def test_logging_failed_exchange(self):
        async def failed(req):
            req.error_message = "connection refused"
            return req

        result = await LoggingMiddleware()(exchange(), failed)

        assert result.metadata["logs"][-1] == "<- FAILED https://api.test/api/timeline/feed: connection refused"
