"""Integration tests for AiohttpEngine against a local aiohttp server"""

import asyncio
import json
import pytest
from aiohttp import FormData, web

from uservault.config.models.transport import TcpConnectionConfig
from uservault.request_execution.models import TransportRequest
from uservault.request_execution.transport.engine import AiohttpEngine


@pytest.fixture
def tcp_config():
    return TcpConnectionConfig(limit=10, limit_per_host=5)


def create_test_app():
    app = web.Application()

    async def handle_get(request):
        return web.json_response({"method": "GET", "query": dict(request.query)})

    async def handle_post(request):
        return web.json_response({"method": "POST", "received": await request.json()})

    async def handle_headers(request):
        return web.json_response(dict(request.headers))

    async def handle_upload(request):
        form = await request.post()
        upload = form["media_file"]
        return web.json_response({"filename": upload.filename, "size": len(upload.file.read())})

    async def handle_set_cookie(request):
        response = web.Response(text="<html></html>", content_type="text/html")
        response.set_cookie("XSRF-TOKEN", "abc%3Ddef", path="/")
        return response

    async def handle_echo_cookie(request):
        return web.json_response({"xsrf": request.cookies.get("XSRF-TOKEN")})

    async def handle_slow(request):
        await asyncio.sleep(0.5)
        return web.json_response({"slow": True})

    app.router.add_get("/api/get", handle_get)
    app.router.add_post("/api/post", handle_post)
    app.router.add_get("/api/headers", handle_headers)
    app.router.add_post("/api/upload", handle_upload)
    app.router.add_get("/page", handle_set_cookie)
    app.router.add_get("/api/cookie", handle_echo_cookie)
    app.router.add_get("/api/slow", handle_slow)
    return app


@pytest.mark.integration
@pytest.mark.transport
@pytest.mark.asyncio
class TestAiohttpEngineHttpCommunication:

    async def test_get_request_returns_response(self, aiohttp_client, tcp_config):
        """
        GIVEN an AiohttpEngine connected to a test server
        WHEN a GET request is made
        THEN the raw response carries the status and body
        """
        client = await aiohttp_client(create_test_app())
        base_url = str(client.make_url("")).rstrip("/")

        async with AiohttpEngine(connector_config=tcp_config) as engine:
            response = await engine.send(TransportRequest("GET", f"{base_url}/api/get?filter[cursor]=0", {}))

        assert response.status == 200
        assert response.error is None
        assert json.loads(response.body)["query"] == {"filter[cursor]": "0"}

    async def test_post_request_sends_json_body(self, aiohttp_client, tcp_config):
        client = await aiohttp_client(create_test_app())
        base_url = str(client.make_url("")).rstrip("/")

        async with AiohttpEngine(connector_config=tcp_config) as engine:
            response = await engine.send(
                TransportRequest("POST", f"{base_url}/api/post", {}, json={"key": "value", "number": 42})
            )

        assert json.loads(response.body)["received"] == {"key": "value", "number": 42}

    async def test_session_user_agent(self, aiohttp_client, tcp_config):
        client = await aiohttp_client(create_test_app())
        base_url = str(client.make_url("")).rstrip("/")

        async with AiohttpEngine(connector_config=tcp_config, user_agent="uservault-tests/1.0") as engine:
            response = await engine.send(TransportRequest("GET", f"{base_url}/api/headers", {}))

        assert json.loads(response.body)["User-Agent"] == "uservault-tests/1.0"

    async def test_multipart_upload(self, aiohttp_client, tcp_config):
        client = await aiohttp_client(create_test_app())
        base_url = str(client.make_url("")).rstrip("/")
        form = FormData()
        form.add_field("media_file", b"0123456789", filename="clip.mp4", content_type="video/mp4")

        async with AiohttpEngine(connector_config=tcp_config) as engine:
            response = await engine.send(TransportRequest("POST", f"{base_url}/api/upload", {}, data=form))

        assert json.loads(response.body) == {"filename": "clip.mp4", "size": 10}

    async def test_cookie_jar_carries_cookies(self, aiohttp_client, tcp_config):
        """
        GIVEN a page response that sets a cookie on an IP-address host
        WHEN the engine accepts unsafe cookies
        THEN the cookie is readable and sent with the next request
        """
        client = await aiohttp_client(create_test_app())
        base_url = str(client.make_url("")).rstrip("/")

        async with AiohttpEngine(connector_config=tcp_config, unsafe_cookies=True) as engine:
            await engine.send(TransportRequest("GET", f"{base_url}/page", {}))
            echoed = await engine.send(TransportRequest("GET", f"{base_url}/api/cookie", {}))

            assert engine.cookie("XSRF-TOKEN") == "abc%3Ddef"
            assert engine.cookie("missing") is None

        assert json.loads(echoed.body)["xsrf"] == "abc%3Ddef"

    async def test_timeout_is_reported(self, aiohttp_client, tcp_config):
        client = await aiohttp_client(create_test_app())
        base_url = str(client.make_url("")).rstrip("/")

        async with AiohttpEngine(connector_config=tcp_config) as engine:
            response = await engine.send(TransportRequest("GET", f"{base_url}/api/slow", {}, timeout=0.1))

        assert response.status is None
        assert response.timed_out
        assert isinstance(response.exception, asyncio.TimeoutError)

    async def test_connection_failure_is_reported(self, tcp_config):
        async with AiohttpEngine(connector_config=tcp_config) as engine:
            response = await engine.send(TransportRequest("GET", "http://127.0.0.1:1/api/get", {}))

        assert response.status is None
        assert response.error
        assert not response.timed_out

    async def test_send_outside_context(self, tcp_config):
        engine = AiohttpEngine(connector_config=tcp_config)

        with pytest.raises(RuntimeError, match="async context manager"):
            await engine.send(TransportRequest("GET", "http://127.0.0.1:1/", {}))
