import json
import tempfile
import unittest
from pathlib import Path
from typing import Callable, Dict
from urllib.parse import quote

from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
from yarl import URL

from mirror_gateway.api import CORS_HEADERS, create_app, error_response
from mirror_gateway.cache import ResponseCache
from mirror_gateway.config import AppConfig
from mirror_gateway.dispatch import DispatchCursor, DispatchEngine
from mirror_gateway.upstreams import FileUpstreamRegistry, UpstreamClient

TARGET = "https://api.example.com/v2/quote?symbol=ABC&range=1d"

Responder = Callable[[str], web.Response]


class FakeMirror:
    """A local upstream mirror that counts the requests it receives."""

    def __init__(self, respond: Responder) -> None:
        self.respond = respond
        self.calls: list[str] = []
        app = web.Application()
        app.router.add_get("/", self._handle)
        self.server = TestServer(app)

    async def _handle(self, request: web.Request) -> web.Response:
        target = request.query.get("url", "")
        self.calls.append(target)
        return self.respond(target)

    @property
    def base(self) -> str:
        return f"http://{self.server.host}:{self.server.port}"

    async def start(self) -> None:
        await self.server.start_server()

    async def close(self) -> None:
        await self.server.close()


def ok(body: str) -> Responder:
    return lambda target: web.Response(text=f"{body}:{target}")


def status(code: int, body: str) -> Responder:
    return lambda target: web.Response(status=code, text=body)


class GatewayAppTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.servers_file = Path(self._tmp.name) / "servers.txt"
        self.servers_file.write_text("", encoding="utf-8")
        self.mirrors: Dict[str, FakeMirror] = {}
        self.cache = ResponseCache(ttl_seconds=60)
        self.cursor = DispatchCursor(reset_interval_seconds=3600)
        self.upstream_client = UpstreamClient(AppConfig().upstream, self.cache)
        await self.upstream_client.start()
        engine = DispatchEngine(
            registry=FileUpstreamRegistry(self.servers_file),
            client=self.upstream_client,
            cache=self.cache,
            cursor=self.cursor,
        )
        self.client = TestClient(TestServer(create_app(engine=engine)))
        await self.client.start_server()

    async def asyncTearDown(self) -> None:
        await self.client.close()
        await self.upstream_client.close()
        for mirror in self.mirrors.values():
            await mirror.close()
        self._tmp.cleanup()

    async def use_mirrors(self, **responders: Responder) -> None:
        for name, respond in responders.items():
            mirror = FakeMirror(respond)
            await mirror.start()
            self.mirrors[name] = mirror
        self.servers_file.write_text(
            "\n".join(mirror.base for mirror in self.mirrors.values()) + "\n",
            encoding="utf-8",
        )

    def assert_cors(self, resp) -> None:
        for name, value in CORS_HEADERS.items():
            self.assertEqual(resp.headers.get(name), value)

    async def test_returns_first_upstream_body(self) -> None:
        await self.use_mirrors(a=ok("a"), b=ok("b"))

        resp = await self.client.get("/", params={"url": TARGET})

        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.text(), f"a:{TARGET}")
        self.assert_cors(resp)
        self.assertEqual(self.mirrors["a"].calls, [TARGET])
        self.assertEqual(self.mirrors["b"].calls, [])
        self.assertEqual(self.cursor.value, 1)

    async def test_double_encoded_parameter(self) -> None:
        await self.use_mirrors(a=ok("a"))
        twice = quote(quote(TARGET, safe=""), safe="")

        resp = await self.client.get(URL(f"/?url={twice}", encoded=True))

        self.assertEqual(resp.status, 200)
        self.assertEqual(self.mirrors["a"].calls, [TARGET])

    async def test_fails_over_past_rate_limited_and_challenged_mirrors(self) -> None:
        await self.use_mirrors(
            a=status(429, "Too Many Requests"),
            b=status(403, "solve this CAPTCHA"),
            c=ok("c"),
        )

        resp = await self.client.get("/", params={"url": TARGET})

        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.text(), f"c:{TARGET}")
        self.assertEqual([len(m.calls) for m in self.mirrors.values()], [1, 1, 1])

    async def test_identical_requests_make_one_upstream_call(self) -> None:
        await self.use_mirrors(a=ok("a"))

        first = await self.client.get("/", params={"url": TARGET})
        second = await self.client.get("/", params={"url": TARGET})

        self.assertEqual(await first.text(), await second.text())
        self.assertEqual(self.mirrors["a"].calls, [TARGET])

    async def test_missing_url_parameter_is_bad_request(self) -> None:
        await self.use_mirrors(a=ok("a"))

        resp = await self.client.get("/")

        self.assertEqual(resp.status, 400)
        self.assertEqual(resp.content_type, "application/json")
        self.assertEqual(
            json.loads(await resp.text()),
            {"message": "Invalid or missing URL parameter", "code": 400},
        )
        self.assert_cors(resp)
        self.assertEqual(self.mirrors["a"].calls, [])

    async def test_upstream_error_passes_status_and_body_through(self) -> None:
        await self.use_mirrors(a=status(404, "no such symbol"), b=ok("b"))

        resp = await self.client.get("/", params={"url": TARGET})

        self.assertEqual(resp.status, 404)
        self.assertEqual(json.loads(await resp.text()), {"message": "no such symbol", "code": 404})
        self.assert_cors(resp)
        self.assertEqual(self.mirrors["b"].calls, [])

    async def test_all_rate_limited_reflects_last_response(self) -> None:
        await self.use_mirrors(a=status(420, "enhance your calm"), b=status(429, "try later"))

        resp = await self.client.get("/", params={"url": TARGET})

        self.assertEqual(resp.status, 429)
        self.assertEqual(json.loads(await resp.text()), {"message": "try later", "code": 429})
        self.assertEqual(self.cursor.value, 0)

    async def test_empty_upstream_list_is_internal_error(self) -> None:
        resp = await self.client.get("/", params={"url": TARGET})

        self.assertEqual(resp.status, 500)
        payload = json.loads(await resp.text())
        self.assertEqual(payload["code"], 500)
        self.assertTrue(payload["message"])

    async def test_missing_servers_file_is_internal_error(self) -> None:
        self.servers_file.unlink()

        resp = await self.client.get("/", params={"url": TARGET})

        self.assertEqual(resp.status, 500)
        self.assertEqual(json.loads(await resp.text())["code"], 500)
        self.assert_cors(resp)

    async def test_unknown_route_still_carries_cors_headers(self) -> None:
        resp = await self.client.get("/elsewhere")

        self.assertEqual(resp.status, 404)
        self.assert_cors(resp)


class CreateAppTests(unittest.IsolatedAsyncioTestCase):
    async def test_builds_components_from_config_and_manages_client(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            servers_file = Path(tmp) / "servers.txt"
            servers_file.write_text("", encoding="utf-8")
            config = AppConfig.model_validate({"upstream": {"servers_file": str(servers_file)}})

            client = TestClient(TestServer(create_app(config)))
            await client.start_server()
            try:
                resp = await client.get("/", params={"url": TARGET})
                self.assertEqual(resp.status, 500)
            finally:
                await client.close()


class ErrorResponseTests(unittest.TestCase):
    def test_envelope(self) -> None:
        resp = error_response("boom", 502)

        self.assertEqual(resp.status, 502)
        self.assertEqual(json.loads(resp.text), {"message": "boom", "code": 502})

    def test_unencodable_message_degrades_to_plain_500(self) -> None:
        resp = error_response(object(), 502)  # type: ignore[arg-type]

        self.assertEqual(resp.status, 500)
        self.assertEqual(resp.text, "Internal Server Error")


if __name__ == "__main__":
    unittest.main()
