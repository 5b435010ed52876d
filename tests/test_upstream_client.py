import asyncio
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from mirror_gateway.cache import ResponseCache, cache_key
from mirror_gateway.config import UpstreamSettings
from mirror_gateway.upstreams import RateLimited, Success, TimedOut, UpstreamClient, UpstreamFailure


def _mirror_app(received: list[str]) -> web.Application:
    async def forward(request: web.Request) -> web.Response:
        target = request.query.get("url", "")
        received.append(target)
        if target.endswith("/ok"):
            return web.Response(body=b"mirror says hi")
        if target.endswith("/limited"):
            return web.Response(status=429, text="Too Many Requests")
        if target.endswith("/challenge"):
            return web.Response(status=403, text="<form>CAPTCHA</form>")
        if target.endswith("/missing"):
            return web.Response(status=404, text="not here")
        if target.endswith("/slow"):
            await asyncio.sleep(2)
            return web.Response(text="too late")
        return web.Response(status=500, text="unexpected")

    app = web.Application()
    app.router.add_get("/", forward)
    return app


class UpstreamClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.received: list[str] = []
        self.server = TestServer(_mirror_app(self.received))
        await self.server.start_server()
        self.base = f"http://{self.server.host}:{self.server.port}"
        self.cache = ResponseCache(ttl_seconds=60)
        self.client = UpstreamClient(
            UpstreamSettings(timeout_seconds=0.5, connect_timeout_seconds=0.5),
            self.cache,
        )
        await self.client.start()

    async def asyncTearDown(self) -> None:
        await self.client.close()
        await self.server.close()

    async def test_success_is_cached_under_base_and_path(self) -> None:
        path = "/?url=https%3A%2F%2Fx.test%2Fok"

        outcome = await self.client.fetch(self.base, path)

        self.assertEqual(outcome, Success(body=b"mirror says hi"))
        self.assertEqual(self.received, ["https://x.test/ok"])
        self.assertEqual(self.cache.get(cache_key(self.base, path)), (b"mirror says hi", True))

    async def test_status_429_is_rate_limited(self) -> None:
        outcome = await self.client.fetch(self.base, "/?url=https%3A%2F%2Fx.test%2Flimited")

        self.assertEqual(outcome, RateLimited(status=429, body="Too Many Requests"))
        self.assertEqual(len(self.cache), 0)

    async def test_captcha_body_is_rate_limited(self) -> None:
        outcome = await self.client.fetch(self.base, "/?url=https%3A%2F%2Fx.test%2Fchallenge")

        self.assertEqual(outcome, RateLimited(status=403, body="<form>CAPTCHA</form>"))

    async def test_other_status_is_upstream_failure(self) -> None:
        outcome = await self.client.fetch(self.base, "/?url=https%3A%2F%2Fx.test%2Fmissing")

        self.assertEqual(outcome, UpstreamFailure(status=404, body="not here"))
        self.assertEqual(len(self.cache), 0)

    async def test_slow_upstream_times_out(self) -> None:
        outcome = await self.client.fetch(self.base, "/?url=https%3A%2F%2Fx.test%2Fslow")

        self.assertIsInstance(outcome, TimedOut)

    async def test_refused_connection_is_internal_failure(self) -> None:
        # Port of a server that has been shut down.
        closed = TestServer(web.Application())
        await closed.start_server()
        dead_base = f"http://{closed.host}:{closed.port}"
        await closed.close()

        outcome = await self.client.fetch(dead_base, "/?url=https%3A%2F%2Fx.test%2Fok")

        self.assertIsInstance(outcome, UpstreamFailure)
        self.assertEqual(outcome.status, 500)


class UpstreamClientLifecycleTests(unittest.IsolatedAsyncioTestCase):
    async def test_context_manager_opens_and_closes_session(self) -> None:
        client = UpstreamClient(UpstreamSettings(), ResponseCache())

        async with client:
            self.assertIsNotNone(client._session)

        self.assertIsNone(client._session)

    async def test_timeout_follows_settings(self) -> None:
        client = UpstreamClient(UpstreamSettings(timeout_seconds=7, connect_timeout_seconds=2), ResponseCache())

        self.assertEqual(client.timeout.total, 7)
        self.assertEqual(client.timeout.connect, 2)


if __name__ == "__main__":
    unittest.main()
