from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable, Optional

from aiohttp import web

from mirror_gateway.api.params import extract_target_url
from mirror_gateway.bootstrap import build_components
from mirror_gateway.config.models import AppConfig
from mirror_gateway.dispatch.engine import DispatchEngine
from mirror_gateway.errors import INTERNAL_ERROR_STATUS, EncodingError, GatewayError
from mirror_gateway.upstreams.client import UpstreamClient

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept",
}

DISPATCH_ENGINE_KEY = web.AppKey("dispatch_engine", DispatchEngine)
UPSTREAM_CLIENT_KEY = web.AppKey("upstream_client", UpstreamClient)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def encode_error_body(message: str, status: int) -> str:
    try:
        return json.dumps({"message": message, "code": status})
    except (TypeError, ValueError) as e:
        raise EncodingError() from e


def error_response(message: str, status: int) -> web.Response:
    try:
        payload = encode_error_body(message, status)
    except EncodingError as e:
        logger.exception("Failed to encode error response. status=%s", status)
        return web.Response(status=e.status, text=e.message)
    return web.Response(status=status, text=payload, content_type="application/json")


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise
    except Exception:
        logger.exception("Unhandled error while serving request. path=%s", request.path)
        response = error_response("Internal Server Error", INTERNAL_ERROR_STATUS)
    response.headers.update(CORS_HEADERS)
    return response


async def handle_forward(request: web.Request) -> web.Response:
    engine = request.app[DISPATCH_ENGINE_KEY]
    try:
        target_url = extract_target_url(request.rel_url.raw_query_string)
    except GatewayError as e:
        logger.info("Rejected request with invalid URL parameter. query=%s", request.rel_url.raw_query_string)
        return error_response(e.message, e.status)

    try:
        body = await engine.dispatch(target_url)
    except GatewayError as e:
        return error_response(e.message, e.status)

    return web.Response(body=body, content_type="text/plain", charset="utf-8")


async def _start_client(app: web.Application) -> None:
    await app[UPSTREAM_CLIENT_KEY].start()


async def _close_client(app: web.Application) -> None:
    await app[UPSTREAM_CLIENT_KEY].close()


def create_app(
    config: Optional[AppConfig] = None,
    *,
    engine: Optional[DispatchEngine] = None,
) -> web.Application:
    """
    Build the gateway web application.

    When `engine` is given it is used as-is and its collaborators are left to the
    caller; otherwise the full component graph is built from `config`.
    """
    app = web.Application(middlewares=[cors_middleware])

    if engine is None:
        components = build_components(config if config is not None else AppConfig())
        engine = components.engine
        app[UPSTREAM_CLIENT_KEY] = components.client
        app.on_startup.append(_start_client)
        app.on_cleanup.append(_close_client)

    app[DISPATCH_ENGINE_KEY] = engine
    app.router.add_get("/", handle_forward)
    return app
