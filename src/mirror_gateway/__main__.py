from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from aiohttp import web

from mirror_gateway.api import create_app, error_response
from mirror_gateway.bootstrap import build_components
from mirror_gateway.config import ConfigLoadRequest, YamlConfigLoader
from mirror_gateway.config.models import AppConfig
from mirror_gateway.errors import GatewayError
from mirror_gateway.logging import init_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mirror-gateway", description="Failover gateway for upstream mirrors")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: run
    run_parser = subparsers.add_parser("run", help="Serve the gateway over HTTP")
    run_parser.add_argument(
        "--run-seconds",
        type=float,
        default=None,
        help="Serve for N seconds then exit (useful for smoke testing).",
    )

    # Command: fetch
    fetch_parser = subparsers.add_parser("fetch", help="Dispatch a single target URL and print the response body")
    fetch_parser.add_argument("url", help="Target URL to forward to the upstream mirrors")

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(
        yaml_path=args.config,
    )
    return await loader.load(request)


async def _serve(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)

    app = create_app(config)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=config.server.host, port=config.server.port)
    try:
        await site.start()
        logger.info(
            "Gateway listening. host=%s port=%s servers_file=%s cache_ttl_seconds=%s",
            config.server.host,
            config.server.port,
            config.upstream.servers_file,
            config.cache.ttl_seconds,
        )
        if args.run_seconds is not None:
            await asyncio.sleep(args.run_seconds)
        else:
            await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        logger.info("Gateway stopped.")


async def _fetch(args: argparse.Namespace) -> int:
    config = await _load_config(args)
    init_logging(config.logging)

    components = build_components(config)
    async with components.client:
        try:
            body = await components.engine.dispatch(args.url)
        except GatewayError as e:
            response = error_response(e.message, e.status)
            sys.stderr.write(response.text or "")
            sys.stderr.write("\n")
            return 1

    sys.stdout.buffer.write(body)
    sys.stdout.flush()
    return 0


async def _main_async() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "run":
        await _serve(args)
    elif args.command == "fetch":
        return await _fetch(args)
    return 0


def main() -> None:
    try:
        exit_code = asyncio.run(_main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
