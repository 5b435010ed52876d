from __future__ import annotations

from dataclasses import dataclass

from mirror_gateway.cache.store import ResponseCache
from mirror_gateway.config.models import AppConfig
from mirror_gateway.dispatch.cursor import DispatchCursor
from mirror_gateway.dispatch.engine import DispatchEngine
from mirror_gateway.upstreams.client import UpstreamClient
from mirror_gateway.upstreams.registry import FileUpstreamRegistry


@dataclass(frozen=True, slots=True)
class GatewayComponents:
    client: UpstreamClient
    engine: DispatchEngine


def build_components(config: AppConfig) -> GatewayComponents:
    """Wire the process-wide cache, cursor, client and engine from configuration."""
    cache = ResponseCache(
        ttl_seconds=config.cache.ttl_seconds,
        max_entries=config.cache.max_entries,
    )
    client = UpstreamClient(config=config.upstream, cache=cache)
    engine = DispatchEngine(
        registry=FileUpstreamRegistry(config.upstream.servers_file),
        client=client,
        cache=cache,
        cursor=DispatchCursor(reset_interval_seconds=config.dispatch.cursor_reset_seconds),
        wrap_around=config.dispatch.wrap_around,
    )
    return GatewayComponents(client=client, engine=engine)
