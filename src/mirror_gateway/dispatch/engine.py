from __future__ import annotations

import logging
from typing import Iterable, Optional
from urllib.parse import quote_plus

from mirror_gateway.cache.store import ResponseCache, cache_key
from mirror_gateway.dispatch.cursor import DispatchCursor
from mirror_gateway.errors import (
    INTERNAL_ERROR_STATUS,
    NoUpstreamAvailableError,
    UpstreamHTTPError,
    UpstreamRateLimitedError,
    UpstreamTimeoutError,
)
from mirror_gateway.upstreams.interfaces import UpstreamFetcher, UpstreamRegistry
from mirror_gateway.upstreams.outcome import (
    RateLimited,
    Success,
    TimedOut,
    UpstreamFailure,
    UpstreamOutcome,
)

logger = logging.getLogger(__name__)


def build_request_path(target_url: str) -> str:
    return f"/?url={quote_plus(target_url)}"


def candidate_indices(start: int, upstream_count: int, *, wrap_around: bool) -> Iterable[int]:
    """Trial order for one dispatch, beginning at `start`."""
    if wrap_around:
        return [(start + offset) % upstream_count for offset in range(upstream_count)]
    return range(start, upstream_count)


class DispatchEngine:
    """
    Forwards one request to the first upstream that answers it.

    Upstreams are tried in list order from the cursor onwards. Rate limits and CAPTCHA
    challenges move on to the next upstream; timeouts and any other upstream error end
    the dispatch at once. Only a success moves the cursor.
    """

    def __init__(
        self,
        *,
        registry: UpstreamRegistry,
        client: UpstreamFetcher,
        cache: ResponseCache,
        cursor: DispatchCursor,
        wrap_around: bool = False,
    ) -> None:
        self._registry = registry
        self._client = client
        self._cache = cache
        self._cursor = cursor
        self._wrap_around = wrap_around

    async def dispatch(self, target_url: str) -> bytes:
        upstreams = self._registry.list()
        upstream_count = len(upstreams)
        request_path = build_request_path(target_url)
        start = self._cursor.start_index(upstream_count)

        last_limited: Optional[RateLimited] = None
        attempts = 0
        for index in candidate_indices(start, upstream_count, wrap_around=self._wrap_around):
            attempts += 1
            upstream = upstreams[index]
            logger.info("Dispatching request. attempt=%d upstream=%s path=%s", attempts, upstream, request_path)
            outcome = await self._attempt(upstream, request_path)

            if isinstance(outcome, Success):
                self._cursor.advance_past(index, upstream_count)
                return outcome.body

            if isinstance(outcome, RateLimited):
                logger.warning(
                    "Upstream rate limited or challenged, moving to the next server. upstream=%s status=%s",
                    upstream,
                    outcome.status,
                )
                last_limited = outcome
                continue

            if isinstance(outcome, TimedOut):
                logger.error("Dispatch aborted by upstream timeout. upstream=%s error=%s", upstream, outcome.error)
                raise UpstreamTimeoutError(f"Upstream request timed out: {outcome.error}")

            if isinstance(outcome, UpstreamFailure):
                logger.error("Dispatch aborted by upstream error. upstream=%s status=%s", upstream, outcome.status)
                raise UpstreamHTTPError(outcome.status, outcome.body)

            raise TypeError(f"Unknown upstream outcome: {outcome!r}")

        if last_limited is not None:
            logger.error("All candidate upstreams were rate limited. attempts=%d", attempts)
            status = last_limited.status if last_limited.status is not None else INTERNAL_ERROR_STATUS
            raise UpstreamRateLimitedError(status, last_limited.body)

        logger.error("No upstream available for dispatch. upstream_count=%d start=%d", upstream_count, start)
        raise NoUpstreamAvailableError()

    async def _attempt(self, upstream: str, request_path: str) -> UpstreamOutcome:
        cached, found = self._cache.get(cache_key(upstream, request_path))
        if found:
            logger.debug("Response cache hit. upstream=%s path=%s", upstream, request_path)
            return Success(body=cached)
        return await self._client.fetch(upstream, request_path)
