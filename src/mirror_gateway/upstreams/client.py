from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from mirror_gateway.cache.store import ResponseCache, cache_key
from mirror_gateway.config.models import UpstreamSettings
from mirror_gateway.upstreams.interfaces import UpstreamFetcher
from mirror_gateway.upstreams.outcome import (
    Success,
    UpstreamOutcome,
    classify_exception,
    classify_response,
)

logger = logging.getLogger(__name__)


class UpstreamClient(UpstreamFetcher):
    """
    Issues a single GET to one upstream and classifies the result.

    Retries and failover are the dispatcher's job; this class makes exactly one
    attempt per call. Successful bodies are written to the shared cache before
    returning.
    """

    def __init__(
        self,
        config: UpstreamSettings,
        cache: ResponseCache,
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config
        self._cache = cache
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> UpstreamClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self._config.timeout_seconds,
            connect=self._config.connect_timeout_seconds,
        )

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is not None:
            return
        self._session = aiohttp.ClientSession(timeout=self.timeout)
        self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def fetch(self, upstream_base: str, request_path: str) -> UpstreamOutcome:
        url = f"{upstream_base}{request_path}"
        if self._session is None:
            await self.start()
        assert self._session is not None

        try:
            async with self._session.get(url, timeout=self.timeout) as response:
                status = response.status
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            outcome = classify_exception(e)
            logger.debug("Upstream transport error. url=%s outcome=%s", url, type(outcome).__name__)
            return outcome

        outcome = classify_response(status, body)
        if isinstance(outcome, Success):
            self._cache.set(cache_key(upstream_base, request_path), outcome.body)
        logger.debug("Upstream responded. url=%s status=%s outcome=%s", url, status, type(outcome).__name__)
        return outcome
