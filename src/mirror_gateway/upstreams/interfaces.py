from __future__ import annotations

from mirror_gateway.upstreams.outcome import UpstreamOutcome


class UpstreamRegistry:
    def list(self) -> list[str]:
        """
        Return the ordered upstream base addresses as of now.

        Raises RegistryIOError when the source cannot be read. An empty source is a
        valid, empty result.
        """
        raise NotImplementedError


class UpstreamFetcher:
    async def fetch(self, upstream_base: str, request_path: str) -> UpstreamOutcome:
        """Make one attempt against one upstream and return the classified outcome."""
        raise NotImplementedError
