"""Upstream mirrors: where they are, how to call them, and how to read the answer."""

from mirror_gateway.upstreams.client import UpstreamClient
from mirror_gateway.upstreams.interfaces import UpstreamFetcher, UpstreamRegistry
from mirror_gateway.upstreams.outcome import (
    RateLimited,
    Success,
    TimedOut,
    UpstreamFailure,
    UpstreamOutcome,
    classify_exception,
    classify_response,
)
from mirror_gateway.upstreams.registry import FileUpstreamRegistry, parse_upstream_list

__all__ = [
    "FileUpstreamRegistry",
    "RateLimited",
    "Success",
    "TimedOut",
    "UpstreamClient",
    "UpstreamFailure",
    "UpstreamFetcher",
    "UpstreamOutcome",
    "UpstreamRegistry",
    "classify_exception",
    "classify_response",
    "parse_upstream_list",
]
