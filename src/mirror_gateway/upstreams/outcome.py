from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Union

import aiohttp

from mirror_gateway.errors import INTERNAL_ERROR_STATUS

CHALLENGE_MARKER = "CAPTCHA"
RATE_LIMIT_STATUSES = frozenset({420, 429})


@dataclass(frozen=True, slots=True)
class Success:
    body: bytes


@dataclass(frozen=True, slots=True)
class RateLimited:
    """Rate limited or challenged. `status` is None when the signal came from a transport error."""

    status: Optional[int]
    body: str


@dataclass(frozen=True, slots=True)
class TimedOut:
    error: str


@dataclass(frozen=True, slots=True)
class UpstreamFailure:
    status: int
    body: str


UpstreamOutcome = Union[Success, RateLimited, TimedOut, UpstreamFailure]


def _decode_body(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def _describe_exception(exc: BaseException) -> str:
    text = str(exc)
    return text if text else type(exc).__name__


def classify_exception(exc: BaseException) -> UpstreamOutcome:
    """Map a transport-level failure onto an outcome."""
    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ClientConnectorDNSError)):
        return TimedOut(error=_describe_exception(exc))

    text = _describe_exception(exc)
    if CHALLENGE_MARKER in text:
        return RateLimited(status=None, body=text)
    return UpstreamFailure(status=INTERNAL_ERROR_STATUS, body=text)


def classify_response(status: int, body: bytes) -> UpstreamOutcome:
    """Map an HTTP response onto an outcome."""
    if status == 200:
        return Success(body=body)

    text = _decode_body(body)
    if status in RATE_LIMIT_STATUSES or CHALLENGE_MARKER in text:
        return RateLimited(status=status, body=text)
    return UpstreamFailure(status=status, body=text)
