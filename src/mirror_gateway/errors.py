from __future__ import annotations

INTERNAL_ERROR_STATUS = 500
INVALID_URL_PARAMETER_MESSAGE = "Invalid or missing URL parameter"


class GatewayError(Exception):
    """Base error carrying the HTTP status and message surfaced to the caller."""

    status: int = INTERNAL_ERROR_STATUS

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ParamError(GatewayError):
    status = 400

    def __init__(self, message: str = INVALID_URL_PARAMETER_MESSAGE) -> None:
        super().__init__(message)


class RegistryIOError(GatewayError):
    """The upstream list could not be read."""


class NoUpstreamAvailableError(GatewayError):
    """The upstream list was empty, or the cursor left nothing to try."""

    def __init__(self, message: str = "No upstream servers available") -> None:
        super().__init__(message)


class UpstreamTimeoutError(GatewayError):
    """An upstream did not answer in time. Aborts the dispatch."""


class UpstreamHTTPError(GatewayError):
    """An upstream answered with a non-success status. Status and body are surfaced verbatim."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(body, status=status)
        self.body = body


class UpstreamRateLimitedError(UpstreamHTTPError):
    """Every candidate upstream was rate limited or challenged."""


class EncodingError(GatewayError):
    def __init__(self, message: str = "Internal Server Error") -> None:
        super().__init__(message)


__all__ = [
    "EncodingError",
    "GatewayError",
    "INTERNAL_ERROR_STATUS",
    "INVALID_URL_PARAMETER_MESSAGE",
    "NoUpstreamAvailableError",
    "ParamError",
    "RegistryIOError",
    "UpstreamHTTPError",
    "UpstreamRateLimitedError",
    "UpstreamTimeoutError",
]
