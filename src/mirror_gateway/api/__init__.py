"""HTTP boundary: query decoding, CORS and the JSON error envelope."""

from mirror_gateway.api.app import CORS_HEADERS, create_app, error_response
from mirror_gateway.api.params import decode_target_url, extract_target_url

__all__ = [
    "CORS_HEADERS",
    "create_app",
    "decode_target_url",
    "error_response",
    "extract_target_url",
]
