from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote_plus

from mirror_gateway.errors import ParamError

URL_PARAMETER = "url"

_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_SCHEME_SEPARATOR = "://"


def _raw_parameter(raw_query: str, name: str) -> Optional[str]:
    prefix = f"{name}="
    # A leading `url=` owns the rest of the query, so targets with an unencoded `&` survive.
    if raw_query.startswith(prefix):
        return raw_query[len(prefix) :]
    for part in raw_query.split("&"):
        key, sep, value = part.partition("=")
        if key == name and sep:
            return value
    return None


def _strict_unquote(value: str) -> str:
    if _INVALID_ESCAPE.search(value):
        raise ValueError(f"Invalid percent-escape in: {value!r}")
    return unquote_plus(value, encoding="utf-8", errors="strict")


def decode_target_url(raw_value: str) -> str:
    """
    Percent-decode the `url` parameter.

    One standard decode is always applied. Callers that encoded the target twice are
    also accepted: when the first decode does not yield an absolute URL but a second
    one does, the second decode is kept. A singly encoded target whose own query holds
    `%XX` escapes is left with those escapes intact.
    """
    try:
        decoded = _strict_unquote(raw_value)
    except ValueError as e:
        raise ParamError() from e

    if _SCHEME_SEPARATOR not in decoded:
        try:
            twice = _strict_unquote(decoded)
        except ValueError:
            return decoded
        if _SCHEME_SEPARATOR in twice:
            return twice
    return decoded


def extract_target_url(raw_query: str) -> str:
    """Return the decoded target URL from a raw query string, or raise ParamError."""
    raw_value = _raw_parameter(raw_query, URL_PARAMETER)
    if raw_value is None:
        raise ParamError()
    target_url = decode_target_url(raw_value).strip()
    if not target_url:
        raise ParamError()
    return target_url
