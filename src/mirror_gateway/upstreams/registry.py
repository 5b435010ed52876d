from __future__ import annotations

import logging
from pathlib import Path

from mirror_gateway.errors import RegistryIOError
from mirror_gateway.upstreams.interfaces import UpstreamRegistry

logger = logging.getLogger(__name__)


def parse_upstream_list(text: str) -> list[str]:
    """Return base addresses in file order. Blank lines and `#` comments are skipped."""
    upstreams: list[str] = []
    for line in text.splitlines():
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        upstreams.append(entry)
    return upstreams


class FileUpstreamRegistry(UpstreamRegistry):
    """
    Upstream list backed by a newline-delimited text file.

    The file is read on every call so edits take effect on the next request without a
    restart.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def list(self) -> list[str]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read upstream list. path=%s error=%s", self._path, e)
            raise RegistryIOError(str(e)) from e

        upstreams = parse_upstream_list(text)
        logger.debug("Loaded upstream list. path=%s count=%d", self._path, len(upstreams))
        return upstreams
