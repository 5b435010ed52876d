from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = "0.0.0.0"
    port: int = Field(default=9001, ge=1, le=65535)


class UpstreamSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Newline-delimited list of mirror base addresses, re-read on every dispatch
    servers_file: str = "servers.txt"
    timeout_seconds: float = Field(default=10.0, gt=0)
    connect_timeout_seconds: float = Field(default=5.0, gt=0)


class CacheSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    ttl_seconds: float = Field(default=60.0, gt=0)
    # None keeps the cache unbounded; entries are only invalidated by time
    max_entries: Optional[int] = Field(default=None, ge=1)


class DispatchSettings(BaseModel):
    """
    Failover policy.

    The cursor remembers which upstream to try first. It is reset to the head of the
    list once `cursor_reset_seconds` have elapsed since the previous reset; a value of
    0 resets it on every request.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cursor_reset_seconds: float = Field(default=180.0, ge=0)
    wrap_around: bool = False


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = FileLoggingSettings()


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    server: ServerSettings = ServerSettings()
    upstream: UpstreamSettings = UpstreamSettings()
    cache: CacheSettings = CacheSettings()
    dispatch: DispatchSettings = DispatchSettings()
    logging: LoggingSettings = LoggingSettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "GATEWAY__"
    dotenv_path: Optional[str] = "data/.env"
