from mirror_gateway.config.loader import YamlConfigLoader
from mirror_gateway.config.models import (
    AppConfig,
    CacheSettings,
    ConfigLoadRequest,
    DispatchSettings,
    LoggingSettings,
    ServerSettings,
    UpstreamSettings,
)

__all__ = [
    "AppConfig",
    "CacheSettings",
    "ConfigLoadRequest",
    "DispatchSettings",
    "LoggingSettings",
    "ServerSettings",
    "UpstreamSettings",
    "YamlConfigLoader",
]
