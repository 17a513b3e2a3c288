"""Process settings read from the environment."""

from .provider import (
    ConfigProvider,
    EnvConfigProvider,
    RegistrySettings,
    ServerSettings,
    Settings,
)

__all__ = [
    "ConfigProvider",
    "EnvConfigProvider",
    "RegistrySettings",
    "ServerSettings",
    "Settings",
]
