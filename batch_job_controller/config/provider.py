"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

REGISTRY_BACKENDS = ("memory", "redis", "disabled")


@dataclass
class ServerSettings:
    """Listener configuration for both HTTP servers."""
    host: str
    callback_port: int
    static_port: int


@dataclass
class RegistrySettings:
    """Execution registry backend configuration."""
    backend: str
    redis_url: str
    ttl: int

    @property
    def enabled(self) -> bool:
        """Check if callbacks are gated by a registry at all."""
        return self.backend != "disabled"


@dataclass
class Settings:
    """Process level settings."""
    namespace: str
    config_map_name: str
    hostname: Optional[str]
    log_level: str
    server: ServerSettings
    registry: RegistrySettings


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_settings(self) -> Settings:
        """Get process settings."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def __init__(self, namespace_file: str = SERVICE_ACCOUNT_NAMESPACE_FILE):
        self.namespace_file = namespace_file

    def get_namespace(self) -> str:
        """Namespace from NAMESPACE, falling back to the service account mount."""
        namespace = os.getenv("NAMESPACE")
        if namespace:
            return namespace
        try:
            with open(self.namespace_file) as f:
                namespace = f.read().strip()
        except OSError:
            namespace = ""
        if not namespace:
            raise ValueError(
                "NAMESPACE environment variable is required when not running in a cluster."
            )
        return namespace

    def get_server_settings(self) -> ServerSettings:
        """Get listener settings from environment variables."""
        return ServerSettings(
            host=os.getenv("API_HOST", "0.0.0.0"),
            callback_port=int(os.getenv("CALLBACK_PORT", "8090")),
            static_port=int(os.getenv("STATIC_PORT", "8080")),
        )

    def get_registry_settings(self) -> RegistrySettings:
        """Get registry settings from environment variables."""
        backend = os.getenv("REGISTRY_BACKEND", "memory").lower()
        if backend not in REGISTRY_BACKENDS:
            raise ValueError(
                f"REGISTRY_BACKEND must be one of {', '.join(REGISTRY_BACKENDS)}, got {backend!r}"
            )
        return RegistrySettings(
            backend=backend,
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            ttl=int(os.getenv("REGISTRY_TTL", "0")),
        )

    def get_settings(self) -> Settings:
        """Get all process settings."""
        config_map_name = os.getenv("CONFIG_MAP_NAME")
        if not config_map_name:
            raise ValueError(
                "CONFIG_MAP_NAME environment variable is required. "
                "It names the configmap holding config.yaml and pod-template.yaml."
            )

        return Settings(
            namespace=self.get_namespace(),
            config_map_name=config_map_name,
            hostname=os.getenv("HOSTNAME"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            server=self.get_server_settings(),
            registry=self.get_registry_settings(),
        )
