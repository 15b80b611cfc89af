"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ServiceSettings:
    """Manual resolution settings for one service id."""

    name: str = ""
    namespace: str = ""
    port: str = ""
    mode: str = ""


@dataclass
class DiscoveryConfig:
    """Service discovery configuration."""

    enabled: bool = True
    mode: str = "endpoint"
    watch_enabled: bool = True
    includes: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    pod_labels: list[str] = field(default_factory=list)
    services: dict[str, ServiceSettings] = field(default_factory=dict)


@dataclass
class ResourceSourceConfig:
    """ConfigMap or Secret property source configuration."""

    enabled: bool = True
    watch_enabled: bool = True
    includes: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    pod_labels: list[str] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)


@dataclass
class DiscoveryCacheConfig:
    """API discovery metadata cache configuration."""

    enabled: bool = True
    refresh_interval_minutes: int = 30
    timeout_seconds: int = 10


@dataclass
class NotificationConfig:
    """Refresh notification configuration."""

    webhook_secret_ref: str = ""


@dataclass
class APIConfig:
    """REST API configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeSourceConfig:
    """Top-level kubesource configuration."""

    namespace: str = "default"
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    config_maps: ResourceSourceConfig = field(default_factory=ResourceSourceConfig)
    secrets: ResourceSourceConfig = field(default_factory=lambda: ResourceSourceConfig(enabled=False))
    discovery_cache: DiscoveryCacheConfig = field(default_factory=DiscoveryCacheConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
    labels_fail_fast: bool = False
    mounted_poll_interval_seconds: int = 5
