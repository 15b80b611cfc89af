"""Core data structures for kubesource."""

from kubesource.models.config import KubeSourceConfig
from kubesource.models.discovery import (
    DiscoveryEntry,
    DiscoveryMode,
    GroupVersionKind,
    ServiceConfig,
    ServiceInstance,
)
from kubesource.models.properties import (
    PropertySource,
    PropertySourceOrigin,
    RefreshEvent,
)
from kubesource.models.resources import (
    CacheEntry,
    Resource,
    ResourceKey,
    UpsertOutcome,
    WatchEvent,
    WatchEventType,
)

__all__ = [
    "CacheEntry",
    "DiscoveryEntry",
    "DiscoveryMode",
    "GroupVersionKind",
    "KubeSourceConfig",
    "PropertySource",
    "PropertySourceOrigin",
    "RefreshEvent",
    "Resource",
    "ResourceKey",
    "ServiceConfig",
    "ServiceInstance",
    "UpsertOutcome",
    "WatchEvent",
    "WatchEventType",
]
