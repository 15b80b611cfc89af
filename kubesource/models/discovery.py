"""API discovery metadata and service discovery data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class DiscoveryMode(StrEnum):
    """Strategy used to turn a service id into network endpoints."""

    ENDPOINT = "endpoint"
    SERVICE = "service"


@dataclass(frozen=True)
class DiscoveryEntry:
    """One resource type advertised by the API server."""

    kind: str
    group: str
    version: str
    resource_plural: str
    namespaced: bool

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


@dataclass(frozen=True)
class GroupVersionKind:
    """Decomposition of a generated model type name, e.g. ``AppsV1Deployment``."""

    group: str
    version: str
    kind: str


@dataclass(frozen=True)
class ServiceConfig:
    """How a single service id is resolved.

    ``manual`` is True when the configuration was declared explicitly by the
    operator rather than derived from defaults; manual services bypass the
    discovery includes/excludes/labels filter.
    """

    service_id: str
    name: str
    namespace: str
    mode: str = DiscoveryMode.ENDPOINT
    port: str = ""
    manual: bool = False


@dataclass(frozen=True)
class ServiceInstance:
    """A resolvable network endpoint for a service. Derived, never cached."""

    service_id: str
    scheme: str
    host: str
    port: int
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def secure(self) -> bool:
        return self.scheme == "https"

    @property
    def uri(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"
