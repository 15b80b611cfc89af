"""Shared contract and helpers for service instance providers.

A provider turns a ``ServiceConfig`` into ``ServiceInstance`` values using
one cluster object kind (Endpoints or Service). Providers never raise from
``resolve_instances``: any per-resource failure is logged, counted, and
produces an empty list.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from kubesource.cache.sources import ResourceReader
from kubesource.filters import ResourceFilter
from kubesource.models.discovery import ServiceConfig, ServiceInstance
from kubesource.models.resources import Resource
from kubesource.observability.logging import get_logger

SECURE_LABEL = "secure"
DEFAULT_PORT = 80

_log = get_logger("discovery.providers")


@dataclass(frozen=True)
class PortBinding:
    """A named port declared by a Service or an Endpoints subset."""

    name: str
    port: int

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> PortBinding:
        return cls(name=str(raw.get("name") or ""), port=int(raw.get("port") or 0))


class ServiceInstanceProvider(Protocol):
    """Strategy resolving service ids for one discovery mode."""

    @property
    def mode(self) -> str: ...

    async def list_service_ids(self, namespace: str) -> list[str]: ...

    async def resolve_instances(self, config: ServiceConfig) -> list[ServiceInstance]: ...


def is_port_secure(port: PortBinding) -> bool:
    return str(port.port).endswith("443") or port.name == "https"


def is_metadata_secure(labels: Mapping[str, str]) -> bool:
    return labels.get(SECURE_LABEL, "false") == "true"


def build_service_instance(
    service_id: str,
    port: PortBinding | None,
    host: str,
    resource: Resource,
) -> ServiceInstance:
    """Build an instance; the scheme is https when the port or the labels say so."""
    secure = (port is not None and is_port_secure(port)) or is_metadata_secure(resource.labels)
    return ServiceInstance(
        service_id=service_id,
        scheme="https" if secure else "http",
        host=host,
        port=port.port if port is not None else DEFAULT_PORT,
        metadata=dict(resource.labels),
    )


def has_valid_port_configuration(ports: Sequence[PortBinding], config: ServiceConfig) -> bool:
    """False when several ports are declared and none is pinned by configuration."""
    if len(ports) > 1 and not config.port:
        _log.debug(
            "multiple_ports_without_pinned_port",
            service=config.name,
            ports=",".join(p.name for p in ports),
            hint="configure the port for this service manually",
        )
        return False
    return True


def port_matches(port: PortBinding, config: ServiceConfig) -> bool:
    return not config.port or port.name == config.port


class BaseInstanceProvider:
    """Common plumbing: reader access and discovery filtering."""

    MODE = ""

    def __init__(self, reader: ResourceReader, discovery_filter: ResourceFilter | None = None) -> None:
        self._reader = reader
        self._filter = discovery_filter or ResourceFilter()

    @property
    def mode(self) -> str:
        return self.MODE

    def accepts(self, resource: Resource, config: ServiceConfig) -> bool:
        """Manually configured services bypass the discovery filter."""
        return config.manual or self._filter.matches(resource)

    async def list_service_ids(self, namespace: str) -> list[str]:
        resources = await self._reader.list(namespace)
        return [r.name for r in resources if r.name and self._filter.matches(r)]
