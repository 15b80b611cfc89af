"""Endpoints-based service instance resolution (mode ``endpoint``)."""

from __future__ import annotations

from kubesource.discovery.providers import (
    BaseInstanceProvider,
    PortBinding,
    build_service_instance,
    has_valid_port_configuration,
    port_matches,
)
from kubesource.models.discovery import DiscoveryMode, ServiceConfig, ServiceInstance
from kubesource.models.resources import Resource
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import resolution_errors_total, service_instances_resolved_total

_log = get_logger("discovery.endpoints")


class EndpointsInstanceProvider(BaseInstanceProvider):
    """One instance per (port, ready address) of every Endpoints subset.

    A subset declaring several ports without a pinned port is rejected, as
    is a subset without addresses. A pinned port keeps only the port of
    that name.
    """

    MODE = DiscoveryMode.ENDPOINT.value

    async def resolve_instances(self, config: ServiceConfig) -> list[ServiceInstance]:
        try:
            endpoints = await self._reader.get(config.namespace, config.name)
            if endpoints is None or not self.accepts(endpoints, config):
                return []
            instances = self._instances_for(endpoints, config)
        except Exception as exc:
            resolution_errors_total.labels(mode=self.MODE, reason="error").inc()
            _log.error(
                "endpoints_resolution_failed",
                service_id=config.service_id,
                namespace=config.namespace,
                name=config.name,
                error=str(exc),
                exc_info=True,
            )
            return []

        service_instances_resolved_total.labels(mode=self.MODE).inc(len(instances))
        return instances

    def _instances_for(self, endpoints: Resource, config: ServiceConfig) -> list[ServiceInstance]:
        instances: list[ServiceInstance] = []
        for subset in endpoints.subsets:
            ports = [PortBinding.from_raw(p) for p in subset.get("ports") or []]
            if not has_valid_port_configuration(ports, config):
                resolution_errors_total.labels(mode=self.MODE, reason="multiple_ports").inc()
                continue
            addresses = [str(a["ip"]) for a in subset.get("addresses") or [] if a.get("ip")]
            if not addresses:
                continue
            for port in ports:
                if not port_matches(port, config):
                    continue
                instances.extend(
                    build_service_instance(config.service_id, port, address, endpoints) for address in addresses
                )
        return instances
