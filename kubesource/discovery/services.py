"""Service-based instance resolution (mode ``service``)."""

from __future__ import annotations

from kubesource.discovery.providers import (
    BaseInstanceProvider,
    PortBinding,
    build_service_instance,
    has_valid_port_configuration,
    port_matches,
)
from kubesource.errors import PortNotFoundError
from kubesource.models.discovery import DiscoveryMode, ServiceConfig, ServiceInstance
from kubesource.models.resources import Resource
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import resolution_errors_total, service_instances_resolved_total

_log = get_logger("discovery.services")

EXTERNAL_NAME = "ExternalName"
HEADLESS_CLUSTER_IP = "None"


class ServicesInstanceProvider(BaseInstanceProvider):
    """Resolves a service to its cluster IP, or to its external name.

    ``spec.clusterIP`` set (and not ``"None"``): one instance per matching
    port at the cluster IP. ``spec.type == "ExternalName"``: the external
    host with the matching declared port, or port 80 when none is declared.
    Headless services cannot be resolved in this mode.
    """

    MODE = DiscoveryMode.SERVICE.value

    async def resolve_instances(self, config: ServiceConfig) -> list[ServiceInstance]:
        try:
            service = await self._reader.get(config.namespace, config.name)
            if service is None or not self.accepts(service, config):
                return []
            instances = self._instances_for(service, config)
        except PortNotFoundError as exc:
            resolution_errors_total.labels(mode=self.MODE, reason="port_not_found").inc()
            _log.error(
                "service_port_not_found",
                service_id=config.service_id,
                port=exc.port_name,
                declared_ports=",".join(p.get("name") or "" for p in self._declared_ports(service)),
            )
            return []
        except Exception as exc:
            resolution_errors_total.labels(mode=self.MODE, reason="error").inc()
            _log.error(
                "service_resolution_failed",
                service_id=config.service_id,
                namespace=config.namespace,
                name=config.name,
                error=str(exc),
                exc_info=True,
            )
            return []

        service_instances_resolved_total.labels(mode=self.MODE).inc(len(instances))
        return instances

    @staticmethod
    def _declared_ports(service: Resource) -> list[dict[str, object]]:
        return [p for p in service.spec.get("ports") or [] if isinstance(p, dict)]

    def _instances_for(self, service: Resource, config: ServiceConfig) -> list[ServiceInstance]:
        spec = service.spec
        ports = [PortBinding.from_raw(p) for p in self._declared_ports(service)]
        if not has_valid_port_configuration(ports, config):
            resolution_errors_total.labels(mode=self.MODE, reason="multiple_ports").inc()
            return []

        cluster_ip = spec.get("clusterIP")
        if cluster_ip and cluster_ip != HEADLESS_CLUSTER_IP:
            return [
                build_service_instance(config.service_id, port, str(cluster_ip), service)
                for port in ports
                if port_matches(port, config)
            ]

        if spec.get("type") == EXTERNAL_NAME:
            port: PortBinding | None = None
            if ports:
                matching = [p for p in ports if port_matches(p, config)]
                if not matching:
                    raise PortNotFoundError(config.service_id, config.port)
                port = matching[0]
            return [build_service_instance(config.service_id, port, str(spec.get("externalName") or ""), service)]

        resolution_errors_total.labels(mode=self.MODE, reason="unresolvable").inc()
        _log.error(
            "service_instance_not_resolvable",
            service_id=config.service_id,
            cluster_ip=cluster_ip,
            type=spec.get("type"),
        )
        return []
