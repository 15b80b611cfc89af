"""Service discovery entry point.

``KubernetesDiscoveryClient`` maps a service id to a ``ServiceConfig``
(manual settings first, defaults otherwise) and delegates to the provider
registered for its discovery mode.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from kubesource.discovery.providers import ServiceInstanceProvider
from kubesource.models.config import DiscoveryConfig
from kubesource.models.discovery import ServiceConfig, ServiceInstance
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import resolution_errors_total

# Reserved id resolving to the API server the application talks to.
KUBERNETES_SERVICE_ID = "kubernetes"

_log = get_logger("discovery.client")


class KubernetesDiscoveryClient:
    """Resolves service ids to instances through mode-specific providers.

    Args:
        config:    Discovery configuration (default mode, manual services).
        namespace: Application namespace, used for unconfigured services.
        providers: Providers keyed by their mode.
        environ:   Environment mapping, injectable for tests.
    """

    def __init__(
        self,
        config: DiscoveryConfig,
        namespace: str,
        providers: Mapping[str, ServiceInstanceProvider],
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._namespace = namespace
        self._providers = {mode.lower(): provider for mode, provider in providers.items()}
        self._environ = environ if environ is not None else os.environ

    @property
    def modes(self) -> list[str]:
        return sorted(self._providers)

    def service_config(self, service_id: str) -> ServiceConfig:
        settings = self._config.services.get(service_id)
        if settings is None:
            return ServiceConfig(
                service_id=service_id,
                name=service_id,
                namespace=self._namespace,
                mode=self._config.mode,
            )
        return ServiceConfig(
            service_id=service_id,
            name=settings.name or service_id,
            namespace=settings.namespace or self._namespace,
            mode=(settings.mode or self._config.mode).lower(),
            port=settings.port,
            manual=True,
        )

    async def get_instances(self, service_id: str) -> list[ServiceInstance]:
        if not self._config.enabled:
            _log.debug("discovery disabled", service_id=service_id)
            return []
        if service_id == KUBERNETES_SERVICE_ID and service_id not in self._config.services:
            return self._api_server_instances()

        service_config = self.service_config(service_id)
        provider = self._providers.get(service_config.mode)
        if provider is None:
            resolution_errors_total.labels(mode=service_config.mode, reason="no_provider").inc()
            _log.error(
                "no_provider_for_mode",
                service_id=service_id,
                mode=service_config.mode,
                available=self.modes,
            )
            return []
        return await provider.resolve_instances(service_config)

    async def get_service_ids(self) -> list[str]:
        """Ids discoverable in the application namespace plus manually configured ids."""
        if not self._config.enabled:
            return []
        ids = set(self._config.services)
        provider = self._providers.get(self._config.mode.lower())
        if provider is not None:
            try:
                ids.update(await provider.list_service_ids(self._namespace))
            except Exception as exc:
                _log.error(
                    "service_ids_listing_failed",
                    namespace=self._namespace,
                    mode=self._config.mode,
                    error=str(exc),
                )
        return sorted(ids)

    def _api_server_instances(self) -> list[ServiceInstance]:
        host = self._environ.get("KUBERNETES_SERVICE_HOST", "")
        if not host:
            return []
        port = int(self._environ.get("KUBERNETES_SERVICE_PORT", "443") or 443)
        return [
            ServiceInstance(
                service_id=KUBERNETES_SERVICE_ID,
                scheme="https" if str(port).endswith("443") else "http",
                host=host,
                port=port,
            )
        ]
