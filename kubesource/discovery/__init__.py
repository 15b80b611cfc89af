"""Service discovery for kubesource.

Exports:
    KubernetesDiscoveryClient  -- Resolves service ids to instances.
    EndpointsInstanceProvider  -- Mode ``endpoint``: one instance per address.
    ServicesInstanceProvider   -- Mode ``service``: cluster IP or external name.
    resolve_provider_namespaces -- Namespaces a provider's informers watch.
"""

from kubesource.discovery.client import KubernetesDiscoveryClient
from kubesource.discovery.endpoints import EndpointsInstanceProvider
from kubesource.discovery.namespaces import resolve_provider_namespaces
from kubesource.discovery.providers import ServiceInstanceProvider
from kubesource.discovery.services import ServicesInstanceProvider

__all__ = [
    "EndpointsInstanceProvider",
    "KubernetesDiscoveryClient",
    "ServiceInstanceProvider",
    "ServicesInstanceProvider",
    "resolve_provider_namespaces",
]
