"""Exception taxonomy for kubesource.

ConfigurationError      -- settings or discovery metadata cannot be resolved;
                           raised to the caller at startup.
DiscoveryRefreshError   -- the API discovery document could not be fetched.
ResolutionError         -- a single service could not be resolved into
                           instances; caught at the provider boundary.
PortNotFoundError       -- a pinned port does not exist on the resource.
PropertySourceReadError -- a ConfigMap/Secret payload cannot be parsed.
WatchExpiredError       -- the resume token is too old (HTTP 410); relist.
"""

from __future__ import annotations


class KubeSourceError(Exception):
    """Base class for every error raised by kubesource."""


class ConfigurationError(KubeSourceError):
    """Raised when configuration or API discovery metadata cannot be resolved."""


class DiscoveryRefreshError(KubeSourceError):
    """Raised when refreshing the API discovery catalogue fails or times out."""


class ResolutionError(KubeSourceError):
    """Raised when a service cannot be translated into service instances."""

    def __init__(self, message: str, service_id: str = "") -> None:
        super().__init__(message)
        self.service_id = service_id


class PortNotFoundError(ResolutionError):
    """Raised when the pinned port name is not declared by the resource."""

    def __init__(self, service_id: str, port_name: str) -> None:
        super().__init__(
            f"Port '{port_name}' not found on service '{service_id}'",
            service_id=service_id,
        )
        self.port_name = port_name


class PropertySourceReadError(KubeSourceError):
    """Raised when a ConfigMap or Secret entry cannot be read into properties."""

    def __init__(self, message: str, source_name: str = "") -> None:
        super().__init__(message)
        self.source_name = source_name


class WatchExpiredError(KubeSourceError):
    """Raised by a watch source when the resume resourceVersion has expired."""

    def __init__(self, resource_version: str = "") -> None:
        super().__init__(f"Watch resource version expired: {resource_version!r}")
        self.resource_version = resource_version
