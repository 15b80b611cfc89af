"""Pydantic response models for the kubesource REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from kubesource.models.discovery import ServiceInstance
from kubesource.models.properties import PropertySource


class ErrorResponse(BaseModel):
    """Error envelope returned for every non-2xx response."""

    error: str
    detail: str = ""


class InformerStatus(BaseModel):
    kind: str
    namespaces: list[str]
    synced: bool


class HealthResponse(BaseModel):
    status: str
    version: str
    namespace: str
    informers: list[InformerStatus] = Field(default_factory=list)
    property_sources: int = 0


class ServiceListResponse(BaseModel):
    services: list[str]


class ServiceInstanceResponse(BaseModel):
    service_id: str
    scheme: str
    host: str
    port: int
    secure: bool
    uri: str
    metadata: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_instance(cls, instance: ServiceInstance) -> ServiceInstanceResponse:
        return cls(
            service_id=instance.service_id,
            scheme=instance.scheme,
            host=instance.host,
            port=instance.port,
            secure=instance.secure,
            uri=instance.uri,
            metadata=dict(instance.metadata),
        )


class ServiceInstancesResponse(BaseModel):
    service_id: str
    instances: list[ServiceInstanceResponse]


class PropertySourceResponse(BaseModel):
    """A property source without its values; Secret-backed values never leave the process."""

    name: str
    priority: int
    origin: str
    source_resource_version: str = ""
    keys: list[str] = Field(default_factory=list)

    @classmethod
    def from_source(cls, source: PropertySource) -> PropertySourceResponse:
        return cls(
            name=source.name,
            priority=source.priority,
            origin=source.origin.value,
            source_resource_version=source.source_resource_version,
            keys=sorted(source.data),
        )


class PropertySourcesResponse(BaseModel):
    property_sources: list[PropertySourceResponse]
    last_refresh: dict[str, Any] | None = None
