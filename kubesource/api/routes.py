"""Route handlers for the kubesource REST API (mounted under ``/api/v1``)."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubesource.api.schemas import (
    ErrorResponse,
    HealthResponse,
    InformerStatus,
    PropertySourceResponse,
    PropertySourcesResponse,
    ServiceInstanceResponse,
    ServiceInstancesResponse,
    ServiceListResponse,
)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> JSONResponse:
    """Liveness plus sync state; 503 until every informer partition has synced."""
    state = request.app.state
    informers = [
        InformerStatus(kind=indexer.kind, namespaces=indexer.namespaces, synced=indexer.has_synced)
        for indexer in state.indexers
    ]
    synced = all(i.synced for i in informers)
    body = HealthResponse(
        status="ok" if synced else "syncing",
        version=state.version,
        namespace=state.namespace,
        informers=informers,
        property_sources=len(state.store) if state.store is not None else 0,
    )
    return JSONResponse(status_code=200 if synced else 503, content=body.model_dump())


@router.get("/services", response_model=ServiceListResponse)
async def list_services(request: Request) -> ServiceListResponse:
    discovery_client = request.app.state.discovery_client
    if discovery_client is None:
        return ServiceListResponse(services=[])
    return ServiceListResponse(services=await discovery_client.get_service_ids())


@router.get(
    "/services/{service_id}/instances",
    response_model=ServiceInstancesResponse,
    responses={503: {"model": ErrorResponse}},
)
async def service_instances(service_id: str, request: Request) -> ServiceInstancesResponse | JSONResponse:
    discovery_client = request.app.state.discovery_client
    if discovery_client is None:
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(error="DISCOVERY_UNAVAILABLE", detail="Service discovery is disabled.").model_dump(),
        )
    instances = await discovery_client.get_instances(service_id)
    return ServiceInstancesResponse(
        service_id=service_id,
        instances=[ServiceInstanceResponse.from_instance(i) for i in instances],
    )


@router.get("/property-sources", response_model=PropertySourcesResponse)
async def property_sources(request: Request) -> PropertySourcesResponse:
    state = request.app.state
    sources = state.store.snapshot() if state.store is not None else []
    last_refresh = None
    publisher = state.publisher
    if publisher is not None and publisher.last_event is not None:
        event = publisher.last_event
        last_refresh = {
            "changed_keys": event.changed_keys,
            "cause": event.cause,
            "occurred_at": event.occurred_at.isoformat(),
        }
    return PropertySourcesResponse(
        property_sources=[PropertySourceResponse.from_source(s) for s in sources],
        last_refresh=last_refresh,
    )


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
