"""Tests for the kubesource REST API."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from kubesource.api.app import create_app
from kubesource.cache.indexer import IndexerComposite
from kubesource.cache.resource_cache import ResourceCache
from kubesource.configuration.store import PropertySourceStore
from kubesource.models.config import KubeSourceConfig
from kubesource.models.discovery import ServiceInstance
from kubesource.models.properties import PropertySource, PropertySourceOrigin

# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------


def _make_discovery_client() -> MagicMock:
    client = MagicMock()
    client.get_service_ids = AsyncMock(return_value=["billing", "orders"])
    client.get_instances = AsyncMock(
        return_value=[ServiceInstance("billing", "https", "10.0.0.1", 8443, {"app": "billing"})]
    )
    return client


def _make_indexer(synced: bool = True) -> IndexerComposite:
    indexer = IndexerComposite("ConfigMap")
    cache = ResourceCache("ConfigMap", "apps")
    if synced:
        cache.replace([])
    indexer.add("apps", cache)
    return indexer


def _make_app(
    discovery_client: MagicMock | None = None,
    store: PropertySourceStore | None = None,
    synced: bool = True,
) -> TestClient:
    app = create_app(
        discovery_client=discovery_client,
        store=store if store is not None else PropertySourceStore(),
        indexers=[_make_indexer(synced)],
        config=KubeSourceConfig(namespace="apps"),
    )
    return TestClient(app, raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestHealth:
    def test_synced(self) -> None:
        response = _make_app().get("/api/v1/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["namespace"] == "apps"
        assert body["informers"] == [{"kind": "ConfigMap", "namespaces": ["apps"], "synced": True}]

    def test_not_synced_is_503(self) -> None:
        response = _make_app(synced=False).get("/api/v1/health")
        assert response.status_code == 503
        assert response.json()["status"] == "syncing"


class TestServices:
    def test_list_services(self) -> None:
        response = _make_app(_make_discovery_client()).get("/api/v1/services")
        assert response.json() == {"services": ["billing", "orders"]}

    def test_instances(self) -> None:
        client = _make_discovery_client()
        response = _make_app(client).get("/api/v1/services/billing/instances")
        assert response.status_code == 200
        (instance,) = response.json()["instances"]
        assert instance["uri"] == "https://10.0.0.1:8443"
        assert instance["secure"] is True
        client.get_instances.assert_awaited_once_with("billing")

    def test_instances_without_discovery(self) -> None:
        response = _make_app().get("/api/v1/services/billing/instances")
        assert response.status_code == 503
        assert response.json()["error"] == "DISCOVERY_UNAVAILABLE"

    def test_unexpected_error_uses_envelope(self) -> None:
        client = _make_discovery_client()
        client.get_service_ids.side_effect = RuntimeError("boom")
        response = _make_app(client).get("/api/v1/services")
        assert response.status_code == 500
        assert response.json() == {"error": "INTERNAL_ERROR", "detail": "An unexpected error occurred."}


class TestPropertySources:
    def test_keys_listed_without_values(self) -> None:
        store = PropertySourceStore(
            [
                PropertySource(
                    "db (Secret)",
                    100,
                    {"password": "s3cr3t", "user": "admin"},
                    origin=PropertySourceOrigin.SECRET,
                    source_resource_version="12",
                )
            ]
        )
        response = _make_app(store=store).get("/api/v1/property-sources")
        body = response.json()
        assert body["property_sources"] == [
            {
                "name": "db (Secret)",
                "priority": 100,
                "origin": "Secret",
                "source_resource_version": "12",
                "keys": ["password", "user"],
            }
        ]
        assert "s3cr3t" not in response.text


class TestMetrics:
    def test_prometheus_exposition(self) -> None:
        response = _make_app().get("/api/v1/metrics")
        assert response.status_code == 200
        assert "kubesource_property_sources" in response.text
