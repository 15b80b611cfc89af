"""Tests for environment-driven configuration loading."""

from __future__ import annotations

import os

import pytest

from kubesource.config import load_config
from kubesource.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("KUBESOURCE_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("KUBESOURCE_NAMESPACE", "apps")


class TestLoadConfig:
    def test_defaults(self) -> None:
        config = load_config()
        assert config.namespace == "apps"
        assert config.discovery.mode == "endpoint"
        assert config.config_maps.enabled is True
        assert config.secrets.enabled is False
        assert config.discovery_cache.refresh_interval_minutes == 30
        assert config.api.port == 8080
        assert config.labels_fail_fast is False
        assert config.mounted_poll_interval_seconds == 5

    def test_lists_and_maps(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESOURCE_CONFIG_MAPS_INCLUDES", "app-config, shared ,")
        monkeypatch.setenv("KUBESOURCE_CONFIG_MAPS_LABELS", "app=x,team=a")
        monkeypatch.setenv("KUBESOURCE_SECRETS_ENABLED", "true")
        config = load_config()
        assert config.config_maps.includes == ["app-config", "shared"]
        assert config.config_maps.labels == {"app": "x", "team": "a"}
        assert config.secrets.enabled is True

    def test_services_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(
            "KUBESOURCE_SERVICES",
            '{"payments": {"name": "pay-svc", "namespace": "finance", "port": "https", "mode": "SERVICE"}}',
        )
        settings = load_config().discovery.services["payments"]
        assert (settings.name, settings.namespace, settings.port, settings.mode) == (
            "pay-svc",
            "finance",
            "https",
            "service",
        )

    def test_ints_are_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESOURCE_API_DISCOVERY_TIMEOUT", "999")
        monkeypatch.setenv("KUBESOURCE_API_PORT", "80")
        monkeypatch.setenv("KUBESOURCE_MOUNTED_VOLUMES_POLL_INTERVAL", "0")
        config = load_config()
        assert config.discovery_cache.timeout_seconds == 120
        assert config.api.port == 1024
        assert config.mounted_poll_interval_seconds == 1

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("KUBESOURCE_DISCOVERY_MODE", "dns"),
            ("KUBESOURCE_LOG_LEVEL", "loud"),
            ("KUBESOURCE_API_PORT", "eighty"),
            ("KUBESOURCE_SERVICES", "[1, 2]"),
            ("KUBESOURCE_DISCOVERY_LABELS", "novalue"),
        ],
    )
    def test_invalid_values_raise(self, monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
        monkeypatch.setenv(key, value)
        with pytest.raises(ConfigurationError):
            load_config()
