"""Configuration loading from environment variables."""

from __future__ import annotations

import json
import os
from pathlib import Path

from kubesource.errors import ConfigurationError
from kubesource.models.config import (
    APIConfig,
    DiscoveryCacheConfig,
    DiscoveryConfig,
    KubeSourceConfig,
    LogConfig,
    NotificationConfig,
    ResourceSourceConfig,
    ServiceSettings,
)
from kubesource.models.discovery import DiscoveryMode

_SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
_DEFAULT_NAMESPACE = "default"


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBESOURCE_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"KUBESOURCE_{key} must be an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_list(key: str) -> list[str]:
    """Parse a comma separated list, dropping blanks."""
    return [item.strip() for item in _env(key).split(",") if item.strip()]


def _env_map(key: str) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2`` into a dict, preserving declaration order."""
    result: dict[str, str] = {}
    for pair in _env_list(key):
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(f"KUBESOURCE_{key}: expected key=value, got {pair!r}")
        result[name.strip()] = value.strip()
    return result


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigurationError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_mode(value: str) -> str:
    valid = {m.value for m in DiscoveryMode}
    if value.lower() not in valid:
        raise ConfigurationError(f"Invalid discovery mode: {value}. Must be one of {valid}")
    return value.lower()


def _default_namespace() -> str:
    """Namespace of the running pod, read from the mounted service account."""
    try:
        namespace = _SERVICE_ACCOUNT_NAMESPACE.read_text().strip()
    except OSError:
        return _DEFAULT_NAMESPACE
    return namespace or _DEFAULT_NAMESPACE


def _parse_services(raw: str) -> dict[str, ServiceSettings]:
    """Parse ``KUBESOURCE_SERVICES``: a JSON object of service id -> settings."""
    if not raw.strip():
        return {}
    try:
        doc = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"KUBESOURCE_SERVICES is not valid JSON: {exc}") from exc
    if not isinstance(doc, dict):
        raise ConfigurationError("KUBESOURCE_SERVICES must be a JSON object")

    services: dict[str, ServiceSettings] = {}
    for service_id, settings in doc.items():
        if not isinstance(settings, dict):
            raise ConfigurationError(f"KUBESOURCE_SERVICES[{service_id!r}] must be an object")
        mode = str(settings.get("mode", "") or "")
        services[str(service_id)] = ServiceSettings(
            name=str(settings.get("name", "") or ""),
            namespace=str(settings.get("namespace", "") or ""),
            port=str(settings.get("port", "") or ""),
            mode=_validate_mode(mode) if mode else "",
        )
    return services


def _resource_source(prefix: str, enabled: bool) -> ResourceSourceConfig:
    return ResourceSourceConfig(
        enabled=_env_bool(f"{prefix}_ENABLED", enabled),
        watch_enabled=_env_bool(f"{prefix}_WATCH_ENABLED", True),
        includes=_env_list(f"{prefix}_INCLUDES"),
        excludes=_env_list(f"{prefix}_EXCLUDES"),
        labels=_env_map(f"{prefix}_LABELS"),
        pod_labels=_env_list(f"{prefix}_POD_LABELS"),
        paths=_env_list(f"{prefix}_PATHS"),
    )


def load_config() -> KubeSourceConfig:
    """Load configuration from KUBESOURCE_* environment variables."""
    return KubeSourceConfig(
        namespace=_env("NAMESPACE", "") or _default_namespace(),
        discovery=DiscoveryConfig(
            enabled=_env_bool("DISCOVERY_ENABLED", True),
            mode=_validate_mode(_env("DISCOVERY_MODE", DiscoveryMode.ENDPOINT.value)),
            watch_enabled=_env_bool("DISCOVERY_WATCH_ENABLED", True),
            includes=_env_list("DISCOVERY_INCLUDES"),
            excludes=_env_list("DISCOVERY_EXCLUDES"),
            labels=_env_map("DISCOVERY_LABELS"),
            pod_labels=_env_list("DISCOVERY_POD_LABELS"),
            services=_parse_services(_env("SERVICES")),
        ),
        config_maps=_resource_source("CONFIG_MAPS", enabled=True),
        secrets=_resource_source("SECRETS", enabled=False),
        discovery_cache=DiscoveryCacheConfig(
            enabled=_env_bool("API_DISCOVERY_CACHE_ENABLED", True),
            refresh_interval_minutes=_env_int("API_DISCOVERY_REFRESH_INTERVAL", 30, min_val=1),
            timeout_seconds=_env_int("API_DISCOVERY_TIMEOUT", 10, min_val=1, max_val=120),
        ),
        notifications=NotificationConfig(
            webhook_secret_ref=_env("NOTIFICATIONS_WEBHOOK_SECRET_REF", ""),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        labels_fail_fast=_env_bool("LABELS_FAIL_FAST", False),
        mounted_poll_interval_seconds=_env_int("MOUNTED_VOLUMES_POLL_INTERVAL", 5, min_val=1, max_val=3600),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
