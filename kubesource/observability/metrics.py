"""Prometheus metrics for kubesource.

All collectors are registered on the default registry at import time and
exposed by the REST API under ``/api/v1/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

# ---------------------------------------------------------------------------
# Resource cache / informers
# ---------------------------------------------------------------------------

watch_events_total = Counter(
    "kubesource_watch_events_total",
    "Watch events received, by kind and event type",
    ["kind", "event_type"],
)

cache_resources = Gauge(
    "kubesource_cache_resources",
    "Number of resources held per cache partition",
    ["kind", "namespace"],
)

cache_upserts_ignored_total = Counter(
    "kubesource_cache_upserts_ignored_total",
    "Upserts that did not change the cache (stale or identical resourceVersion)",
    ["kind", "reason"],
)

informer_relists_total = Counter(
    "kubesource_informer_relists_total",
    "Full relists performed by informers, by kind and trigger",
    ["kind", "reason"],
)

informer_restarts_total = Counter(
    "kubesource_informer_restarts_total",
    "Informer loops restarted after an unexpected error",
    ["kind"],
)

# ---------------------------------------------------------------------------
# API discovery metadata
# ---------------------------------------------------------------------------

discovery_refresh_total = Counter(
    "kubesource_discovery_refresh_total",
    "API discovery catalogue refresh attempts, by outcome",
    ["outcome"],
)

discovery_entries = Gauge(
    "kubesource_discovery_entries",
    "Number of resource types in the current discovery snapshot",
)

# ---------------------------------------------------------------------------
# Service discovery
# ---------------------------------------------------------------------------

resolution_errors_total = Counter(
    "kubesource_resolution_errors_total",
    "Service resolution failures, by discovery mode and reason",
    ["mode", "reason"],
)

service_instances_resolved_total = Counter(
    "kubesource_service_instances_resolved_total",
    "Service instances produced by resolution calls, by discovery mode",
    ["mode"],
)

# ---------------------------------------------------------------------------
# Configuration reconciliation
# ---------------------------------------------------------------------------

property_source_events_total = Counter(
    "kubesource_property_source_events_total",
    "Reconciler events handled, by resource kind and event type",
    ["kind", "event_type"],
)

property_source_read_errors_total = Counter(
    "kubesource_property_source_read_errors_total",
    "ConfigMap/Secret payloads that could not be read",
    ["kind"],
)

mounted_volume_reloads_total = Counter(
    "kubesource_mounted_volume_reloads_total",
    "Mounted ConfigMap/Secret volumes found changed on a poll",
)

property_sources = Gauge(
    "kubesource_property_sources",
    "Number of property sources currently held by the store",
)

refresh_events_total = Counter(
    "kubesource_refresh_events_total",
    "Refresh events published after a non-empty configuration diff",
)

refresh_listener_deliveries_total = Counter(
    "kubesource_refresh_listener_deliveries_total",
    "Refresh event deliveries to registered listeners, by listener and outcome",
    ["listener", "success"],
)
