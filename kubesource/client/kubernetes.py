"""kubernetes_asyncio adapters.

KubernetesWatchSource   -- WatchSource over the typed CoreV1Api list/read/watch
                           functions, yielding raw-object ``Resource`` values.
fetch_discovery_entries -- reads the API discovery documents
                           (``/api/v1`` and the preferred version of every
                           group under ``/apis``).
KubernetesPodLabels     -- reads the labels of a pod by name.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from kubernetes_asyncio import client as k8s_client
from kubernetes_asyncio import watch
from kubernetes_asyncio.client.exceptions import ApiException

from kubesource.cache.resource_cache import ALL_NAMESPACES
from kubesource.errors import WatchExpiredError
from kubesource.models.discovery import DiscoveryEntry
from kubesource.models.resources import Resource, WatchEvent, WatchEventType
from kubesource.observability.logging import get_logger

_GONE = 410
_NOT_FOUND = 404
_DEFAULT_WATCH_TIMEOUT_S = 300

# kind -> (namespaced list, all-namespaces list, namespaced read)
_CORE_V1_FUNCS: dict[str, tuple[str, str, str]] = {
    "ConfigMap": ("list_namespaced_config_map", "list_config_map_for_all_namespaces", "read_namespaced_config_map"),
    "Secret": ("list_namespaced_secret", "list_secret_for_all_namespaces", "read_namespaced_secret"),
    "Service": ("list_namespaced_service", "list_service_for_all_namespaces", "read_namespaced_service"),
    "Endpoints": ("list_namespaced_endpoints", "list_endpoints_for_all_namespaces", "read_namespaced_endpoints"),
    "Pod": ("list_namespaced_pod", "list_pod_for_all_namespaces", "read_namespaced_pod"),
}


def supported_kinds() -> list[str]:
    return sorted(_CORE_V1_FUNCS)


class KubernetesWatchSource:
    """List+watch access to one core/v1 kind through ``CoreV1Api``."""

    def __init__(
        self,
        kind: str,
        api: k8s_client.CoreV1Api,
        watch_timeout_seconds: int = _DEFAULT_WATCH_TIMEOUT_S,
    ) -> None:
        if kind not in _CORE_V1_FUNCS:
            raise ValueError(f"Unsupported kind {kind!r}; expected one of {supported_kinds()}")
        self._kind = kind
        self._api = api
        self._watch_timeout = watch_timeout_seconds
        self._log = get_logger("client.kubernetes").bind(kind=kind)

    @property
    def kind(self) -> str:
        return self._kind

    def _list_func(self, namespace: str) -> Any:
        namespaced, all_namespaces, _ = _CORE_V1_FUNCS[self._kind]
        return getattr(self._api, all_namespaces if namespace == ALL_NAMESPACES else namespaced)

    @staticmethod
    def _list_kwargs(namespace: str, label_selector: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if namespace != ALL_NAMESPACES:
            kwargs["namespace"] = namespace
        if label_selector:
            kwargs["label_selector"] = label_selector
        return kwargs

    def _to_raw(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        raw = self._api.api_client.sanitize_for_serialization(obj)
        return raw if isinstance(raw, dict) else {}

    async def list(self, namespace: str, label_selector: str = "") -> tuple[list[Resource], str]:
        result = await self._list_func(namespace)(**self._list_kwargs(namespace, label_selector))
        raw = self._to_raw(result)
        items = [Resource.from_raw(self._kind, item) for item in raw.get("items") or [] if isinstance(item, dict)]
        resource_version = str((raw.get("metadata") or {}).get("resourceVersion") or "")
        return items, resource_version

    async def get(self, namespace: str, name: str) -> Resource | None:
        _, _, read = _CORE_V1_FUNCS[self._kind]
        try:
            obj = await getattr(self._api, read)(name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                return None
            raise
        return Resource.from_raw(self._kind, self._to_raw(obj))

    async def watch(
        self,
        namespace: str,
        resource_version: str = "",
        label_selector: str = "",
    ) -> AsyncIterator[WatchEvent]:
        kwargs = self._list_kwargs(namespace, label_selector)
        kwargs["timeout_seconds"] = self._watch_timeout
        if resource_version:
            kwargs["resource_version"] = resource_version

        w = watch.Watch()
        try:
            async for event in w.stream(self._list_func(namespace), **kwargs):
                parsed = self._parse_event(event)
                if parsed is not None:
                    yield parsed
        except ApiException as exc:
            if exc.status == _GONE:
                raise WatchExpiredError(resource_version) from exc
            raise
        finally:
            w.stop()

    def _parse_event(self, event: dict[str, Any]) -> WatchEvent | None:
        try:
            event_type = WatchEventType(str(event.get("type", "")))
        except ValueError:
            # BOOKMARK and future event types carry no object change.
            self._log.debug("watch_event_skipped", event_type=event.get("type"))
            return None

        raw = event.get("raw_object")
        if not isinstance(raw, dict):
            raw = self._to_raw(event.get("object"))
        if event_type == WatchEventType.ERROR:
            return WatchEvent(type=event_type, status=raw)
        return WatchEvent(type=event_type, resource=Resource.from_raw(self._kind, raw))


# ---------------------------------------------------------------------------
# API discovery
# ---------------------------------------------------------------------------


async def _get_resource_list(api_client: k8s_client.ApiClient, path: str) -> Any:
    return await api_client.call_api(
        path,
        "GET",
        header_params={"Accept": "application/json"},
        response_type="V1APIResourceList",
        auth_settings=["BearerToken"],
        _return_http_data_only=True,
    )


def _entries_from(resource_list: Any, group: str, version: str) -> list[DiscoveryEntry]:
    entries: list[DiscoveryEntry] = []
    for res in getattr(resource_list, "resources", None) or []:
        # Subresources such as "pods/log" are not listable kinds.
        if "/" in res.name:
            continue
        entries.append(
            DiscoveryEntry(
                kind=res.kind,
                group=group,
                version=version,
                resource_plural=res.name,
                namespaced=bool(res.namespaced),
            )
        )
    return entries


async def fetch_discovery_entries(api_client: k8s_client.ApiClient) -> list[DiscoveryEntry]:
    """Read the resource catalogue of the core group and every API group."""
    entries = _entries_from(await _get_resource_list(api_client, "/api/v1"), "", "v1")

    groups = await k8s_client.ApisApi(api_client).get_api_versions()
    for group in groups.groups or []:
        preferred = group.preferred_version or (group.versions[0] if group.versions else None)
        if preferred is None:
            continue
        resource_list = await _get_resource_list(api_client, f"/apis/{preferred.group_version}")
        entries.extend(_entries_from(resource_list, group.name, preferred.version))
    return entries


# ---------------------------------------------------------------------------
# Pod labels
# ---------------------------------------------------------------------------


class KubernetesPodLabels:
    """Reads the labels of a single pod."""

    def __init__(self, api: k8s_client.CoreV1Api) -> None:
        self._api = api

    async def get_labels(self, namespace: str, pod_name: str) -> dict[str, str]:
        pod = await self._api.read_namespaced_pod(name=pod_name, namespace=namespace)
        labels = getattr(pod.metadata, "labels", None) or {}
        return {str(k): str(v) for k, v in labels.items()}
