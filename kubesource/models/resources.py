"""Cluster resource, watch event, and cache entry data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# Top-level fields that describe the object itself rather than its content.
_ENVELOPE_FIELDS = frozenset({"apiVersion", "kind", "metadata"})


class WatchEventType(StrEnum):
    """Kubernetes watch event type."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"


class UpsertOutcome(StrEnum):
    """Result of applying a resource to a cache partition."""

    ADDED = "added"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"
    STALE = "stale"


@dataclass(frozen=True)
class ResourceKey:
    """Identity of a resource inside one kind's partition."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass(frozen=True)
class Resource:
    """Immutable snapshot of a cluster object.

    ``payload`` keeps every top-level field except ``apiVersion``, ``kind``
    and ``metadata`` (``spec``, ``data``, ``subsets``, ``type``, ...). Each
    watch event produces a new value; nothing mutates a Resource in place.
    """

    kind: str
    namespace: str
    name: str
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, kind: str, raw: dict[str, Any]) -> Resource:
        """Build a Resource from a raw API object dict (camelCase keys)."""
        metadata = raw.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}
        labels_raw = metadata.get("labels") or {}
        annotations_raw = metadata.get("annotations") or {}
        return cls(
            kind=kind or str(raw.get("kind") or ""),
            namespace=str(metadata.get("namespace") or ""),
            name=str(metadata.get("name") or ""),
            resource_version=str(metadata.get("resourceVersion") or ""),
            labels={str(k): str(v) for k, v in labels_raw.items()} if isinstance(labels_raw, dict) else {},
            annotations=(
                {str(k): str(v) for k, v in annotations_raw.items()} if isinstance(annotations_raw, dict) else {}
            ),
            payload={k: v for k, v in raw.items() if k not in _ENVELOPE_FIELDS},
        )

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.namespace, self.name)

    @property
    def spec(self) -> dict[str, Any]:
        spec = self.payload.get("spec")
        return spec if isinstance(spec, dict) else {}

    @property
    def data(self) -> dict[str, str]:
        """ConfigMap/Secret ``data`` field, always a str -> str mapping."""
        data = self.payload.get("data")
        if not isinstance(data, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in data.items()}

    @property
    def subsets(self) -> list[dict[str, Any]]:
        subsets = self.payload.get("subsets")
        if not isinstance(subsets, list):
            return []
        return [s for s in subsets if isinstance(s, dict)]

    def to_raw(self) -> dict[str, Any]:
        """Return the object as an API-shaped dict."""
        metadata: dict[str, Any] = {
            "name": self.name,
            "resourceVersion": self.resource_version,
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
        }
        if self.namespace:
            metadata["namespace"] = self.namespace
        return {"kind": self.kind, "metadata": metadata, **self.payload}


@dataclass(frozen=True)
class WatchEvent:
    """A single event delivered by a watch stream.

    ``resource`` is None for ERROR events, which carry the API ``Status``
    object in ``status`` instead.
    """

    type: WatchEventType
    resource: Resource | None = None
    status: dict[str, Any] | None = None

    @property
    def status_code(self) -> int | None:
        if not self.status:
            return None
        code = self.status.get("code")
        return code if isinstance(code, int) else None


@dataclass(frozen=True)
class CacheEntry:
    """Live entry of a cache partition."""

    key: ResourceKey
    resource: Resource
    last_seen_resource_version: str
