"""Per-kind, per-namespace resource store fed by list+watch.

Stores immutable ``Resource`` values keyed by ``ResourceKey``. Exactly one
writer (the owning informer) mutates a partition; any number of readers
(discovery providers, the configuration client, REST handlers) read it.

Consistency
-----------
Every mutation builds a new dict and swaps it in under a lock, so a reader
always sees a complete point-in-time snapshot and never blocks on pending
watch events.

Versioning
----------
An incoming resource replaces the stored one only when its resourceVersion
is not older. Versions are compared numerically when both are decimal
integers; otherwise the token is treated as opaque and the incoming value
wins. Deletes are always applied.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from kubesource.models.resources import CacheEntry, Resource, ResourceKey, UpsertOutcome
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import cache_resources, cache_upserts_ignored_total

ALL_NAMESPACES = "*"


def compare_resource_versions(incoming: str, current: str) -> int | None:
    """Return -1/0/1 when both versions are comparable, None otherwise."""
    if incoming.isdigit() and current.isdigit():
        a, b = int(incoming), int(current)
        return (a > b) - (a < b)
    if incoming == current:
        return 0
    return None


@dataclass
class CacheDelta:
    """Changes produced by a relist, used to emit handler callbacks."""

    added: list[Resource] = field(default_factory=list)
    updated: list[tuple[Resource, Resource]] = field(default_factory=list)
    removed: list[Resource] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.added or self.updated or self.removed)


class ResourceCache:
    """Copy-on-write store for one kind in one namespace partition.

    ``namespace`` is ``"*"`` for a partition that watches all namespaces.

    Example::

        cache = ResourceCache("Service", "default")
        cache.upsert(resource)
        svc = cache.get_by_key("default", "billing")
    """

    def __init__(self, kind: str, namespace: str = ALL_NAMESPACES) -> None:
        self._kind = kind
        self._namespace = namespace
        self._log = get_logger("cache.resource")
        self._entries: dict[ResourceKey, CacheEntry] = {}
        self._lock = threading.Lock()
        self._resource_version = ""
        self._synced = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def has_synced(self) -> bool:
        """True once the initial list has been applied."""
        return self._synced

    @property
    def last_sync_resource_version(self) -> str:
        """Most recent resourceVersion observed; the watch resumes from here."""
        return self._resource_version

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Write interface (called by the owning informer)
    # ------------------------------------------------------------------

    def upsert(self, resource: Resource) -> UpsertOutcome:
        """Insert or replace *resource*, honouring resourceVersion ordering."""
        with self._lock:
            outcome = self._apply(self._entries, resource)
            if outcome in (UpsertOutcome.ADDED, UpsertOutcome.REPLACED):
                entries = dict(self._entries)
                entries[resource.key] = CacheEntry(resource.key, resource, resource.resource_version)
                self._entries = entries
            self._observe_version(resource.resource_version)

        if outcome in (UpsertOutcome.STALE, UpsertOutcome.UNCHANGED):
            cache_upserts_ignored_total.labels(kind=self._kind, reason=outcome.value).inc()
            self._log.debug(
                "cache_upsert_ignored",
                kind=self._kind,
                key=str(resource.key),
                resource_version=resource.resource_version,
                outcome=outcome.value,
            )
        else:
            self._emit_size()
        return outcome

    def delete(self, namespace: str, name: str, resource_version: str = "") -> Resource | None:
        """Remove the resource under ``(namespace, name)``.

        Returns the removed resource, or None when the key was absent.
        """
        key = ResourceKey(namespace, name)
        with self._lock:
            if resource_version:
                self._observe_version(resource_version)
            entry = self._entries.get(key)
            if entry is None:
                return None
            entries = dict(self._entries)
            del entries[key]
            self._entries = entries
        self._emit_size()
        return entry.resource

    def replace(self, resources: list[Resource], resource_version: str = "") -> CacheDelta:
        """Apply the result of a full list.

        Every listed item goes through the version rule; keys missing from
        the list are dropped. Marks the partition as synced.
        """
        delta = CacheDelta()
        with self._lock:
            current = self._entries
            entries: dict[ResourceKey, CacheEntry] = {}
            for resource in resources:
                previous = current.get(resource.key)
                outcome = self._apply(current, resource)
                if outcome == UpsertOutcome.ADDED:
                    delta.added.append(resource)
                elif outcome == UpsertOutcome.REPLACED and previous is not None:
                    delta.updated.append((previous.resource, resource))
                if outcome in (UpsertOutcome.ADDED, UpsertOutcome.REPLACED):
                    entries[resource.key] = CacheEntry(resource.key, resource, resource.resource_version)
                elif previous is not None:
                    entries[resource.key] = previous
            delta.removed = [entry.resource for key, entry in current.items() if key not in entries]
            self._entries = entries
            self._resource_version = resource_version or self._resource_version
            self._synced = True

        self._emit_size()
        self._log.debug(
            "cache_replaced",
            kind=self._kind,
            namespace=self._namespace,
            count=len(entries),
            added=len(delta.added),
            updated=len(delta.updated),
            removed=len(delta.removed),
            resource_version=self._resource_version,
        )
        return delta

    # ------------------------------------------------------------------
    # Read interface
    # ------------------------------------------------------------------

    def get_by_key(self, namespace: str, name: str) -> Resource | None:
        entry = self._entries.get(ResourceKey(namespace, name))
        return entry.resource if entry is not None else None

    def entry(self, namespace: str, name: str) -> CacheEntry | None:
        return self._entries.get(ResourceKey(namespace, name))

    def list(self, namespace: str = ALL_NAMESPACES) -> list[Resource]:
        """Return resources in *namespace*; ``"*"`` returns every namespace."""
        snapshot = self._entries
        resources = [
            entry.resource
            for key, entry in snapshot.items()
            if namespace == ALL_NAMESPACES or key.namespace == namespace
        ]
        resources.sort(key=lambda r: (r.namespace, r.name))
        return resources

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply(entries: dict[ResourceKey, CacheEntry], resource: Resource) -> UpsertOutcome:
        existing = entries.get(resource.key)
        if existing is None:
            return UpsertOutcome.ADDED
        cmp = compare_resource_versions(resource.resource_version, existing.last_seen_resource_version)
        if cmp is None or cmp > 0:
            return UpsertOutcome.REPLACED
        if cmp == 0:
            return UpsertOutcome.UNCHANGED
        return UpsertOutcome.STALE

    def _observe_version(self, resource_version: str) -> None:
        if not resource_version:
            return
        cmp = compare_resource_versions(resource_version, self._resource_version)
        if not self._resource_version or cmp is None or cmp > 0:
            self._resource_version = resource_version

    def _emit_size(self) -> None:
        cache_resources.labels(kind=self._kind, namespace=self._namespace).set(len(self._entries))
