"""Aggregate view over the per-namespace partitions of one kind."""

from __future__ import annotations

import builtins

from kubesource.cache.resource_cache import ALL_NAMESPACES, ResourceCache
from kubesource.models.resources import Resource, ResourceKey


class IndexerComposite:
    """Answers get/list for one kind across every watched namespace.

    Each partition is a ``ResourceCache`` owned by one informer. A partition
    registered under ``"*"`` covers every namespace and is consulted when no
    exact partition exists. A namespace that is not watched yields nothing.
    """

    def __init__(self, kind: str) -> None:
        self._kind = kind
        self._partitions: dict[str, ResourceCache] = {}

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def namespaces(self) -> builtins.list[str]:
        return sorted(self._partitions)

    @property
    def has_synced(self) -> bool:
        return bool(self._partitions) and all(p.has_synced for p in self._partitions.values())

    def add(self, namespace: str, cache: ResourceCache) -> None:
        if cache.kind != self._kind:
            raise ValueError(f"cannot add {cache.kind} partition to {self._kind} indexer")
        self._partitions[namespace] = cache

    def partition(self, namespace: str) -> ResourceCache | None:
        return self._partitions.get(namespace)

    def get_by_key(self, namespace: str, name: str) -> Resource | None:
        partition = self._partitions.get(namespace) or self._partitions.get(ALL_NAMESPACES)
        if partition is None:
            return None
        return partition.get_by_key(namespace, name)

    def list(self, namespace: str = ALL_NAMESPACES) -> builtins.list[Resource]:
        """Resources in *namespace*; ``"*"`` is the de-duplicated union of all partitions."""
        if namespace != ALL_NAMESPACES:
            partition = self._partitions.get(namespace) or self._partitions.get(ALL_NAMESPACES)
            return partition.list(namespace) if partition is not None else []

        seen: dict[ResourceKey, Resource] = {}
        for partition in self._partitions.values():
            for resource in partition.list(ALL_NAMESPACES):
                seen.setdefault(resource.key, resource)
        return sorted(seen.values(), key=lambda r: (r.namespace, r.name))
