"""Shared fixtures for kubesource integration tests.

``FakeCluster`` stands in for the API server: it stores raw objects per
kind, assigns increasing resourceVersions and feeds watch streams, so the
informer, reconciler and discovery pipelines run end to end without a
real cluster.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest

from kubesource.cache.resource_cache import ALL_NAMESPACES
from kubesource.models.resources import Resource, WatchEvent, WatchEventType


class FakeCluster:
    """In-memory object store with per-kind watch queues."""

    def __init__(self) -> None:
        self._version = 0
        self._objects: dict[tuple[str, str, str], Resource] = {}
        self._watchers: dict[str, list[asyncio.Queue[WatchEvent]]] = {}

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def apply(
        self,
        kind: str,
        namespace: str,
        name: str,
        payload: dict[str, Any],
        labels: dict[str, str] | None = None,
    ) -> Resource:
        key = (kind, namespace, name)
        resource = Resource(
            kind=kind,
            namespace=namespace,
            name=name,
            resource_version=self._next_version(),
            labels=labels or {},
            payload=payload,
        )
        event_type = WatchEventType.MODIFIED if key in self._objects else WatchEventType.ADDED
        self._objects[key] = resource
        self._emit(kind, WatchEvent(type=event_type, resource=resource))
        return resource

    def delete(self, kind: str, namespace: str, name: str) -> None:
        existing = self._objects.pop((kind, namespace, name))
        deleted = Resource(
            kind=kind,
            namespace=namespace,
            name=name,
            resource_version=self._next_version(),
            labels=existing.labels,
            payload=existing.payload,
        )
        self._emit(kind, WatchEvent(type=WatchEventType.DELETED, resource=deleted))

    def error(self, kind: str, code: int) -> None:
        self._emit(kind, WatchEvent(type=WatchEventType.ERROR, status={"kind": "Status", "code": code}))

    def _emit(self, kind: str, event: WatchEvent) -> None:
        for queue in self._watchers.get(kind, []):
            queue.put_nowait(event)

    def source(self, kind: str) -> FakeWatchSource:
        return FakeWatchSource(self, kind)

    def objects(self, kind: str, namespace: str) -> list[Resource]:
        return [
            r
            for (k, ns, _), r in sorted(self._objects.items())
            if k == kind and (namespace == ALL_NAMESPACES or ns == namespace)
        ]


class FakeWatchSource:
    """WatchSource backed by a FakeCluster."""

    def __init__(self, cluster: FakeCluster, kind: str) -> None:
        self._cluster = cluster
        self._kind = kind

    @property
    def kind(self) -> str:
        return self._kind

    async def list(self, namespace: str, label_selector: str = "") -> tuple[list[Resource], str]:
        return self._cluster.objects(self._kind, namespace), str(self._cluster._version)

    async def get(self, namespace: str, name: str) -> Resource | None:
        return self._cluster._objects.get((self._kind, namespace, name))

    async def watch(
        self,
        namespace: str,
        resource_version: str = "",
        label_selector: str = "",
    ) -> AsyncIterator[WatchEvent]:
        queue: asyncio.Queue[WatchEvent] = asyncio.Queue()
        self._cluster._watchers.setdefault(self._kind, []).append(queue)
        try:
            while True:
                event = await queue.get()
                if event.resource is not None and namespace not in (ALL_NAMESPACES, event.resource.namespace):
                    continue
                yield event
        finally:
            self._cluster._watchers[self._kind].remove(queue)


async def _settle() -> None:
    for _ in range(20):
        await asyncio.sleep(0)


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def settle() -> Callable[[], Awaitable[None]]:
    """Coroutine function that lets informer tasks drain their watch queues."""
    return _settle
