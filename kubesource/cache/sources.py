"""Upstream and read-side interfaces of the resource cache.

WatchSource    -- what an informer consumes: an initial list, single-object
                  reads, and a resumable watch stream for one kind.
ResourceReader -- what discovery providers and the configuration client
                  read from. ``IndexerReader`` answers from the watch-fed
                  caches; ``SourceReader`` goes straight to the API server
                  when watching is disabled.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from kubesource.cache.indexer import IndexerComposite
from kubesource.cache.resource_cache import ALL_NAMESPACES
from kubesource.models.resources import Resource, WatchEvent


class WatchSource(Protocol):
    """List+watch access to one resource kind."""

    @property
    def kind(self) -> str: ...

    async def list(self, namespace: str, label_selector: str = "") -> tuple[list[Resource], str]:
        """Return ``(items, list_resource_version)``; ``"*"`` lists every namespace."""
        ...

    async def get(self, namespace: str, name: str) -> Resource | None: ...

    def watch(
        self,
        namespace: str,
        resource_version: str = "",
        label_selector: str = "",
    ) -> AsyncIterator[WatchEvent]:
        """Stream events after *resource_version*.

        Raises ``WatchExpiredError`` when the version is no longer available.
        The iterator ends when the server closes the stream.
        """
        ...


class ResourceReader(Protocol):
    """Read access to one resource kind."""

    @property
    def kind(self) -> str: ...

    async def get(self, namespace: str, name: str) -> Resource | None: ...

    async def list(self, namespace: str = ALL_NAMESPACES) -> list[Resource]: ...


class IndexerReader:
    """Reads from the informer-maintained ``IndexerComposite`` of a kind."""

    def __init__(self, indexer: IndexerComposite) -> None:
        self._indexer = indexer

    @property
    def kind(self) -> str:
        return self._indexer.kind

    async def get(self, namespace: str, name: str) -> Resource | None:
        return self._indexer.get_by_key(namespace, name)

    async def list(self, namespace: str = ALL_NAMESPACES) -> list[Resource]:
        return self._indexer.list(namespace)


class SourceReader:
    """Reads directly from a ``WatchSource``, applying a fixed label selector."""

    def __init__(self, source: WatchSource, label_selector: str = "") -> None:
        self._source = source
        self._label_selector = label_selector

    @property
    def kind(self) -> str:
        return self._source.kind

    async def get(self, namespace: str, name: str) -> Resource | None:
        return await self._source.get(namespace, name)

    async def list(self, namespace: str = ALL_NAMESPACES) -> list[Resource]:
        items, _ = await self._source.list(namespace, label_selector=self._label_selector)
        return items
