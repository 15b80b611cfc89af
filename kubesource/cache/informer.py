"""List+watch loop that keeps one cache partition fresh.

One ``Informer`` runs as a long-lived asyncio task per (kind, namespace):

1. list the partition and ``replace`` the cache contents;
2. watch from the last seen resourceVersion, applying ADDED/MODIFIED as
   upserts and DELETED as deletes;
3. when the stream ends, watch again from the last seen version; when the
   version has expired (HTTP 410) relist instead;
4. on any other error wait ``restart_delay`` seconds and resume.

ERROR events never mutate the cache; they are forwarded to handlers.
Cancelling the task leaves the cache as it is.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Protocol

from kubesource.cache.resource_cache import ResourceCache
from kubesource.cache.sources import WatchSource
from kubesource.errors import WatchExpiredError
from kubesource.models.resources import Resource, UpsertOutcome, WatchEvent, WatchEventType
from kubesource.observability.logging import get_logger
from kubesource.observability.metrics import (
    informer_relists_total,
    informer_restarts_total,
    watch_events_total,
)

_GONE = 410
_DEFAULT_RESTART_DELAY_S = 5.0


class ResourceEventHandler(Protocol):
    """Callbacks invoked synchronously, in delivery order, for one partition."""

    def on_add(self, resource: Resource) -> None: ...

    def on_update(self, old: Resource, new: Resource) -> None: ...

    def on_delete(self, resource: Resource) -> None: ...

    def on_error(self, event: WatchEvent) -> None: ...


class Informer:
    """Keeps *cache* in sync with *source* for a single namespace partition."""

    def __init__(
        self,
        source: WatchSource,
        cache: ResourceCache,
        label_selector: str = "",
        handlers: list[ResourceEventHandler] | None = None,
        restart_delay: float = _DEFAULT_RESTART_DELAY_S,
    ) -> None:
        if source.kind != cache.kind:
            raise ValueError(f"source kind {source.kind} does not match cache kind {cache.kind}")
        self._source = source
        self._cache = cache
        self._label_selector = label_selector
        self._handlers: list[ResourceEventHandler] = list(handlers or [])
        self._restart_delay = restart_delay
        self._synced = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._log = get_logger("cache.informer").bind(kind=cache.kind, namespace=cache.namespace)

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_handler(self, handler: ResourceEventHandler) -> None:
        self._handlers.append(handler)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Schedule the list+watch loop as a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(
                self.run(),
                name=f"informer-{self._cache.kind}-{self._cache.namespace}",
            )
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._log.info("informer stopped")

    async def wait_for_sync(self, timeout: float | None = None) -> bool:
        """Wait for the initial list; returns False when *timeout* elapses first."""
        try:
            await asyncio.wait_for(self._synced.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        relist_reason = "initial"
        while True:
            try:
                if relist_reason:
                    await self.resync(relist_reason)
                    relist_reason = ""
                if await self._watch_once():
                    relist_reason = "expired"
            except WatchExpiredError as exc:
                self._log.info("watch_expired", resource_version=exc.resource_version)
                relist_reason = "expired"
            except Exception as exc:
                informer_restarts_total.labels(kind=self._cache.kind).inc()
                self._log.error(
                    "informer_loop_failed",
                    error=str(exc),
                    retry_in_seconds=self._restart_delay,
                    exc_info=True,
                )
                await asyncio.sleep(self._restart_delay)

    async def resync(self, reason: str = "manual") -> None:
        """Full list of the partition, emitting callbacks for the differences."""
        items, resource_version = await self._source.list(
            self._cache.namespace,
            label_selector=self._label_selector,
        )
        informer_relists_total.labels(kind=self._cache.kind, reason=reason).inc()
        delta = self._cache.replace(items, resource_version)
        self._synced.set()
        self._log.info(
            "informer_listed",
            reason=reason,
            count=len(items),
            resource_version=resource_version,
        )
        for resource in delta.added:
            self._notify("on_add", resource)
        for old, new in delta.updated:
            self._notify("on_update", old, new)
        for resource in delta.removed:
            self._notify("on_delete", resource)

    async def _watch_once(self) -> bool:
        """Consume one watch stream. Returns True when a relist is required."""
        stream = self._source.watch(
            self._cache.namespace,
            resource_version=self._cache.last_sync_resource_version,
            label_selector=self._label_selector,
        )
        async for event in stream:
            watch_events_total.labels(kind=self._cache.kind, event_type=event.type.value).inc()
            if event.type == WatchEventType.ERROR:
                self._log.warning("watch_error_event", status=event.status)
                self._notify("on_error", event)
                if event.status_code == _GONE:
                    return True
                continue
            if event.resource is not None:
                self.apply(event.type, event.resource)
        return False

    def apply(self, event_type: WatchEventType, resource: Resource) -> None:
        """Apply a single ADDED/MODIFIED/DELETED event to the cache."""
        if event_type == WatchEventType.DELETED:
            removed = self._cache.delete(resource.namespace, resource.name, resource.resource_version)
            if removed is not None:
                self._notify("on_delete", resource)
            return

        previous = self._cache.get_by_key(resource.namespace, resource.name)
        outcome = self._cache.upsert(resource)
        if outcome == UpsertOutcome.ADDED:
            self._notify("on_add", resource)
        elif outcome == UpsertOutcome.REPLACED and previous is not None:
            self._notify("on_update", previous, resource)

    def _notify(self, callback: str, *args: object) -> None:
        for handler in self._handlers:
            try:
                getattr(handler, callback)(*args)
            except Exception as exc:
                self._log.error(
                    "informer_handler_failed",
                    handler=type(handler).__name__,
                    callback=callback,
                    error=str(exc),
                    exc_info=True,
                )
