"""Refresh event publication for kubesource.

RefreshListener       -- ABC every refresh consumer must implement.
RefreshEventPublisher -- Fans a RefreshEvent out to registered listeners and
                         in-process subscribers; a failing listener never
                         blocks the others or the reconciler that published.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import structlog

from kubesource.models.properties import RefreshEvent
from kubesource.observability.metrics import refresh_events_total, refresh_listener_deliveries_total

_log = structlog.get_logger(component="notifications.manager")

_DEFAULT_QUEUE_SIZE = 100


class RefreshListener(ABC):
    """Abstract base class for refresh consumers.

    ``on_refresh`` should not raise; return ``False`` when delivery failed.
    """

    @property
    @abstractmethod
    def listener_name(self) -> str:
        """Identifier used in metrics and logs."""

    @abstractmethod
    async def on_refresh(self, event: RefreshEvent) -> bool:
        """Handle *event*.

        Returns:
            True  -- the event was delivered.
            False -- delivery failed (already logged inside implementation).
        """


class RefreshEventPublisher:
    """Fire-and-forget publisher of configuration refresh events.

    * ``publish`` never raises and never awaits.
    * Listener delivery runs as a background task on the running loop.
    * Subscribers get events through bounded queues; when a queue is full
      its oldest event is dropped.
    """

    def __init__(
        self,
        listeners: list[RefreshListener] | None = None,
        queue_size: int = _DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._listeners: list[RefreshListener] = list(listeners or [])
        self._queue_size = queue_size
        self._subscribers: list[asyncio.Queue[RefreshEvent]] = []
        self._pending: set[asyncio.Future[None]] = set()
        self._last_event: RefreshEvent | None = None

    @property
    def listeners(self) -> list[RefreshListener]:
        return list(self._listeners)

    @property
    def last_event(self) -> RefreshEvent | None:
        return self._last_event

    def add_listener(self, listener: RefreshListener) -> None:
        self._listeners.append(listener)

    def subscribe(self) -> asyncio.Queue[RefreshEvent]:
        queue: asyncio.Queue[RefreshEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[RefreshEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def stream(self) -> AsyncIterator[RefreshEvent]:
        """Yield every event published after the iteration started."""
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)

    def publish(self, event: RefreshEvent) -> None:
        self._last_event = event
        refresh_events_total.inc()
        _log.info("configuration_refreshed", changed_keys=event.changed_keys, cause=event.cause)

        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
                _log.warning("refresh_subscriber_lagging", dropped=1)
            queue.put_nowait(event)

        if not self._listeners:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            _log.warning("refresh_listeners_skipped", reason="no running event loop")
            return
        future = asyncio.ensure_future(self._fan_out(event))
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled listener delivery to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _fan_out(self, event: RefreshEvent) -> None:
        tasks = [self._deliver(listener, event) for listener in self._listeners]
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _deliver(self, listener: RefreshListener, event: RefreshEvent) -> None:
        try:
            success = await listener.on_refresh(event)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "refresh_listener_unexpected_error",
                listener=listener.listener_name,
                error=str(exc),
            )
            success = False

        label = "true" if success else "false"
        refresh_listener_deliveries_total.labels(listener=listener.listener_name, success=label).inc()
        if not success:
            _log.warning("refresh_delivery_failed", listener=listener.listener_name)
